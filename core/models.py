"""Database models for the core app.

Chart configurations are persisted as their encoded camelCase payload so the
stored document and the pure `ChartConfiguration` DTO stay in one-to-one
correspondence. A few payload fields are denormalized into columns for admin
listing, filtering and ordering.
"""

from __future__ import annotations

from django.db import models

from analysis.chart_config import ChartConfiguration
from analysis.config_codec import decode_chart_configuration, encode_chart_configuration


class ChartConfigurationRecord(models.Model):
    """Persisted chart configuration.

    Attributes:
        chart_id: Stable, unique chart key.
        title: Chart title (mirrors the payload).
        chart_type: Chart type (mirrors the payload).
        order: Display order (mirrors the payload).
        is_active: Whether the chart is enabled (mirrors the payload).
        payload: Encoded configuration produced by `encode_chart_configuration`.
        created_at: When the record was created.
        updated_at: When the record was last written.
    """

    class ChartType(models.TextChoices):
        PIE = "pie", "Pie"
        BAR = "bar", "Bar"
        KPI = "kpi", "KPI"
        VALUE = "value", "Value"
        TEXT = "text", "Text"
        IMAGE = "image", "Image"

    chart_id = models.CharField(max_length=120, unique=True)
    title = models.CharField(max_length=200)
    chart_type = models.CharField(max_length=16, choices=ChartType.choices)
    order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    payload = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "chart_id"]
        verbose_name = "Chart configuration"
        verbose_name_plural = "Chart configurations"

    def __str__(self) -> str:
        """Return a concise display string for admin/debug usage."""

        return f"{self.chart_id} ({self.chart_type})"

    def to_configuration(self) -> ChartConfiguration:
        """Decode the stored payload into a ChartConfiguration.

        Raises:
            ValueError: When the payload lacks a chartId or has an unknown type.
        """

        return decode_chart_configuration(self.payload)

    def apply_configuration(self, config: ChartConfiguration) -> None:
        """Copy a ChartConfiguration into this record without saving it."""

        self.chart_id = config.chart_id
        self.title = config.title
        self.chart_type = config.type
        self.order = config.order
        self.is_active = config.is_active
        self.payload = encode_chart_configuration(config)
