"""Database-backed Configuration Store."""

from __future__ import annotations

import logging

from django.db import transaction

from analysis.chart_config import ChartConfiguration
from core.models import ChartConfigurationRecord

logger = logging.getLogger(__name__)


class DjangoConfigurationStore:
    """ConfigurationStore implementation over `ChartConfigurationRecord`.

    Records whose payload can no longer be decoded are skipped by `list` and
    reported by `get` as missing, with a warning, so one bad row does not hide
    every other chart.
    """

    def get(self, chart_id: str) -> ChartConfiguration | None:
        record = ChartConfigurationRecord.objects.filter(chart_id=chart_id).first()
        if record is None:
            return None
        return self._decode(record)

    def list(self, *, active_only: bool = False) -> tuple[ChartConfiguration, ...]:
        queryset = ChartConfigurationRecord.objects.order_by("order", "chart_id")
        if active_only:
            queryset = queryset.filter(is_active=True)
        configs = (self._decode(record) for record in queryset)
        return tuple(config for config in configs if config is not None)

    def save(self, config: ChartConfiguration) -> None:
        with transaction.atomic():
            record = (
                ChartConfigurationRecord.objects.select_for_update().filter(chart_id=config.chart_id).first()
                or ChartConfigurationRecord()
            )
            record.apply_configuration(config)
            record.save()

    def delete(self, chart_id: str) -> bool:
        deleted, _ = ChartConfigurationRecord.objects.filter(chart_id=chart_id).delete()
        return deleted > 0

    @staticmethod
    def _decode(record: ChartConfigurationRecord) -> ChartConfiguration | None:
        try:
            return record.to_configuration()
        except ValueError as exc:
            logger.warning("Stored chart configuration %s is invalid: %s", record.chart_id, exc)
            return None
