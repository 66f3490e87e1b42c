"""Admin registrations for the core app."""

from __future__ import annotations

from django import forms
from django.contrib import admin, messages

from analysis.chart_config import ChartConfiguration
from analysis.chart_validator import validate_chart_configuration
from analysis.config_codec import decode_chart_configuration
from core.models import ChartConfigurationRecord


class ChartConfigurationRecordForm(forms.ModelForm):
    """Admin form that refuses payloads which do not decode or validate.

    Validation warnings do not block saving; they are reported by the admin
    after the record is stored.
    """

    class Meta:
        model = ChartConfigurationRecord
        fields = ("chart_id", "payload")

    def clean(self) -> dict[str, object]:
        """Decode and validate the payload, keeping the result on the form."""

        cleaned = super().clean()
        payload = cleaned.get("payload")
        if payload is None or "chart_id" in self.errors:
            return cleaned
        if not isinstance(payload, dict):
            raise forms.ValidationError("Payload must be a JSON object.")

        payload = dict(payload)
        payload.setdefault("chartId", cleaned.get("chart_id"))
        try:
            config = decode_chart_configuration(payload)
        except ValueError as exc:
            raise forms.ValidationError(f"Payload rejected: {exc}") from exc

        result = validate_chart_configuration(config)
        if not result.is_valid:
            raise forms.ValidationError(list(result.errors))
        if config.chart_id != cleaned.get("chart_id"):
            self.add_error("chart_id", f"Does not match the payload chartId {config.chart_id!r}.")
            return cleaned

        cleaned["payload"] = payload
        self.configuration: ChartConfiguration = config
        self.warnings: tuple[str, ...] = result.warnings
        return cleaned


@admin.register(ChartConfigurationRecord)
class ChartConfigurationRecordAdmin(admin.ModelAdmin):
    """Admin configuration for ChartConfigurationRecord.

    The form rejects payloads with validation errors. Saving re-derives the
    denormalized columns from the payload and reports warnings as messages.
    """

    form = ChartConfigurationRecordForm
    list_display = ("chart_id", "title", "chart_type", "order", "is_active", "updated_at")
    list_filter = ("chart_type", "is_active")
    search_fields = ("chart_id", "title")
    ordering = ("order", "chart_id")
    readonly_fields = ("title", "chart_type", "order", "is_active", "created_at", "updated_at")

    def save_model(self, request, obj: ChartConfigurationRecord, form, change) -> None:
        """Sync the denormalized columns from the validated payload and save."""

        obj.apply_configuration(form.configuration)
        for warning in form.warnings:
            self.message_user(request, warning, level=messages.WARNING)
        super().save_model(request, obj, form, change)
