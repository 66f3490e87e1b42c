"""Typed access to the reporting settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from django.conf import settings

from analysis.formatting import NA_PLACEHOLDER

DEFAULT_CHARTS_FILE = Path(__file__).resolve().parent / "default_charts.yaml"


@dataclass(frozen=True, slots=True)
class ReportSettings:
    """Reporting knobs read from Django settings.

    Args:
        na_placeholder: Display text for elements whose formula failed.
        max_workers: Thread pool size used when computing many charts.
        default_charts_file: YAML catalog of default chart configurations.
    """

    na_placeholder: str
    max_workers: int
    default_charts_file: Path


def get_report_settings() -> ReportSettings:
    """Return reporting settings with defaults for unset values."""

    max_workers = int(getattr(settings, "REPORTING_MAX_WORKERS", 4) or 1)
    charts_file = getattr(settings, "REPORTING_DEFAULT_CHARTS_FILE", None)
    return ReportSettings(
        na_placeholder=str(getattr(settings, "REPORTING_NA_PLACEHOLDER", NA_PLACEHOLDER)),
        max_workers=max(1, max_workers),
        default_charts_file=Path(charts_file) if charts_file else DEFAULT_CHARTS_FILE,
    )
