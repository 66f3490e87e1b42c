"""Compute stored charts for event statistics read from a JSON file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from analysis.chart_engine import ComputedChartResult, compute_active_charts, compute_charts_by_id
from analysis.variables import build_variable_source, ensure_derived_metrics
from core.report_settings import get_report_settings
from core.stores import DjangoConfigurationStore


class Command(BaseCommand):
    """Render computed chart values as text."""

    help = "Compute active (or listed) charts for one event or an aggregate of events."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument(
            "--stats",
            required=True,
            help="JSON file holding one event statistics object or a list of them.",
        )
        parser.add_argument(
            "--params",
            default=None,
            help="Optional JSON object of PARAM overrides.",
        )
        parser.add_argument(
            "--chart",
            action="append",
            default=[],
            dest="charts",
            help="Chart id to render; repeat for several. Defaults to all active charts.",
        )

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        stats_payload = _read_json(Path(options["stats"]))
        if isinstance(stats_payload, dict):
            records = [stats_payload]
        elif isinstance(stats_payload, list) and all(isinstance(item, dict) for item in stats_payload):
            records = stats_payload
        else:
            raise CommandError("--stats must contain a JSON object or a list of objects.")

        params: dict[str, float] = {}
        if options["params"]:
            params_payload = _read_json(Path(options["params"]))
            if not isinstance(params_payload, dict):
                raise CommandError("--params must contain a JSON object.")
            for key, value in params_payload.items():
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise CommandError(f"Parameter {key!r} must be numeric.")
                params[str(key)] = float(value)

        report_settings = get_report_settings()
        store = DjangoConfigurationStore()
        source = ensure_derived_metrics(records[0]) if len(records) == 1 else build_variable_source(records)
        kwargs = {"placeholder": report_settings.na_placeholder, "max_workers": report_settings.max_workers}
        charts: list[str] = options["charts"]
        if charts:
            results = compute_charts_by_id(store, charts, source, params, **kwargs)
        else:
            results = compute_active_charts(store, source, params, **kwargs)

        for result in results:
            self._write_result(result)
        return None

    def _write_result(self, result: ComputedChartResult) -> None:
        """Print one header line per chart and one line per element."""

        self.stdout.write(f"{result.chart_id} [{result.type}] {result.title}")
        for element in result.elements:
            suffix = f" (error: {element.error})" if element.error else ""
            self.stdout.write(f"  {element.label}: {element.formatted_value}{suffix}")
        if result.formatted_total is not None:
            label = result.total_label or "Total"
            self.stdout.write(f"  {label}: {result.formatted_total}")


def _read_json(path: Path) -> Any:
    """Read a JSON file, converting failures into CommandError."""

    if not path.exists():
        raise CommandError(f"File not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CommandError(f"{path} is not valid JSON: {exc}") from exc
