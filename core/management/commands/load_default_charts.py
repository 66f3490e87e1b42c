"""Validate the default chart catalog and upsert it into the database."""

from __future__ import annotations

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from core.chart_defaults import load_default_charts
from core.report_settings import get_report_settings
from core.stores import DjangoConfigurationStore


class Command(BaseCommand):
    """Load default chart configurations from YAML."""

    help = "Validate the default chart catalog and upsert it into the database (idempotent)."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument(
            "--check",
            action="store_true",
            help="Dry-run: validate and report what would change without writing.",
        )
        parser.add_argument(
            "--write",
            action="store_true",
            help="Write chart configurations to the database.",
        )
        parser.add_argument(
            "--file",
            default=None,
            help="Optional catalog path (defaults to REPORTING_DEFAULT_CHARTS_FILE).",
        )

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        check: bool = options["check"]
        write: bool = options["write"]
        if check and write:
            raise CommandError("Use either --check or --write, not both.")
        if not check and not write:
            raise CommandError("Refusing to write without explicit intent; pass --check or --write.")

        path = Path(options["file"]) if options["file"] else get_report_settings().default_charts_file
        if not path.exists():
            raise CommandError(f"Chart catalog not found: {path}")
        try:
            catalog = load_default_charts(path)
        except ValueError as exc:
            raise CommandError(str(exc)) from exc

        for warning in catalog.validation.warnings:
            self.stdout.write(self.style.WARNING(warning))
        if not catalog.validation.is_valid:
            for error in catalog.validation.errors:
                self.stderr.write(error)
            raise CommandError(f"{len(catalog.validation.errors)} validation error(s) in {path}.")

        store = DjangoConfigurationStore()
        totals = {"processed": 0, "created": 0, "updated": 0, "no_change": 0}
        for config in catalog.charts:
            totals["processed"] += 1
            existing = store.get(config.chart_id)
            if existing is None:
                totals["created"] += 1
            elif existing == config:
                totals["no_change"] += 1
                continue
            else:
                totals["updated"] += 1
            if write:
                store.save(config)

        mode = "CHECK" if check else "WRITE"
        self.stdout.write(f"[{mode}] {totals}")
        return None
