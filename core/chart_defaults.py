"""Default chart catalog loading.

The catalog is a YAML document with a top-level `charts` list; each entry uses
the persisted camelCase configuration shape and is decoded with
`decode_chart_configuration`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from analysis.chart_config import ChartConfiguration
from analysis.chart_validator import ChartValidationResult, validate_chart_configurations
from analysis.config_codec import decode_chart_configuration


@dataclass(frozen=True, slots=True)
class DefaultChartCatalog:
    """Decoded default charts plus their validation result.

    Attributes:
        path: Catalog file the charts were read from.
        charts: Decoded configurations in file order.
        validation: Collected validation errors and warnings.
    """

    path: Path
    charts: tuple[ChartConfiguration, ...]
    validation: ChartValidationResult


def load_default_charts(path: Path) -> DefaultChartCatalog:
    """Read, decode and validate a chart catalog file.

    Args:
        path: YAML catalog path.

    Returns:
        DefaultChartCatalog.

    Raises:
        ValueError: When the file is not a mapping with a `charts` list or an
            entry cannot be decoded.
    """

    raw = path.read_text(encoding="utf-8")
    payload = yaml.safe_load(raw) or {}
    if not isinstance(payload, dict) or not isinstance(payload.get("charts"), list):
        raise ValueError(f"{path} must contain a top-level 'charts' list.")

    charts: list[ChartConfiguration] = []
    for idx, entry in enumerate(payload["charts"]):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: charts[{idx}] must be a mapping.")
        charts.append(decode_chart_configuration(entry))

    return DefaultChartCatalog(
        path=path,
        charts=tuple(charts),
        validation=validate_chart_configurations(charts),
    )
