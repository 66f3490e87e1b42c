"""Configuration Store interface for chart definitions.

Chart computation receives its configurations through an explicitly injected
store instead of a shared module-level cache. The Django app provides a
database-backed implementation; the in-memory store here serves tests,
scripts and callers that already hold their configurations.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .chart_config import ChartConfiguration


class ConfigurationStore(Protocol):
    """Read/write access to chart configurations keyed by `chart_id`."""

    def get(self, chart_id: str) -> ChartConfiguration | None:
        """Return a configuration, or None when missing."""

    def list(self, *, active_only: bool = False) -> tuple[ChartConfiguration, ...]:
        """Return configurations ordered by (`order`, `chart_id`)."""

    def save(self, config: ChartConfiguration) -> None:
        """Create or replace a configuration."""

    def delete(self, chart_id: str) -> bool:
        """Delete a configuration, returning True when it existed."""


class InMemoryConfigurationStore:
    """ConfigurationStore backed by a dictionary."""

    def __init__(self, configs: Iterable[ChartConfiguration] = ()) -> None:
        """Initialize the store, rejecting duplicate chart ids."""

        self._configs: dict[str, ChartConfiguration] = {}
        for config in configs:
            if config.chart_id in self._configs:
                raise ValueError(f"Duplicate ChartConfiguration chart_id: {config.chart_id!r}")
            self._configs[config.chart_id] = config

    def get(self, chart_id: str) -> ChartConfiguration | None:
        return self._configs.get(chart_id)

    def list(self, *, active_only: bool = False) -> tuple[ChartConfiguration, ...]:
        configs = [c for c in self._configs.values() if c.is_active or not active_only]
        return tuple(sorted(configs, key=lambda c: (c.order, c.chart_id)))

    def save(self, config: ChartConfiguration) -> None:
        self._configs[config.chart_id] = config

    def delete(self, chart_id: str) -> bool:
        return self._configs.pop(chart_id, None) is not None
