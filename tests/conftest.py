"""Pytest fixtures shared across unit and integration tests."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from analysis.chart_config import ChartConfiguration, ChartElement
from analysis.formatting import FormattingRule


@pytest.fixture
def event_stats() -> dict[str, float | int | str]:
    """Return statistics for a single event, mixing prefixed and bare keys."""

    return {
        "female": 120,
        "male": 80,
        "stats.remoteImages": 30,
        "hostessImages": 15,
        "selfies": 5,
        "approvedImages": 40,
        "indoor": 10,
        "outdoor": 20,
        "stadium": 170,
        "eventAttendees": 1000,
        "jersey": 12,
        "reportText3": "Great turnout despite the rain.",
    }


@pytest.fixture
def gender_pie() -> ChartConfiguration:
    """Return a two-element pie chart over gender counts."""

    return ChartConfiguration(
        chart_id="gender-distribution",
        title="Gender Distribution",
        type="pie",
        order=1,
        elements=(
            ChartElement(id="female", label="Female", formula="[stats.female]", color="#ff6b9d"),
            ChartElement(id="male", label="Male", formula="[stats.male]", color="#4a90e2"),
        ),
    )


@pytest.fixture
def euro() -> FormattingRule:
    """Return a rounded euro formatting rule."""

    return FormattingRule(rounded=True, prefix="€")


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    - `unit`: pure, fast tests with no database access.
    - `integration`: tests touching Django, the database, commands, or IO.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
