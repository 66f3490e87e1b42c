"""Unit tests for chart computation."""

from __future__ import annotations

import logging
from dataclasses import replace

import pytest

from analysis.chart_config import ChartConfiguration, ChartElement, ChartParameter
from analysis.chart_engine import (
    compute_active_charts,
    compute_chart,
    compute_charts,
    compute_charts_by_id,
    has_valid_data,
    summarize_results,
)
from analysis.config_store import InMemoryConfigurationStore
from analysis.formatting import FormattingRule
from analysis.variables import build_variable_source

pytestmark = pytest.mark.unit


def _chart(chart_type: str, *formulas: str, **kwargs) -> ChartConfiguration:
    """Build a chart with one element per formula."""

    elements = tuple(
        ChartElement(id=f"e{idx}", label=f"Element {idx}", formula=formula) for idx, formula in enumerate(formulas)
    )
    return ChartConfiguration(chart_id=f"{chart_type}-chart", title="Chart", type=chart_type, elements=elements, **kwargs)


def test_sum_of_statistics() -> None:
    """A bracketed sum evaluates to the sum of its statistics."""

    chart = _chart("kpi", "([stats.female] + [stats.male])")
    result = compute_chart(chart, {"female": 120, "male": 80})
    assert result.elements[0].raw_value == 200.0
    assert result.kpi_value == 200.0
    assert result.formatted_kpi_value == "200"


@pytest.mark.parametrize(
    ("formula", "source"),
    [
        ("[stats.remoteImages] / [stats.female]", {"remoteImages": 50, "female": 0}),
        ("[stats.merched] / [stats.stadium] * 100", {"merched": 30, "stadium": 0}),
    ],
)
def test_zero_divisor_yields_zero(formula: str, source: dict[str, int]) -> None:
    """Ratios over empty denominators compute to 0."""

    result = compute_chart(_chart("kpi", formula), source)
    assert result.elements[0].raw_value == 0.0
    assert result.elements[0].error is None


def test_unresolved_variable_counts_as_zero(caplog: pytest.LogCaptureFixture) -> None:
    """Unknown statistics evaluate as 0, are reported and logged."""

    with caplog.at_level(logging.WARNING, logger="analysis.chart_engine"):
        result = compute_chart(_chart("kpi", "[stats.unknownField] + 5"), {})
    element = result.elements[0]
    assert element.raw_value == 5.0
    assert element.unresolved == ("stats.unknownField",)
    assert "unresolved variables" in caplog.text


def test_malformed_formula_does_not_taint_siblings() -> None:
    """A malformed element shows the placeholder while siblings compute."""

    chart = _chart("bar", "[stats.female] + (", "[stats.male] * 2", show_total=True)
    result = compute_chart(chart, {"female": 120, "male": 80})
    broken, healthy = result.elements
    assert broken.raw_value is None
    assert broken.formatted_value == "N/A"
    assert broken.error is not None and "Unbalanced parentheses" in broken.error
    assert healthy.raw_value == 160.0
    assert healthy.formatted_value == "160"
    assert result.has_errors is True
    assert result.total == 160.0


def test_oversized_formula_does_not_taint_siblings() -> None:
    """A formula past the token limit becomes an element error, not a crash."""

    chart = _chart("bar", " + ".join(["[stats.female]"] * 1500), "[stats.male]")
    result = compute_chart(chart, {"female": 1, "male": 2})
    oversized, healthy = result.elements
    assert oversized.raw_value is None
    assert oversized.formatted_value == "N/A"
    assert oversized.error is not None and "too long" in oversized.error
    assert healthy.raw_value == 2.0


def test_value_chart_dual_formatting() -> None:
    """Value charts format the total and the elements with separate rules."""

    chart = _chart(
        "value",
        "10",
        "20",
        kpi_formatting=FormattingRule(rounded=True),
        bar_formatting=FormattingRule(rounded=True, prefix="€"),
    )
    result = compute_chart(chart, {})
    assert result.total == 30.0
    assert result.kpi_value == 30.0
    assert result.formatted_total == "30"
    assert result.formatted_kpi_value == "30"
    assert [element.formatted_value for element in result.elements] == ["€10", "€20"]


def test_value_chart_formatting_rules_do_not_change_raw_values() -> None:
    """Changing one view's rule leaves the other's numbers untouched."""

    base = _chart(
        "value",
        "10.4",
        "20.4",
        kpi_formatting=FormattingRule(rounded=True),
        bar_formatting=FormattingRule(rounded=True, prefix="€"),
    )
    changed = replace(base, bar_formatting=FormattingRule(rounded=False, suffix=" EUR"))
    first = compute_chart(base, {})
    second = compute_chart(changed, {})
    assert [e.raw_value for e in first.elements] == [e.raw_value for e in second.elements]
    assert first.formatted_total == second.formatted_total == "31"
    assert [e.formatted_value for e in second.elements] == ["10.40 EUR", "20.40 EUR"]


def test_value_chart_bar_rule_wins_over_element_rule() -> None:
    """In value charts the bar rule formats elements even when they carry a rule."""

    chart = ChartConfiguration(
        chart_id="value",
        title="Generated Value",
        type="value",
        elements=(ChartElement(id="a", label="A", formula="5", formatting=FormattingRule(suffix="%")),),
        kpi_formatting=FormattingRule(prefix="€"),
        bar_formatting=FormattingRule(prefix="$"),
    )
    result = compute_chart(chart, {})
    assert result.elements[0].formatted_value == "$5"
    assert result.formatted_total == "€5"


def test_element_rule_then_value_type_then_chart_rule() -> None:
    """Element formatting falls back to the legacy type and then the chart rule."""

    chart = ChartConfiguration(
        chart_id="mixed",
        title="Mixed",
        type="bar",
        elements=(
            ChartElement(id="a", label="A", formula="1", formatting=FormattingRule(suffix=" pts")),
            ChartElement(id="b", label="B", formula="2", value_type="percentage"),
            ChartElement(id="c", label="C", formula="3"),
        ),
        formatting=FormattingRule(prefix="€"),
        show_total=True,
    )
    result = compute_chart(chart, {})
    assert [e.formatted_value for e in result.elements] == ["1 pts", "2%", "€3"]
    assert result.formatted_total == "€6"


def test_total_uses_first_element_rule_without_chart_rule() -> None:
    """Totals fall back to the first element's rule."""

    chart = ChartConfiguration(
        chart_id="merch",
        title="Merch",
        type="bar",
        elements=(
            ChartElement(id="a", label="A", formula="1.2", formatting=FormattingRule(prefix="€")),
            ChartElement(id="b", label="B", formula="2.2"),
        ),
        show_total=True,
    )
    assert compute_chart(chart, {}).formatted_total == "€3"


def test_total_absent_without_show_total(gender_pie: ChartConfiguration) -> None:
    """Pie charts without `show_total` carry no total."""

    result = compute_chart(gender_pie, {"female": 1, "male": 2})
    assert result.total is None
    assert result.formatted_total is None


def test_element_parameters_and_caller_overrides() -> None:
    """Element parameter defaults apply unless the caller overrides them."""

    element = ChartElement(
        id="jersey",
        label="Jersey",
        formula="[stats.jersey] * [PARAM:jerseyPrice]",
        parameters={"jerseyPrice": ChartParameter(value=70.0, label="Jersey price", unit="EUR")},
    )
    chart = ChartConfiguration(chart_id="merch", title="Merch", type="bar", elements=(element,))
    assert compute_chart(chart, {"jersey": 2}).elements[0].raw_value == 140.0
    assert compute_chart(chart, {"jersey": 2}, {"jerseyPrice": 80.0}).elements[0].raw_value == 160.0


def test_manual_data_resolves_per_element() -> None:
    """`MANUAL:` tokens read element manual data."""

    element = ChartElement(id="reach", label="Reach", formula="[MANUAL:reach] * 2", manual_data={"reach": 21.0})
    chart = ChartConfiguration(chart_id="reach", title="Reach", type="kpi", elements=(element,))
    assert compute_chart(chart, {}).kpi_value == 42.0


def test_text_chart_returns_string_slot(event_stats: dict) -> None:
    """Text charts pass single-token text values through unformatted."""

    chart = _chart("text", "[stats.reportText3]", formatting=FormattingRule(prefix="€"))
    result = compute_chart(chart, event_stats)
    assert result.kpi_value == "Great turnout despite the rain."
    assert result.formatted_kpi_value == "Great turnout despite the rain."
    assert has_valid_data(result) is True


def test_image_chart_resolves_media_and_defaults_aspect_ratio() -> None:
    """Image charts read media references and default to 16:9."""

    chart = _chart("image", "[MEDIA:hero]")
    result = compute_chart(chart, {}, media={"hero": "https://cdn.example.com/hero.jpg"})
    assert result.kpi_value == "https://cdn.example.com/hero.jpg"
    assert result.aspect_ratio == "16:9"

    square = compute_chart(replace(chart, aspect_ratio="1:1"), {}, media={"hero": "x.png"})
    assert square.aspect_ratio == "1:1"


def test_unresolved_slot_token_renders_empty() -> None:
    """A missing text or image slot yields an empty string, not 0."""

    result = compute_chart(_chart("image", "[MEDIA:missing]"), {})
    assert result.kpi_value == ""
    assert has_valid_data(result) is False


def test_string_elements_do_not_contribute_to_totals() -> None:
    """Text values inside numeric charts are kept but excluded from totals."""

    chart = _chart("bar", "[TEXT:note]", "5", show_total=True)
    result = compute_chart(chart, {}, texts={"note": "see appendix"})
    assert result.elements[0].raw_value == "see appendix"
    assert result.total == 5.0


def test_scalar_chart_without_elements_has_errors() -> None:
    """KPI charts need an element to show."""

    result = compute_chart(_chart("kpi"), {})
    assert result.has_errors is True
    assert result.formatted_kpi_value == "N/A"


def test_label_template_is_resolved() -> None:
    """`{{stats.field}}` in labels is replaced by the statistic value."""

    chart = ChartConfiguration(
        chart_id="images",
        title="Images",
        type="bar",
        elements=(ChartElement(id="a", label="Approved of {{stats.allImages}}", formula="[stats.approvedImages]"),),
    )
    result = compute_chart(chart, {"allImages": 50.0, "approvedImages": 40})
    assert result.elements[0].label == "Approved of 50"
    assert compute_chart(chart, {}).elements[0].label == "Approved of N/A"


def test_custom_placeholder() -> None:
    """Callers may choose the failed-element placeholder."""

    result = compute_chart(_chart("kpi", "1 +"), {}, placeholder="-")
    assert result.elements[0].formatted_value == "-"
    assert result.formatted_kpi_value == "-"


def test_recomputation_is_deterministic(event_stats: dict, gender_pie: ChartConfiguration) -> None:
    """Identical inputs produce equal results."""

    assert compute_chart(gender_pie, event_stats) == compute_chart(gender_pie, event_stats)


def test_sum_formulas_are_additive_across_event_sets() -> None:
    """Totals over aggregated events equal the sum of per-set totals."""

    chart = _chart("bar", "[stats.female] + [stats.male]", "[stats.jersey] * 70", show_total=True)
    first = [{"female": 10, "male": 5, "jersey": 1}, {"female": 3, "male": 2, "jersey": 0}]
    second = [{"female": 7, "male": 8, "jersey": 4}]

    combined = compute_chart(chart, build_variable_source(first + second))
    separate = [compute_chart(chart, build_variable_source(events)) for events in (first, second)]
    assert combined.total == pytest.approx(sum(result.total for result in separate))


def test_ratio_formulas_are_not_additive() -> None:
    """Ratios over aggregated events are not the sum of per-set ratios."""

    chart = _chart("kpi", "[stats.merched] / [stats.stadium] * 100")
    first = [{"merched": 10, "stadium": 100}]
    second = [{"merched": 30, "stadium": 100}]

    combined = compute_chart(chart, build_variable_source(first + second)).kpi_value
    separate = sum(compute_chart(chart, build_variable_source(events)).kpi_value for events in (first, second))
    assert combined == pytest.approx(20.0)
    assert separate == pytest.approx(40.0)


def test_compute_charts_preserves_input_order(gender_pie: ChartConfiguration) -> None:
    """Concurrent computation returns results aligned with the input."""

    configs = [replace(gender_pie, chart_id=f"chart-{idx}") for idx in range(8)]
    results = compute_charts(configs, {"female": 1, "male": 1}, max_workers=4)
    assert [result.chart_id for result in results] == [config.chart_id for config in configs]
    assert compute_charts([], {}) == ()


def test_compute_charts_isolates_unexpected_failures(gender_pie: ChartConfiguration) -> None:
    """A chart that raises is replaced by an error result; others still compute."""

    bad_element = ChartElement(id="bad", label=None, formula="1")  # type: ignore[arg-type]
    broken = replace(gender_pie, chart_id="broken", elements=(bad_element,))
    results = compute_charts([broken, gender_pie], {"female": 1, "male": 2}, max_workers=1)
    assert results[0].has_errors is True
    assert results[0].elements[0].formatted_value == "N/A"
    assert results[1].has_errors is False


def test_store_backed_helpers(gender_pie: ChartConfiguration) -> None:
    """Active charts compute in display order; unknown and inactive ids are skipped."""

    kpi = _chart("kpi", "1", order=0)
    hidden = replace(_chart("bar", "1", "2"), chart_id="hidden", is_active=False)
    store = InMemoryConfigurationStore([gender_pie, kpi, hidden])

    active = compute_active_charts(store, {"female": 1, "male": 1})
    assert [result.chart_id for result in active] == ["kpi-chart", "gender-distribution"]

    picked = compute_charts_by_id(store, ["gender-distribution", "missing", "hidden"], {"female": 1})
    assert [result.chart_id for result in picked] == ["gender-distribution"]


def test_has_valid_data_by_chart_type(gender_pie: ChartConfiguration) -> None:
    """Pie/bar charts need a positive sum; KPI charts need a number."""

    assert has_valid_data(compute_chart(gender_pie, {"female": 1})) is True
    assert has_valid_data(compute_chart(gender_pie, {})) is False
    assert has_valid_data(compute_chart(_chart("kpi", "0"), {})) is True
    assert has_valid_data(compute_chart(_chart("kpi", "1 +"), {})) is False


def test_summarize_results_counts(gender_pie: ChartConfiguration) -> None:
    """The calculation summary counts charts, errors and types."""

    broken = _chart("bar", "1 +", "2")
    configs = [gender_pie, broken]
    summary = summarize_results(configs, compute_charts(configs, {}, max_workers=1))
    assert summary.total_charts == 2
    assert summary.active_charts == 2
    assert summary.charts_with_errors == 1
    assert summary.elements_with_errors == 1
    assert summary.total_elements == 4
    assert summary.chart_types["pie"] == 1
    assert summary.chart_types["bar"] == 1
    assert summary.chart_types["image"] == 0
