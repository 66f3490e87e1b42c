"""Chart computation for declarative chart configurations.

This module consumes a ChartConfiguration plus a Variable Source and produces a
deterministic ComputedChartResult the report UI can render without performing
calculations inline. Errors are element-scoped: a malformed formula marks its
own element with the placeholder and never aborts sibling elements or other
charts.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Final

from .chart_config import CHART_TYPES, ChartConfiguration, ChartElement
from .config_store import ConfigurationStore
from .formatting import NA_PLACEHOLDER, FormattingRule, format_value, pick_rule
from .formula import FormulaError, evaluate_formula, parse_formula
from .variables import ParameterSource, VariableResolver, VariableSource, lookup_stat

logger = logging.getLogger(__name__)

_LABEL_TEMPLATE_RE: Final[re.Pattern[str]] = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_SCALAR_TYPES: Final[frozenset[str]] = frozenset({"kpi", "text", "image"})
_SLOT_TYPES: Final[frozenset[str]] = frozenset({"text", "image"})


@dataclass(frozen=True, slots=True)
class ElementResult:
    """Computed value for one chart element.

    Args:
        id: Element identifier.
        label: Display label with any `{{...}}` template resolved.
        color: Display color.
        raw_value: Numeric result, string for text/media slots, or None when
            the formula failed.
        formatted_value: Display string (the placeholder when failed).
        error: Failure message when the formula was malformed.
        unresolved: Variable tokens that were not found and counted as 0.
    """

    id: str
    label: str
    color: str
    raw_value: float | str | None
    formatted_value: str
    error: str | None = None
    unresolved: tuple[str, ...] = ()

    @property
    def is_numeric(self) -> bool:
        """Return True when the element produced a number."""

        return isinstance(self.raw_value, float)


@dataclass(frozen=True, slots=True)
class ComputedChartResult:
    """Chart output produced from a ChartConfiguration.

    Args:
        chart_id: Configuration chart id.
        title: Configuration title.
        type: Configuration chart type.
        elements: Element results in configuration order.
        total: Sum of numeric element values when totals apply.
        formatted_total: Display string for `total`.
        kpi_value: Scalar view (first element for kpi/text/image, total for value).
        formatted_kpi_value: Display string for `kpi_value`.
        has_errors: True when any element failed.
        emoji: Configuration emoji.
        subtitle: Configuration subtitle.
        total_label: Configuration total label.
        aspect_ratio: Image charts: display aspect ratio.
    """

    chart_id: str
    title: str
    type: str
    elements: tuple[ElementResult, ...]
    total: float | None = None
    formatted_total: str | None = None
    kpi_value: float | str | None = None
    formatted_kpi_value: str | None = None
    has_errors: bool = False
    emoji: str | None = None
    subtitle: str | None = None
    total_label: str | None = None
    aspect_ratio: str | None = None


@dataclass(frozen=True, slots=True)
class CalculationSummary:
    """Counts describing a batch of computed charts."""

    total_charts: int
    active_charts: int
    charts_with_errors: int
    elements_with_errors: int
    total_elements: int
    chart_types: Mapping[str, int]


def compute_chart(
    config: ChartConfiguration,
    source: VariableSource,
    params: ParameterSource | None = None,
    *,
    media: Mapping[str, str] | None = None,
    texts: Mapping[str, str] | None = None,
    placeholder: str = NA_PLACEHOLDER,
) -> ComputedChartResult:
    """Compute one chart from a Variable Source.

    Args:
        config: Chart configuration.
        source: Variable Source (per event or aggregated).
        params: Parameter Source for `PARAM:` tokens; overrides element defaults.
        media: Media references for `MEDIA:` tokens.
        texts: Text content for `TEXT:` tokens.
        placeholder: Display text for failed elements.

    Returns:
        ComputedChartResult; never raises for malformed formulas.
    """

    resolver = VariableResolver(source, params, media=media, texts=texts)
    elements = tuple(
        _compute_element(config, element, resolver, source=source, placeholder=placeholder)
        for element in config.elements
    )
    has_errors = any(element.error is not None for element in elements)

    total: float | None = None
    formatted_total: str | None = None
    if config.show_total or config.type == "value":
        total = 0.0
        for element in elements:
            if element.is_numeric:
                total += element.raw_value  # type: ignore[operator]
        total += 0.0
        formatted_total = format_value(total, _total_rule(config), placeholder=placeholder)

    kpi_value: float | str | None = None
    formatted_kpi_value: str | None = None
    if config.type == "value":
        kpi_value, formatted_kpi_value = total, formatted_total
    elif config.type in _SCALAR_TYPES:
        if elements:
            kpi_value = elements[0].raw_value
            formatted_kpi_value = elements[0].formatted_value
        else:
            formatted_kpi_value = placeholder
            has_errors = True

    return ComputedChartResult(
        chart_id=config.chart_id,
        title=config.title,
        type=config.type,
        elements=elements,
        total=total,
        formatted_total=formatted_total,
        kpi_value=kpi_value,
        formatted_kpi_value=formatted_kpi_value,
        has_errors=has_errors,
        emoji=config.emoji,
        subtitle=config.subtitle,
        total_label=config.total_label,
        aspect_ratio=(config.aspect_ratio or "16:9") if config.type == "image" else None,
    )


def _compute_element(
    config: ChartConfiguration,
    element: ChartElement,
    resolver: VariableResolver,
    *,
    source: VariableSource,
    placeholder: str,
) -> ElementResult:
    """Evaluate one element formula and format the result."""

    label = _resolve_label(element.label, source, placeholder=placeholder)
    element_resolver = resolver.with_element(params=element.parameter_values(), manual=element.manual_data)
    try:
        parsed = parse_formula(element.formula)
        unresolved = tuple(token for token in parsed.variables if not element_resolver.resolve(token).found)
        value = evaluate_formula(parsed, element_resolver)
    except FormulaError as exc:
        logger.info("Chart %s element %s failed: %s", config.chart_id, element.id, exc)
        return ElementResult(
            id=element.id,
            label=label,
            color=element.color,
            raw_value=None,
            formatted_value=placeholder,
            error=str(exc),
        )

    if unresolved:
        logger.warning(
            "Chart %s element %s: unresolved variables %s counted as 0.",
            config.chart_id,
            element.id,
            list(unresolved),
        )
    if config.type in _SLOT_TYPES and parsed.is_single_token and unresolved:
        value = ""

    return ElementResult(
        id=element.id,
        label=label,
        color=element.color,
        raw_value=value,
        formatted_value=format_value(value, _element_rule(config, element), placeholder=placeholder),
        unresolved=unresolved,
    )


def _element_rule(config: ChartConfiguration, element: ChartElement) -> FormattingRule:
    """Return the display rule for an element."""

    element_rule = element.formatting or FormattingRule.for_value_type(element.value_type)
    if config.type == "value":
        return pick_rule(config.bar_formatting, element_rule, config.formatting)
    return pick_rule(element_rule, config.formatting)


def _total_rule(config: ChartConfiguration) -> FormattingRule:
    """Return the display rule for a chart total."""

    if config.type == "value":
        return pick_rule(config.kpi_formatting, config.formatting)
    first = config.elements[0] if config.elements else None
    first_rule = None
    if first is not None:
        first_rule = first.formatting or FormattingRule.for_value_type(first.value_type)
    return pick_rule(config.formatting, first_rule)


def _resolve_label(label: str, source: VariableSource, *, placeholder: str) -> str:
    """Replace a `{{stats.field}}` template in a label with the field value."""

    match = _LABEL_TEMPLATE_RE.search(label)
    if match is None:
        return label
    value = lookup_stat(source, match.group(1))
    if value is None:
        replacement = placeholder
    elif isinstance(value, float) and value.is_integer():
        replacement = str(int(value))
    else:
        replacement = str(value)
    return label[: match.start()] + replacement + label[match.end() :]


def compute_charts(
    configs: Iterable[ChartConfiguration],
    source: VariableSource,
    params: ParameterSource | None = None,
    *,
    media: Mapping[str, str] | None = None,
    texts: Mapping[str, str] | None = None,
    placeholder: str = NA_PLACEHOLDER,
    max_workers: int | None = None,
) -> tuple[ComputedChartResult, ...]:
    """Compute many charts concurrently.

    Each computation only reads its inputs, so charts are dispatched to a
    thread pool without locking. Results are returned in input order.

    Args:
        configs: Chart configurations to compute.
        source: Shared Variable Source.
        params: Shared Parameter Source.
        media: Media references for `MEDIA:` tokens.
        texts: Text content for `TEXT:` tokens.
        placeholder: Display text for failed elements.
        max_workers: Thread pool size; 1 computes sequentially.

    Returns:
        Tuple of ComputedChartResult aligned with `configs`.
    """

    pending = tuple(configs)
    kwargs = {"media": media, "texts": texts, "placeholder": placeholder}
    if not pending:
        return ()
    if max_workers == 1 or len(pending) == 1:
        return tuple(_compute_isolated(config, source, params, **kwargs) for config in pending)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(_compute_isolated, config, source, params, **kwargs) for config in pending]
        return tuple(future.result() for future in futures)


def _compute_isolated(
    config: ChartConfiguration,
    source: VariableSource,
    params: ParameterSource | None,
    **kwargs,
) -> ComputedChartResult:
    """Compute a chart, converting unexpected failures into an error result."""

    try:
        return compute_chart(config, source, params, **kwargs)
    except Exception:
        logger.exception("Chart %s could not be computed.", config.chart_id)
        return _failed_result(config, placeholder=kwargs.get("placeholder", NA_PLACEHOLDER))


def _failed_result(config: ChartConfiguration, *, placeholder: str) -> ComputedChartResult:
    """Return a result marking every element of a chart as failed."""

    elements = tuple(
        ElementResult(
            id=element.id,
            label=element.label,
            color=element.color,
            raw_value=None,
            formatted_value=placeholder,
            error="Chart computation failed.",
        )
        for element in config.elements
    )
    return ComputedChartResult(
        chart_id=config.chart_id,
        title=config.title,
        type=config.type,
        elements=elements,
        formatted_kpi_value=placeholder if config.type in _SCALAR_TYPES | {"value"} else None,
        has_errors=True,
        emoji=config.emoji,
        subtitle=config.subtitle,
        total_label=config.total_label,
    )


def compute_active_charts(
    store: ConfigurationStore,
    source: VariableSource,
    params: ParameterSource | None = None,
    **kwargs,
) -> tuple[ComputedChartResult, ...]:
    """Compute every active chart from an injected Configuration Store.

    Args:
        store: Configuration Store providing chart definitions.
        source: Variable Source.
        params: Parameter Source.
        **kwargs: Forwarded to `compute_charts`.

    Returns:
        Results ordered by chart display order.
    """

    return compute_charts(store.list(active_only=True), source, params, **kwargs)


def compute_charts_by_id(
    store: ConfigurationStore,
    chart_ids: Sequence[str],
    source: VariableSource,
    params: ParameterSource | None = None,
    **kwargs,
) -> tuple[ComputedChartResult, ...]:
    """Compute the listed charts, skipping unknown or inactive ids.

    Args:
        store: Configuration Store providing chart definitions.
        chart_ids: Requested chart ids, in display order.
        source: Variable Source.
        params: Parameter Source.
        **kwargs: Forwarded to `compute_charts`.

    Returns:
        Results for the charts that exist and are active, in request order.
    """

    configs: list[ChartConfiguration] = []
    for chart_id in chart_ids:
        config = store.get(chart_id)
        if config is None:
            logger.warning("Chart configuration not found: %s", chart_id)
            continue
        if not config.is_active:
            logger.info("Skipping inactive chart: %s", chart_id)
            continue
        configs.append(config)
    return compute_charts(configs, source, params, **kwargs)


def has_valid_data(result: ComputedChartResult) -> bool:
    """Return True when a result has something worth rendering.

    Text and image charts need a non-empty string, KPI charts a numeric value,
    and pie/bar/value charts a positive sum of numeric element values.
    """

    if result.type in _SLOT_TYPES:
        return isinstance(result.kpi_value, str) and bool(result.kpi_value)
    if result.type == "kpi":
        return isinstance(result.kpi_value, float)
    if not result.elements:
        return False
    total = sum(element.raw_value for element in result.elements if element.is_numeric)  # type: ignore[misc]
    return total > 0


def summarize_results(
    configs: Sequence[ChartConfiguration],
    results: Sequence[ComputedChartResult],
) -> CalculationSummary:
    """Summarize a batch of computed charts for diagnostics."""

    chart_types = {chart_type: 0 for chart_type in sorted(CHART_TYPES)}
    elements_with_errors = 0
    total_elements = 0
    for result in results:
        total_elements += len(result.elements)
        elements_with_errors += sum(1 for element in result.elements if element.error is not None)
        if result.type in chart_types:
            chart_types[result.type] += 1

    return CalculationSummary(
        total_charts=len(configs),
        active_charts=sum(1 for config in configs if config.is_active),
        charts_with_errors=sum(1 for result in results if result.has_errors),
        elements_with_errors=elements_with_errors,
        total_elements=total_elements,
        chart_types=chart_types,
    )
