"""Validation for ChartConfiguration definitions.

Chart configurations are operator-edited and persisted, so they are checked
before they are saved or loaded from the default catalog. Validation collects
every problem instead of failing on the first one; computation itself stays
permissive and never depends on a configuration having been validated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .chart_config import ASPECT_RATIOS, CHART_TYPES, ChartConfiguration
from .chart_engine import ComputedChartResult, compute_chart
from .formula import FormulaError, parse_formula
from .variables import ParameterSource, TokenKind, VariableSource, parse_token


@dataclass(frozen=True, slots=True)
class ChartValidationResult:
    """Result of validating a chart configuration.

    Args:
        is_valid: True when no errors exist.
        errors: Fatal validation errors.
        warnings: Non-fatal warnings intended for editors.
        computed: Computed result when validation ran against statistics.
    """

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    computed: ComputedChartResult | None = None


def validate_chart_configuration(config: ChartConfiguration) -> ChartValidationResult:
    """Validate a single ChartConfiguration.

    Args:
        config: ChartConfiguration to validate.

    Returns:
        ChartValidationResult containing errors and warnings.
    """

    errors: list[str] = []
    warnings: list[str] = []
    prefix = f"ChartConfiguration[{config.chart_id}]"

    if not config.chart_id.strip():
        errors.append("ChartConfiguration.chart_id must be a non-empty string.")
    if not config.title.strip():
        errors.append(f"{prefix}.title must be a non-empty string.")
    if config.type not in CHART_TYPES:
        errors.append(f"{prefix}.type is not a supported value: {config.type!r}.")

    count = len(config.elements)
    if config.type in ("pie", "bar") and not 2 <= count <= 5:
        warnings.append(f"{prefix} {config.type} charts usually carry 2-5 elements; got {count}.")
    if config.type in ("kpi", "value", "text", "image") and count < 1:
        errors.append(f"{prefix} {config.type} charts must contain at least one element.")
    if config.type == "kpi" and count > 1:
        warnings.append(f"{prefix} kpi charts display only the first of {count} elements.")

    if config.type == "value":
        if config.kpi_formatting is None:
            errors.append(f"{prefix} value charts require kpi_formatting.")
        if config.bar_formatting is None:
            errors.append(f"{prefix} value charts require bar_formatting.")
    elif config.kpi_formatting is not None or config.bar_formatting is not None:
        warnings.append(f"{prefix} kpi_formatting/bar_formatting are only used by value charts.")

    if config.aspect_ratio is not None:
        if config.aspect_ratio not in ASPECT_RATIOS:
            errors.append(f"{prefix}.aspect_ratio is not a supported value: {config.aspect_ratio!r}.")
        elif config.type != "image":
            warnings.append(f"{prefix}.aspect_ratio is ignored for {config.type} charts.")

    if config.show_total and config.type in ("kpi", "text", "image"):
        warnings.append(f"{prefix}.show_total has no effect for {config.type} charts.")

    seen_ids: set[str] = set()
    for idx, element in enumerate(config.elements):
        where = f"{prefix}.elements[{idx}]"
        if not element.id.strip():
            errors.append(f"{where}.id must be a non-empty string.")
        elif element.id in seen_ids:
            errors.append(f"{where} duplicates element id {element.id!r}.")
        seen_ids.add(element.id)

        try:
            parsed = parse_formula(element.formula)
        except FormulaError as exc:
            errors.append(f"{where}.formula is malformed: {exc.message} at position {exc.position}.")
            continue

        kinds = {parse_token(token).kind for token in parsed.variables}
        if config.type in ("text", "image"):
            if not parsed.is_single_token:
                warnings.append(f"{where}.formula should be a single variable reference for {config.type} charts.")
        elif kinds & {TokenKind.media, TokenKind.text}:
            warnings.append(f"{where}.formula references text/media content inside a {config.type} chart.")

        for key, parameter in element.parameters.items():
            if not key.strip():
                errors.append(f"{where}.parameters contains an empty key.")
            if not isinstance(parameter.value, (int, float)) or isinstance(parameter.value, bool):
                errors.append(f"{where}.parameters[{key!r}].value must be numeric.")

    return ChartValidationResult(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


def validate_chart_configurations(configs: Iterable[ChartConfiguration]) -> ChartValidationResult:
    """Validate a collection of configurations, including chart id uniqueness."""

    errors: list[str] = []
    warnings: list[str] = []
    seen: set[str] = set()
    for config in configs:
        if config.chart_id in seen:
            errors.append(f"Duplicate ChartConfiguration chart_id: {config.chart_id!r}.")
        seen.add(config.chart_id)
        result = validate_chart_configuration(config)
        errors.extend(result.errors)
        warnings.extend(result.warnings)
    return ChartValidationResult(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


def validate_chart_with_stats(
    config: ChartConfiguration,
    source: VariableSource,
    params: ParameterSource | None = None,
    *,
    media: Mapping[str, str] | None = None,
    texts: Mapping[str, str] | None = None,
) -> ChartValidationResult:
    """Validate a configuration by computing it against real statistics.

    Args:
        config: ChartConfiguration to check.
        source: Variable Source to compute against.
        params: Parameter Source.
        media: Media references for `MEDIA:` tokens.
        texts: Text content for `TEXT:` tokens.

    Returns:
        ChartValidationResult including the computed result.
    """

    structural = validate_chart_configuration(config)
    errors = list(structural.errors)
    warnings = list(structural.warnings)

    computed = compute_chart(config, source, params, media=media, texts=texts)
    for element in computed.elements:
        if element.error is not None:
            errors.append(f"Formula evaluation failed for element {element.label!r}.")
        elif element.unresolved:
            warnings.append(f"Element {element.label!r} references missing variables: {list(element.unresolved)}.")
        if element.is_numeric and element.raw_value < 0:  # type: ignore[operator]
            warnings.append(f"Element {element.label!r} has negative value: {element.raw_value}.")

    if config.type == "pie":
        pie_total = sum(element.raw_value for element in computed.elements if element.is_numeric)  # type: ignore[misc]
        if pie_total == 0:
            warnings.append("All pie chart elements evaluate to zero; the chart will not be visible.")

    return ChartValidationResult(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        computed=computed,
    )
