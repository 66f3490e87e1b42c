"""Encoding/decoding helpers for persisted chart configuration payloads.

Configurations are stored as camelCase JSON documents (`chartId`, `showTotal`,
`kpiFormatting`, ...). Decoding is best-effort for optional fields so that
older documents keep loading; only a missing `chartId` or an unknown `type`
is rejected.
"""

from __future__ import annotations

from typing import Any, cast

from .chart_config import (
    ASPECT_RATIOS,
    CHART_TYPES,
    DEFAULT_ELEMENT_COLOR,
    ChartConfiguration,
    ChartElement,
    ChartParameter,
)
from .formatting import FormattingRule


def encode_chart_configuration(config: ChartConfiguration) -> dict[str, Any]:
    """Encode a ChartConfiguration into a JSON-serializable dictionary.

    Args:
        config: ChartConfiguration to encode.

    Returns:
        Dict payload safe for JSONField storage.
    """

    payload: dict[str, Any] = {
        "chartId": config.chart_id,
        "title": config.title,
        "type": config.type,
        "order": config.order,
        "isActive": config.is_active,
        "showTotal": config.show_total,
        "elements": [_encode_element(element) for element in config.elements],
    }
    optional = {
        "emoji": config.emoji,
        "subtitle": config.subtitle,
        "totalLabel": config.total_label,
        "formatting": _encode_rule(config.formatting),
        "kpiFormatting": _encode_rule(config.kpi_formatting),
        "barFormatting": _encode_rule(config.bar_formatting),
        "aspectRatio": config.aspect_ratio,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})
    return payload


def _encode_element(element: ChartElement) -> dict[str, Any]:
    """Encode a ChartElement."""

    payload: dict[str, Any] = {
        "id": element.id,
        "label": element.label,
        "formula": element.formula,
        "color": element.color,
    }
    if element.description is not None:
        payload["description"] = element.description
    if element.formatting is not None:
        payload["formatting"] = _encode_rule(element.formatting)
    if element.value_type is not None:
        payload["type"] = element.value_type
    if element.parameters:
        payload["parameters"] = {
            key: {
                "value": parameter.value,
                "label": parameter.label,
                "description": parameter.description,
                **({"unit": parameter.unit} if parameter.unit is not None else {}),
            }
            for key, parameter in element.parameters.items()
        }
    if element.manual_data:
        payload["manualData"] = dict(element.manual_data)
    return payload


def _encode_rule(rule: FormattingRule | None) -> dict[str, Any] | None:
    """Encode a FormattingRule."""

    if rule is None:
        return None
    return {"rounded": rule.rounded, "prefix": rule.prefix, "suffix": rule.suffix}


def decode_chart_configuration(payload: dict[str, Any]) -> ChartConfiguration:
    """Decode a ChartConfiguration from a stored payload dictionary.

    Args:
        payload: Payload previously produced by `encode_chart_configuration`
            or authored by hand (YAML catalog, admin edits).

    Returns:
        ChartConfiguration instance.

    Raises:
        ValueError: When `chartId` is missing or `type` is not supported.
    """

    chart_id = str(payload.get("chartId") or "").strip()
    if not chart_id:
        raise ValueError("Chart configuration payload requires a chartId.")
    chart_type = str(payload.get("type") or "").strip()
    if chart_type not in CHART_TYPES:
        raise ValueError(f"Chart configuration {chart_id!r} has unsupported type {chart_type!r}.")

    elements_raw = payload.get("elements")
    elements = tuple(
        _decode_element(cast(dict[str, Any], raw), index=idx)
        for idx, raw in enumerate(elements_raw if isinstance(elements_raw, list) else [])
        if isinstance(raw, dict)
    )
    aspect_ratio = _parse_str(payload.get("aspectRatio"))
    return ChartConfiguration(
        chart_id=chart_id,
        title=str(payload.get("title") or ""),
        type=chart_type,  # type: ignore[arg-type]
        elements=elements,
        order=_parse_int(payload.get("order")) or 0,
        is_active=_parse_bool(payload.get("isActive"), default=True),
        emoji=_parse_str(payload.get("emoji")),
        subtitle=_parse_str(payload.get("subtitle")),
        show_total=_parse_bool(payload.get("showTotal"), default=False),
        total_label=_parse_str(payload.get("totalLabel")),
        formatting=_decode_rule(payload.get("formatting")),
        kpi_formatting=_decode_rule(payload.get("kpiFormatting")),
        bar_formatting=_decode_rule(payload.get("barFormatting")),
        aspect_ratio=aspect_ratio if aspect_ratio in ASPECT_RATIOS else None,  # type: ignore[arg-type]
    )


def _decode_element(raw: dict[str, Any], *, index: int) -> ChartElement:
    """Decode a ChartElement, defaulting missing display fields."""

    value_type = _parse_str(raw.get("type"))
    parameters: dict[str, ChartParameter] = {}
    parameters_raw = raw.get("parameters")
    if isinstance(parameters_raw, dict):
        for key, entry in parameters_raw.items():
            entry_map = entry if isinstance(entry, dict) else {"value": entry}
            value = _parse_float(entry_map.get("value"))
            parameters[str(key)] = ChartParameter(
                value=value if value is not None else 0.0,
                label=str(entry_map.get("label") or key),
                description=str(entry_map.get("description") or ""),
                unit=_parse_str(entry_map.get("unit")),
            )

    manual_data: dict[str, float] = {}
    manual_raw = raw.get("manualData")
    if isinstance(manual_raw, dict):
        for key, value in manual_raw.items():
            parsed = _parse_float(value)
            if parsed is not None:
                manual_data[str(key)] = parsed

    return ChartElement(
        id=str(raw.get("id") or f"element-{index + 1}"),
        label=str(raw.get("label") or ""),
        formula=str(raw.get("formula") or ""),
        color=str(raw.get("color") or DEFAULT_ELEMENT_COLOR),
        description=_parse_str(raw.get("description")),
        formatting=_decode_rule(raw.get("formatting")),
        value_type=value_type if value_type in ("currency", "percentage", "number") else None,  # type: ignore[arg-type]
        parameters=parameters,
        manual_data=manual_data,
    )


def _decode_rule(value: object) -> FormattingRule | None:
    """Best-effort FormattingRule parsing."""

    if not isinstance(value, dict):
        return None
    return FormattingRule(
        rounded=_parse_bool(value.get("rounded"), default=True),
        prefix=str(value.get("prefix") or ""),
        suffix=str(value.get("suffix") or ""),
    )


def _parse_str(value: object) -> str | None:
    """Return a non-empty string, or None."""

    if value is None:
        return None
    text = str(value)
    return text if text else None


def _parse_int(value: object) -> int | None:
    """Best-effort int parsing for stored payloads."""

    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(str(value))
    except ValueError:
        return None


def _parse_float(value: object) -> float | None:
    """Best-effort float parsing for stored payloads."""

    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(str(value))
    except ValueError:
        return None


def _parse_bool(value: object, *, default: bool) -> bool:
    """Best-effort bool parsing for stored payloads."""

    if isinstance(value, bool):
        return value
    if value is None:
        return default
    normalized = str(value).strip().casefold()
    return normalized in {"1", "true", "yes", "on"}
