"""Unit tests for the persisted chart configuration shape."""

from __future__ import annotations

import pytest

from analysis.chart_config import DEFAULT_ELEMENT_COLOR, ChartConfiguration, ChartElement, ChartParameter
from analysis.config_codec import decode_chart_configuration, encode_chart_configuration
from analysis.formatting import FormattingRule

pytestmark = pytest.mark.unit


def _value_chart() -> ChartConfiguration:
    """Return a fully populated value chart."""

    return ChartConfiguration(
        chart_id="value",
        title="Generated Value",
        type="value",
        order=6,
        emoji="📊",
        subtitle="Breakdown",
        show_total=True,
        total_label="Total Generated Value",
        kpi_formatting=FormattingRule(rounded=True, prefix="€"),
        bar_formatting=FormattingRule(rounded=False, prefix="€"),
        elements=(
            ChartElement(
                id="jersey",
                label="Jersey",
                formula="[stats.jersey] * [PARAM:jerseyPrice]",
                color="#7b68ee",
                description="Jersey sales",
                value_type="currency",
                parameters={"jerseyPrice": ChartParameter(value=70.0, label="Jersey price", unit="EUR")},
                manual_data={"reach": 12.0},
            ),
        ),
    )


def test_encode_uses_camel_case_keys() -> None:
    """Encoded payloads use the persisted camelCase field names."""

    payload = encode_chart_configuration(_value_chart())
    assert payload["chartId"] == "value"
    assert payload["isActive"] is True
    assert payload["showTotal"] is True
    assert payload["totalLabel"] == "Total Generated Value"
    assert payload["kpiFormatting"] == {"rounded": True, "prefix": "€", "suffix": ""}
    assert payload["barFormatting"]["rounded"] is False
    assert "aspectRatio" not in payload
    assert "formatting" not in payload

    element = payload["elements"][0]
    assert element["type"] == "currency"
    assert element["parameters"]["jerseyPrice"] == {
        "value": 70.0,
        "label": "Jersey price",
        "description": "",
        "unit": "EUR",
    }
    assert element["manualData"] == {"reach": 12.0}


def test_decode_restores_encoded_configuration() -> None:
    """Decoding an encoded configuration yields an equal configuration."""

    config = _value_chart()
    assert decode_chart_configuration(encode_chart_configuration(config)) == config


def test_decode_defaults_optional_fields() -> None:
    """Hand-authored payloads only need chartId, type and element formulas."""

    config = decode_chart_configuration(
        {
            "chartId": "fans",
            "type": "pie",
            "isActive": "false",
            "order": "3",
            "aspectRatio": "4:3",
            "elements": [{"formula": "[stats.stadium]"}, "not-an-element"],
        }
    )
    assert config.title == ""
    assert config.is_active is False
    assert config.order == 3
    assert config.aspect_ratio is None
    assert len(config.elements) == 1
    element = config.elements[0]
    assert element.id == "element-1"
    assert element.color == DEFAULT_ELEMENT_COLOR
    assert element.formatting is None


def test_decode_accepts_bare_parameter_values() -> None:
    """Parameters may be stored as bare numbers."""

    config = decode_chart_configuration(
        {
            "chartId": "merch",
            "type": "bar",
            "elements": [{"id": "a", "formula": "[PARAM:price]", "parameters": {"price": "15"}}],
        }
    )
    parameter = config.elements[0].parameters["price"]
    assert parameter.value == 15.0
    assert parameter.label == "price"


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"type": "pie"}, "requires a chartId"),
        ({"chartId": "  ", "type": "pie"}, "requires a chartId"),
        ({"chartId": "x", "type": "donut"}, "unsupported type 'donut'"),
        ({"chartId": "x"}, "unsupported type ''"),
    ],
)
def test_decode_rejects_missing_id_or_unknown_type(payload: dict, message: str) -> None:
    """Only a missing chartId or an unknown type is fatal."""

    with pytest.raises(ValueError, match=message):
        decode_chart_configuration(payload)
