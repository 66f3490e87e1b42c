"""Display formatting for computed chart values.

Formatting is a presentation step applied after all arithmetic and totals are
final. It never changes the raw value, so charts summing raw values are not
affected by how a sibling chart displays its numbers.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Final, Literal

ValueType = Literal["currency", "percentage", "number"]

NA_PLACEHOLDER: Final[str] = "N/A"

_WHOLE: Final[Decimal] = Decimal("1")
_CENTS: Final[Decimal] = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class FormattingRule:
    """Formatting applied to a numeric value for display.

    Args:
        rounded: True renders an integer, False renders two decimal places.
        prefix: Text placed verbatim before the number (e.g. `€`).
        suffix: Text placed verbatim after the number (e.g. `%`).
    """

    rounded: bool = True
    prefix: str = ""
    suffix: str = ""

    @classmethod
    def for_value_type(cls, value_type: ValueType | None) -> FormattingRule | None:
        """Map a legacy element value type onto an equivalent rule.

        Returns:
            The matching rule, or None when no type hint is set.
        """

        if value_type == "currency":
            return cls(rounded=True, prefix="€")
        if value_type == "percentage":
            return cls(rounded=True, suffix="%")
        if value_type == "number":
            return cls(rounded=True)
        return None


DEFAULT_RULE: Final[FormattingRule] = FormattingRule()


def pick_rule(*candidates: FormattingRule | None) -> FormattingRule:
    """Return the first configured rule, falling back to DEFAULT_RULE."""

    for rule in candidates:
        if rule is not None:
            return rule
    return DEFAULT_RULE


def format_number(value: float, *, rounded: bool) -> str:
    """Render a number with zero or two decimal places.

    Halves round away from zero and no thousands separators are inserted.
    """

    number = Decimal(str(value))
    with localcontext() as ctx:
        ctx.prec = max(28, number.adjusted() + 4)
        quantized = number.quantize(_WHOLE if rounded else _CENTS, rounding=ROUND_HALF_UP)
    if quantized.is_zero():
        quantized = abs(quantized)
    return f"{quantized:f}"


def format_value(
    raw_value: float | str | None,
    rule: FormattingRule | None = None,
    *,
    placeholder: str = NA_PLACEHOLDER,
) -> str:
    """Format a raw chart value for display.

    Args:
        raw_value: Computed value; None marks a failed computation and strings
            (text/media slots) pass through unchanged.
        rule: Formatting rule; DEFAULT_RULE when omitted.
        placeholder: Text shown for failed computations.

    Returns:
        Display string.
    """

    if raw_value is None:
        return placeholder
    if isinstance(raw_value, str):
        return raw_value
    active = rule or DEFAULT_RULE
    return f"{active.prefix}{format_number(raw_value, rounded=active.rounded)}{active.suffix}"
