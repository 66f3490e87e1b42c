"""Schema types for declarative chart configurations.

Report charts are driven by configuration objects rather than bespoke code: a
chart is a typed, ordered list of labeled formulas plus display metadata. The
same configuration can be computed for a single event or for an aggregated set
of events.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final, Literal

from .formatting import FormattingRule, ValueType

ChartType = Literal["pie", "bar", "kpi", "value", "text", "image"]
AspectRatio = Literal["16:9", "9:16", "1:1"]

CHART_TYPES: Final[frozenset[str]] = frozenset({"pie", "bar", "kpi", "value", "text", "image"})
ASPECT_RATIOS: Final[frozenset[str]] = frozenset({"16:9", "9:16", "1:1"})
DEFAULT_ELEMENT_COLOR: Final[str] = "#cccccc"


@dataclass(frozen=True, slots=True)
class ChartParameter:
    """Element-level default for a `PARAM:` token.

    Args:
        value: Numeric value used during evaluation.
        label: Human-readable parameter name.
        description: Context on how the parameter is used.
        unit: Optional unit, e.g. `EUR`, `%`, `count`.
    """

    value: float
    label: str = ""
    description: str = ""
    unit: str | None = None


@dataclass(frozen=True, slots=True)
class ChartElement:
    """One labeled formula within a chart.

    Args:
        id: Element identifier, unique within its chart.
        label: Display label; may contain one `{{stats.field}}` template.
        formula: Formula text evaluated against the Variable Source.
        color: Display color (hex string).
        description: Optional documentation for editors.
        formatting: Optional element-level formatting rule.
        value_type: Legacy formatting hint used when `formatting` is unset.
        parameters: Element-level defaults for `PARAM:` tokens.
        manual_data: Element-level values for `MANUAL:` tokens.
    """

    id: str
    label: str
    formula: str
    color: str = DEFAULT_ELEMENT_COLOR
    description: str | None = None
    formatting: FormattingRule | None = None
    value_type: ValueType | None = None
    parameters: Mapping[str, ChartParameter] = field(default_factory=dict)
    manual_data: Mapping[str, float] = field(default_factory=dict)

    def parameter_values(self) -> dict[str, float]:
        """Return element parameter defaults as a plain Parameter Source."""

        return {key: parameter.value for key, parameter in self.parameters.items()}


@dataclass(frozen=True, slots=True)
class ChartConfiguration:
    """Declarative chart definition.

    Args:
        chart_id: Stable, unique key for the chart.
        title: Chart title.
        type: Chart type.
        elements: Ordered chart elements.
        order: Display order among charts.
        is_active: Whether the chart is enabled.
        emoji: Optional decorative emoji.
        subtitle: Optional subtitle.
        show_total: Whether a total over element values is computed.
        total_label: Label displayed next to the total.
        formatting: Chart-level rule used when an element carries none.
        kpi_formatting: Value charts: rule for the scalar (total) view.
        bar_formatting: Value charts: rule for the per-element view.
        aspect_ratio: Image charts: display aspect ratio.
    """

    chart_id: str
    title: str
    type: ChartType
    elements: tuple[ChartElement, ...]
    order: int = 0
    is_active: bool = True
    emoji: str | None = None
    subtitle: str | None = None
    show_total: bool = False
    total_label: str | None = None
    formatting: FormattingRule | None = None
    kpi_formatting: FormattingRule | None = None
    bar_formatting: FormattingRule | None = None
    aspect_ratio: AspectRatio | None = None
