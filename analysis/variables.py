"""Variable resolution for chart formulas.

Formulas reference event statistics and caller-supplied values through short
tokens (`stats.female`, `PARAM:jerseyPrice`, `MEDIA:logo`, ...). This module maps
those tokens onto concrete values and builds the flat Variable Source that the
formula evaluator reads from.

Statistic keys are stored both with and without the `stats.` prefix in
historical data, so lookups try the exact key first, then the key with the
prefix stripped, then the key with the prefix added. Missing values resolve to
0 so that events missing a rarely-used counter do not break aggregate charts.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Final

STATS_PREFIX: Final[str] = "stats."

VariableValue = float | int | str
VariableSource = Mapping[str, VariableValue]
ParameterSource = Mapping[str, float]


class TokenKind(Enum):
    """Namespaces a formula token can address."""

    stats = "stats"
    param = "PARAM"
    manual = "MANUAL"
    media = "MEDIA"
    text = "TEXT"


_NAMESPACED_KINDS: Final[dict[str, TokenKind]] = {
    "PARAM": TokenKind.param,
    "MANUAL": TokenKind.manual,
    "MEDIA": TokenKind.media,
    "TEXT": TokenKind.text,
}


@dataclass(frozen=True, slots=True)
class VariableToken:
    """A classified formula token.

    Args:
        raw: Token text exactly as written inside the formula brackets.
        kind: Namespace the token resolves against.
        name: Token name with any namespace marker removed.
    """

    raw: str
    kind: TokenKind
    name: str


@dataclass(frozen=True, slots=True)
class Resolution:
    """Result of resolving one token.

    Args:
        value: Resolved number or string (0 when not found).
        found: False when every lookup fallback missed.
    """

    value: VariableValue
    found: bool


def parse_token(raw: str) -> VariableToken:
    """Classify a token into its namespace.

    Args:
        raw: Token text, e.g. `stats.female`, `female`, or `PARAM:jerseyPrice`.

    Returns:
        VariableToken with the namespace marker removed from `name`.
    """

    text = raw.strip()
    prefix, sep, rest = text.partition(":")
    if sep and prefix in _NAMESPACED_KINDS:
        return VariableToken(raw=text, kind=_NAMESPACED_KINDS[prefix], name=rest)
    return VariableToken(raw=text, kind=TokenKind.stats, name=text)


def stats_key_candidates(name: str) -> tuple[str, ...]:
    """Return lookup keys for a statistic name in fallback order.

    Args:
        name: Statistic name with or without the `stats.` prefix.

    Returns:
        Exact key, then the key without `stats.`, then the key with `stats.`.
    """

    candidates = [name]
    if name.startswith(STATS_PREFIX):
        candidates.append(name[len(STATS_PREFIX) :])
    else:
        candidates.append(f"{STATS_PREFIX}{name}")
    return tuple(candidates)


def lookup_stat(source: VariableSource, name: str) -> VariableValue | None:
    """Look up a statistic using the prefix fallback.

    Returns:
        The first usable value, or None when no candidate key holds one.
    """

    for key in stats_key_candidates(name):
        if key not in source:
            continue
        value = _usable_value(source[key])
        if value is not None:
            return value
    return None


class VariableResolver:
    """Resolve formula tokens against a Variable Source and Parameter Source.

    Args:
        source: Flat statistics mapping (per event or aggregated).
        params: Named numeric overrides for `PARAM:` tokens.
        manual: Manually entered values for `MANUAL:` tokens.
        media: Media references for `MEDIA:` tokens, keyed by slug.
        texts: Text content for `TEXT:` tokens, keyed by slug.
    """

    def __init__(
        self,
        source: VariableSource,
        params: ParameterSource | None = None,
        *,
        manual: Mapping[str, VariableValue] | None = None,
        media: Mapping[str, str] | None = None,
        texts: Mapping[str, str] | None = None,
    ) -> None:
        self._source = source
        self._params = params or {}
        self._manual = manual or {}
        self._media = media or {}
        self._texts = texts or {}

    def resolve(self, raw: str) -> Resolution:
        """Resolve a raw token to a value.

        Args:
            raw: Token text as written inside formula brackets.

        Returns:
            Resolution whose value is 0 when the token could not be found.
        """

        token = parse_token(raw)
        value: VariableValue | None
        if token.kind is TokenKind.stats:
            value = lookup_stat(self._source, token.name)
        elif token.kind is TokenKind.param:
            value = _usable_value(self._params.get(token.name))
            if isinstance(value, str):
                value = None
        elif token.kind is TokenKind.manual:
            value = _usable_value(self._manual.get(token.name))
            if value is None:
                value = lookup_stat(self._source, token.name)
        elif token.kind is TokenKind.media:
            value = _usable_value(self._media.get(token.name))
        else:
            value = _usable_value(self._texts.get(token.name))

        if value is None:
            return Resolution(value=0, found=False)
        return Resolution(value=value, found=True)

    def with_element(
        self,
        *,
        params: ParameterSource | None = None,
        manual: Mapping[str, VariableValue] | None = None,
    ) -> VariableResolver:
        """Return a resolver layered with element-level defaults.

        Element parameters act as defaults; values from the caller's Parameter
        Source take precedence over them.
        """

        merged_params: dict[str, float] = dict(params or {})
        merged_params.update(self._params)
        merged_manual: dict[str, VariableValue] = dict(self._manual)
        merged_manual.update(manual or {})
        return VariableResolver(
            self._source,
            merged_params,
            manual=merged_manual,
            media=self._media,
            texts=self._texts,
        )


def _usable_value(value: object) -> VariableValue | None:
    """Normalize a stored value, returning None for missing or unusable data."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            return None
        if not math.isfinite(number):
            return None
        return value if isinstance(value, int) else number
    return None


def aggregate_event_stats(records: Iterable[Mapping[str, object]]) -> dict[str, float]:
    """Sum numeric statistics across event records.

    Aggregation is summation only. Non-numeric fields (text, media, flags) are
    not aggregated; averages are expressed as explicit division formulas.

    Args:
        records: Per-event statistics mappings.

    Returns:
        Mapping from field name to the summed value.
    """

    totals: dict[str, float] = {}
    for record in records:
        for key, raw in record.items():
            value = _usable_value(raw)
            if value is None or isinstance(value, str):
                continue
            totals[key] = totals.get(key, 0) + value
    return totals


_DERIVED_METRICS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("allImages", ("remoteImages", "hostessImages", "selfies")),
    ("remoteFans", ("indoor", "outdoor")),
    ("totalFans", ("remoteFans", "stadium")),
    ("totalUnder40", ("genAlpha", "genYZ")),
    ("totalOver40", ("genX", "boomer")),
)


def ensure_derived_metrics(source: VariableSource) -> dict[str, VariableValue]:
    """Return a copy of `source` with derived totals filled in when absent.

    Derived totals are sums of base counters, so they stay additive across
    aggregated events. Existing values (with or without the `stats.` prefix)
    are never overwritten.

    Args:
        source: Variable Source to enrich.

    Returns:
        New mapping including `allImages`, `remoteFans`, `totalFans`,
        `totalUnder40` and `totalOver40`.
    """

    enriched: dict[str, VariableValue] = dict(source)
    for name, parts in _DERIVED_METRICS:
        if lookup_stat(enriched, name) is not None:
            continue
        total: float = 0
        for part in parts:
            value = lookup_stat(enriched, part)
            if value is None or isinstance(value, str):
                continue
            total += value
        enriched[name] = total
    return enriched


def build_variable_source(records: Iterable[Mapping[str, object]]) -> dict[str, VariableValue]:
    """Aggregate event records and add derived totals.

    Args:
        records: Per-event statistics mappings for one partner or organization.

    Returns:
        Variable Source ready for chart computation.
    """

    return ensure_derived_metrics(aggregate_event_stats(records))
