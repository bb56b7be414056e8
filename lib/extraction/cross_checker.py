"""
Field cross-checker.

Every candidate query of a field is probed (no short circuit), values are
normalized per role, and one canonical value is picked together with a
confidence score and the per-query provenance.

Confidence:
    no value                 -> 0.0
    one distinct value       -> 1.0
    n distinct values        -> 1/n  (x 0.7 for title / artist / duration)
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Dict, List, Optional

from lib.extraction.driver import ElementHandle
from lib.extraction.models import CrossCheckResult, FieldDescriptor, FieldRole, ProbeResult
from lib.extraction.normalizer import (
    collapse_whitespace,
    has_edition_marker,
    has_feature_or_remix_credit,
    normalize_artist,
    normalize_duration,
    normalize_title,
    starts_with_remix_credit,
)

logger = logging.getLogger(__name__)

HIGH_STAKES_ROLES = frozenset({FieldRole.TITLE, FieldRole.ARTIST, FieldRole.DURATION})
HIGH_STAKES_PENALTY = 0.7

_NORMALIZERS: Dict[FieldRole, Callable[[str], str]] = {
    FieldRole.TITLE: normalize_title,
    FieldRole.ARTIST: normalize_artist,
    FieldRole.DURATION: normalize_duration,
}


def parse_query(query: str) -> tuple[str, Optional[str]]:
    """Split a candidate query: css@attr -> (css, attr), css -> (css, None), @attr -> ("", attr)."""
    if "@" in query:
        selector, attr = query.rsplit("@", 1)
        return selector.strip(), attr.strip() or None
    return query.strip(), None


def probe(element: ElementHandle, query: str) -> ProbeResult:
    """Run one candidate query against an element. Never raises."""
    selector, attr = parse_query(query)
    try:
        if selector:
            matches = element.query_all(selector)
            if not matches:
                return ProbeResult(query=query, value="")
            target = matches[0]
        else:
            target = element
        raw = target.attribute(attr) if attr else target.text()
        return ProbeResult(query=query, value=(raw or "").strip())
    except Exception as e:
        return ProbeResult(query=query, value="", ok=False, error=str(e))


def normalize_value(role: FieldRole, value: str) -> str:
    fn = _NORMALIZERS.get(role, collapse_whitespace)
    return fn(value)


def compute_confidence(role: FieldRole, values: List[str]) -> float:
    distinct = set(v for v in values if v)
    if not distinct:
        return 0.0
    if len(distinct) == 1:
        return 1.0
    base = 1.0 / len(distinct)
    if role in HIGH_STAKES_ROLES:
        return base * HIGH_STAKES_PENALTY
    return base


def select_canonical(role: FieldRole, values: List[str]) -> str:
    """values: normalized, non-empty, in query order."""
    if not values:
        return ""
    if role == FieldRole.TITLE:
        for v in values:
            if has_edition_marker(v) and not has_feature_or_remix_credit(v):
                return v
    elif role == FieldRole.ARTIST:
        for v in values:
            if starts_with_remix_credit(v):
                return v
    elif role == FieldRole.DURATION:
        counts = Counter(values)
        # max() keeps the first of equally frequent values; dict order is first-seen
        return max(dict.fromkeys(values), key=lambda v: counts[v])
    return values[0]


class FieldCrossChecker:
    def cross_check(
        self,
        element: Optional[ElementHandle],
        descriptor: Optional[FieldDescriptor],
    ) -> CrossCheckResult:
        if element is None or descriptor is None:
            return CrossCheckResult.empty()

        provenance: Dict[str, str] = {}
        for query in descriptor.candidates:
            result = probe(element, query)
            if not result.ok:
                logger.debug(f"[CrossCheck] query failed field={descriptor.name} query={query!r}: {result.error}")
                continue
            if not result.value:
                continue
            normalized = normalize_value(descriptor.role, result.value)
            if normalized:
                provenance[query] = normalized

        values = list(provenance.values())
        if not values:
            return CrossCheckResult.empty()

        if len(set(values)) > 1:
            logger.warning(f"[CrossCheck] selector discrepancy for {descriptor.name}: {provenance}")

        return CrossCheckResult(
            value=select_canonical(descriptor.role, values),
            confidence=compute_confidence(descriptor.role, values),
            provenance=provenance,
        )
