"""Per-group reduction of metric records into ranked summaries."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Tuple

from .errors import InvalidInput
from .models import GroupSummary, MetricRecord

GroupedRecord = Tuple[str, MetricRecord]

_CENTS = Decimal("0.01")


def round2(value: float) -> float:
    """Round *value* to two decimals, halves away from zero.

    The rounding is applied to the shortest decimal representation of the
    float, so ``round2(2.675) == 2.68`` even though the binary value of 2.675
    lies slightly below the midpoint.
    """
    return float(Decimal(repr(float(value))).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _mean(values: List[float]) -> float:
    total = 0.0
    for value in values:
        total += value
    return total / len(values)


def partition(records: Iterable[GroupedRecord]) -> Dict[str, List[MetricRecord]]:
    """Group records by key, keeping first-seen key order and arrival order."""
    groups: Dict[str, List[MetricRecord]] = {}
    for pair in records:
        try:
            key, record = pair
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"expected a (group key, record) pair, got {pair!r}") from exc
        if not isinstance(key, str):
            raise InvalidInput(f"group key must be a string, got {key!r}", str(key))
        if not isinstance(record, MetricRecord):
            raise InvalidInput(f"expected a MetricRecord for group {key!r}, got {type(record).__name__}", key)
        record.validate()
        groups.setdefault(key, []).append(record)
    return groups


def summarize(key: str, records: List[MetricRecord]) -> GroupSummary:
    return GroupSummary(
        group_key=key,
        average_sharpness=round2(_mean([r.sharpness for r in records])),
        average_brightness=round2(_mean([r.brightness for r in records])),
        average_contrast=round2(_mean([float(r.contrast) for r in records])),
    )


def aggregate(records: Iterable[GroupedRecord]) -> List[GroupSummary]:
    """Average each metric per group key and rank groups by sharpness.

    Groups are ordered by descending rounded average sharpness. The sort is
    stable, so groups with equal sharpness keep the order in which their key
    first appeared.
    """
    groups = partition(records)
    summaries = [summarize(key, members) for key, members in groups.items()]
    return sorted(summaries, key=lambda s: s.average_sharpness, reverse=True)
