"""Overlap detection between series date ranges.

Series whose date ranges barely intersect are not meaningfully comparable on
a shared calendar axis. When that happens the comparison switches to aligned
mode, where each series is re-expressed relative to its own anchor date.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from itertools import combinations
from typing import Final

from .aggregations import series_date_range
from .dto import DateRange, Series

OVERLAP_THRESHOLD: Final = 0.2


def overlap_ratio(first: DateRange, second: DateRange) -> float | None:
    """Return the overlap of two ranges relative to the shorter span.

    Args:
        first: First inclusive range.
        second: Second inclusive range.

    Returns:
        None when the ranges do not intersect. Otherwise the overlapping span
        divided by the shorter range's span, both in days. When the shorter
        range is a single date that falls inside the other, the ratio is 1.0.
    """

    overlap_start = max(first.start_date, second.start_date)
    overlap_end = min(first.end_date, second.end_date)
    if overlap_start > overlap_end:
        return None

    shorter = min(first.days, second.days)
    if shorter == 0:
        return 1.0
    return (overlap_end - overlap_start).days / shorter


def ranges_are_comparable(first: DateRange, second: DateRange) -> bool:
    """Return True when the ranges overlap by at least the threshold."""

    ratio = overlap_ratio(first, second)
    return ratio is not None and ratio >= OVERLAP_THRESHOLD


def is_non_overlapping(series: Sequence[Series]) -> bool:
    """Decide whether a set of series needs aligned mode.

    Args:
        series: Series to inspect. Series without points are ignored.

    Returns:
        True when any pair of non-empty series is disjoint or overlaps by less
        than OVERLAP_THRESHOLD of the shorter span. Fewer than two non-empty
        series are never considered non-overlapping.
    """

    ranges = [found for found in (series_date_range(item.data) for item in series) if found]
    if len(ranges) < 2:
        return False
    return any(not ranges_are_comparable(first, second) for first, second in combinations(ranges, 2))


def conflicts_with_existing(existing: Iterable[DateRange], candidate: DateRange) -> bool:
    """Return True when `candidate` is comparable with none of `existing`.

    No existing ranges means there is nothing to conflict with.
    """

    ranges = list(existing)
    if not ranges:
        return False
    return not any(ranges_are_comparable(current, candidate) for current in ranges)
