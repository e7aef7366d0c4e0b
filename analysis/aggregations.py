"""Aggregation helpers for the Analysis Engine.

This module provides deterministic, reusable bucketing, filtering and
summarizing functions used by the comparison pipeline without introducing
Django dependencies.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from datetime import date, timedelta

from .dto import DataPoint, DateRange, Granularity, SeriesSummary, validate_granularity


def week_start(day: date) -> date:
    """Return the Monday on or before `day`."""

    return day - timedelta(days=day.weekday())


def month_start(day: date) -> date:
    return day.replace(day=1)


def bucket_label(bucket_date: date, granularity: str) -> str:
    """Return the display label for a bucket start date.

    Args:
        bucket_date: Bucket start (a Monday for `weekly`, the 1st for `monthly`).
        granularity: One of `daily`, `weekly`, `monthly`.

    Returns:
        `Jan 5, 2024` for daily, `Jan 1 - Jan 7` for weekly (the 7-day span
        from the bucket start) and `January 2024` for monthly buckets.
    """

    resolved = validate_granularity(granularity)
    if resolved == "weekly":
        end = bucket_date + timedelta(days=6)
        return f"{bucket_date:%b} {bucket_date.day} - {end:%b} {end.day}"
    if resolved == "monthly":
        return f"{bucket_date:%B %Y}"
    return f"{bucket_date:%b} {bucket_date.day}, {bucket_date.year}"


def _bucket_key(granularity: Granularity) -> Callable[[date], date]:
    if granularity == "weekly":
        return week_start
    return month_start


def aggregate_series(points: Iterable[DataPoint], granularity: str) -> tuple[DataPoint, ...]:
    """Re-bucket points to a daily, weekly or monthly granularity.

    Args:
        points: Source points (any order, dates unique).
        granularity: One of `daily`, `weekly`, `monthly`.

    Returns:
        For `daily`, the input points unchanged. Otherwise one point per
        non-empty bucket, dated at the bucket start, with `value` holding the
        bucket total, plus `average` and `count`. Buckets are sorted by date.

    Raises:
        ValueError: When `granularity` is not supported.

    Notes:
        Aggregation preserves the overall sum of values.
    """

    resolved = validate_granularity(granularity)
    if resolved == "daily":
        return tuple(points)

    key_for = _bucket_key(resolved)
    buckets: dict[date, list[float]] = defaultdict(list)
    for point in points:
        buckets[key_for(point.date)].append(point.value)

    aggregated: list[DataPoint] = []
    for bucket_date in sorted(buckets):
        values = buckets[bucket_date]
        total = sum(values)
        aggregated.append(
            DataPoint(
                date=bucket_date,
                value=total,
                average=total / len(values),
                count=len(values),
            )
        )
    return tuple(aggregated)


def filter_by_date_range(points: Iterable[DataPoint], date_range: DateRange | None) -> tuple[DataPoint, ...]:
    """Filter points by an inclusive date range.

    Args:
        points: Source points.
        date_range: Inclusive range; when None, all points are returned.

    Returns:
        A tuple of points whose date falls within the range, in source order.
    """

    if date_range is None:
        return tuple(points)
    return tuple(point for point in points if date_range.contains(point.date))


def series_date_range(points: Sequence[DataPoint]) -> DateRange | None:
    """Return the min/max date covered by `points`, or None when empty."""

    if not points:
        return None
    dates = [point.date for point in points]
    return DateRange(start_date=min(dates), end_date=max(dates))


def available_date_range(point_lists: Iterable[Sequence[DataPoint]]) -> DateRange | None:
    """Return the union date range across several series.

    Args:
        point_lists: Point sequences, one per series. Empty sequences are ignored.

    Returns:
        DateRange spanning the earliest to the latest date, or None when every
        sequence is empty.
    """

    ranges = [found for found in (series_date_range(points) for points in point_lists) if found]
    if not ranges:
        return None
    return DateRange(
        start_date=min(found.start_date for found in ranges),
        end_date=max(found.end_date for found in ranges),
    )


def summarize_points(points: Iterable[DataPoint]) -> SeriesSummary:
    """Summarize total, average and count for a set of points.

    Args:
        points: Points to summarize.

    Returns:
        SeriesSummary; an empty input yields zeros.
    """

    total = 0.0
    count = 0
    for point in points:
        total += point.value
        count += 1
    if count == 0:
        return SeriesSummary(total=0.0, average=0.0, count=0)
    return SeriesSummary(total=total, average=total / count, count=count)
