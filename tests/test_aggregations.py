"""Golden tests for bucketing, date-range filtering and summaries."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from analysis.aggregations import (
    aggregate_series,
    available_date_range,
    bucket_label,
    filter_by_date_range,
    month_start,
    series_date_range,
    summarize_points,
    week_start,
)
from analysis.dto import DataPoint, DateRange, SeriesSummary

pytestmark = [pytest.mark.unit, pytest.mark.golden]


def _points(*pairs: tuple[str, float]) -> tuple[DataPoint, ...]:
    return tuple(DataPoint(date=date.fromisoformat(day), value=value) for day, value in pairs)


def test_weekly_buckets_start_on_monday() -> None:
    """Points in the same Monday-based week collapse into one bucket with stats."""

    aggregated = aggregate_series(_points(("2024-01-01", 10.0), ("2024-01-03", 20.0)), "weekly")

    assert aggregated == (DataPoint(date=date(2024, 1, 1), value=30.0, average=15.0, count=2),)


def test_weekly_buckets_split_on_the_following_monday() -> None:
    """A Sunday belongs to the week that started the previous Monday."""

    aggregated = aggregate_series(_points(("2024-01-07", 1.0), ("2024-01-08", 2.0)), "weekly")

    assert [point.date for point in aggregated] == [date(2024, 1, 1), date(2024, 1, 8)]
    assert week_start(date(2024, 1, 7)) == date(2024, 1, 1)


def test_monthly_buckets_are_sorted_by_month_start() -> None:
    """Monthly buckets are keyed by the first of the month and returned in order."""

    aggregated = aggregate_series(
        _points(("2024-02-10", 4.0), ("2024-01-31", 1.0), ("2024-02-01", 2.0)),
        "monthly",
    )

    assert aggregated == (
        DataPoint(date=date(2024, 1, 1), value=1.0, average=1.0, count=1),
        DataPoint(date=date(2024, 2, 1), value=6.0, average=3.0, count=2),
    )
    assert month_start(date(2024, 2, 29)) == date(2024, 2, 1)


@pytest.mark.parametrize("granularity", ["weekly", "monthly"])
def test_aggregation_preserves_the_sum(granularity: str) -> None:
    """Bucket totals add up to the input total."""

    start = date(2024, 1, 1)
    points = tuple(DataPoint(date=start + timedelta(days=offset), value=float(offset % 7)) for offset in range(90))

    aggregated = aggregate_series(points, granularity)

    assert sum(point.value for point in aggregated) == sum(point.value for point in points)
    assert sum(point.count or 0 for point in aggregated) == len(points)


def test_daily_aggregation_is_identity() -> None:
    """Daily aggregation returns the input points without stats."""

    points = _points(("2024-01-01", 1.0), ("2024-01-05", 2.0))

    assert aggregate_series(points, "daily") == points


def test_unknown_granularity_is_rejected() -> None:
    """Granularity outside daily/weekly/monthly is a caller error."""

    with pytest.raises(ValueError, match="Unsupported granularity"):
        aggregate_series((), "hourly")


def test_filter_keeps_points_on_both_boundaries() -> None:
    """The date-range filter is inclusive at the start and the end."""

    points = _points(("2024-01-01", 1.0), ("2024-01-02", 2.0), ("2024-01-03", 3.0), ("2024-01-04", 4.0))

    filtered = filter_by_date_range(points, DateRange(start_date=date(2024, 1, 2), end_date=date(2024, 1, 3)))

    assert [point.value for point in filtered] == [2.0, 3.0]
    assert filter_by_date_range(points, None) == points


def test_series_and_available_ranges() -> None:
    """Ranges cover min/max dates and ignore empty series."""

    first = _points(("2024-01-05", 1.0), ("2024-01-02", 1.0))
    second = _points(("2024-03-01", 1.0))

    assert series_date_range(first) == DateRange(start_date=date(2024, 1, 2), end_date=date(2024, 1, 5))
    assert series_date_range(()) is None
    assert available_date_range([first, (), second]) == DateRange(
        start_date=date(2024, 1, 2), end_date=date(2024, 3, 1)
    )
    assert available_date_range([(), ()]) is None


def test_summarize_points_handles_empty_input() -> None:
    """Summaries report totals and means and never divide by zero."""

    assert summarize_points(_points(("2024-01-01", 10.0), ("2024-01-02", 30.0))) == SeriesSummary(
        total=40.0, average=20.0, count=2
    )
    assert summarize_points(()) == SeriesSummary(total=0.0, average=0.0, count=0)


@pytest.mark.parametrize(
    ("bucket", "granularity", "expected"),
    [
        (date(2024, 1, 5), "daily", "Jan 5, 2024"),
        (date(2024, 1, 29), "weekly", "Jan 29 - Feb 4"),
        (date(2024, 2, 1), "monthly", "February 2024"),
    ],
)
def test_bucket_label_formats_each_granularity(bucket: date, granularity: str, expected: str) -> None:
    """Display labels describe the bucket span rather than its start key."""

    assert bucket_label(bucket, granularity) == expected
