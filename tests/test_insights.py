"""Unit tests for descriptive analytics and generated insights."""

from __future__ import annotations

from datetime import date

import pytest

from analysis.dto import ColorPeriod, DateRange
from analysis.insights import SeriesStats, build_analytics

pytestmark = pytest.mark.unit

_JANUARY_RAMP = [("2024-01-01", 10.0), ("2024-01-02", 20.0), ("2024-01-03", 30.0), ("2024-01-04", 40.0)]


def test_complete_and_in_range_stats(make_series) -> None:
    """Whole-series and in-range stats are computed per series."""

    series = make_series("A", _JANUARY_RAMP)

    report = build_analytics(
        [series],
        date_range=DateRange(start_date=date(2024, 1, 3), end_date=date(2024, 1, 4)),
    )

    assert report.complete == (SeriesStats(label="A", color=series.color, total=100.0, average=25.0, count=4),)
    assert report.in_range == (SeriesStats(label="A", color=series.color, total=70.0, average=35.0, count=2),)
    assert report.by_period == ()


def test_range_insights_report_share_and_average_shift(make_series) -> None:
    """A range whose average moves more than 5% produces a shift insight."""

    report = build_analytics(
        [make_series("A", _JANUARY_RAMP)],
        date_range=DateRange(start_date=date(2024, 1, 3), end_date=date(2024, 1, 4)),
    )

    assert [(insight.kind, insight.message) for insight in report.insights] == [
        ("range_share", "A: date range represents 50.0% of total data points"),
        ("range_average_shift", "A: average in selected range is 40.0% higher than overall average"),
    ]


def test_small_average_shift_is_not_reported(make_series) -> None:
    """Shifts within 5% of the overall average stay quiet."""

    series = make_series("Flat", [("2024-01-01", 100.0), ("2024-01-02", 102.0)])

    report = build_analytics(
        [series],
        date_range=DateRange(start_date=date(2024, 1, 2), end_date=date(2024, 1, 2)),
    )

    assert [insight.kind for insight in report.insights] == ["range_share"]


def test_period_spread_compares_best_and_worst_groups(make_series) -> None:
    """Color groups are ranked by average and the spread is reported."""

    periods = [
        ColorPeriod(
            id="p1",
            start_date=date(2024, 1, 3),
            end_date=date(2024, 1, 4),
            color="#EF4444",
            label="Promo",
        )
    ]

    report = build_analytics([make_series("A", _JANUARY_RAMP)], color_periods=periods)

    assert [stats.label for stats in report.by_period[0]] == ["A", "A - Promo"]
    assert [(insight.kind, insight.message) for insight in report.insights] == [
        ("period_spread", 'A: "Promo" period performs 133.3% better than "A" period on average'),
    ]


def test_cross_series_insights_rank_highest_against_lowest(make_series) -> None:
    """Totals, averages and counts are compared across series."""

    report = build_analytics(
        [
            make_series("A", _JANUARY_RAMP),
            make_series("B", [("2024-01-01", 10.0), ("2024-01-02", 10.0)], color="#10B981"),
        ]
    )

    assert [insight.message for insight in report.insights] == [
        '"A" has 400.0% higher total value than "B"',
        '"A" has 150.0% higher average value than "B"',
        '"A" has 100.0% more data points than "B"',
    ]


def test_insights_that_would_divide_by_zero_are_skipped(make_series) -> None:
    """Zero baselines never raise; the affected insights are omitted."""

    report = build_analytics(
        [
            make_series("Zero", [("2024-01-01", 0.0)]),
            make_series("Some", [("2024-01-01", 5.0)]),
        ],
        date_range=DateRange(start_date=date(2024, 1, 1), end_date=date(2024, 1, 1)),
    )

    assert "range_average_shift" not in [insight.kind for insight in report.insights]
    assert "cross_total" not in [insight.kind for insight in report.insights]
    assert report.as_dict()["complete"][0]["label"] == "Zero"
