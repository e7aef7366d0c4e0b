"""Descriptive analytics and plain-language insights for compared series.

Stats are computed for the whole series, for the selected date range, and for
each color-period group. Insights are short sentences comparing those stats;
an insight whose comparison would divide by zero is omitted.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final, Literal

from .aggregations import filter_by_date_range, summarize_points
from .deltas import delta, format_percent
from .dto import ColorPeriod, DataPoint, DateRange, Series
from .periods import partition_by_color

InsightKind = Literal[
    "range_share",
    "range_average_shift",
    "period_spread",
    "cross_total",
    "cross_average",
    "cross_count",
]

AVERAGE_SHIFT_THRESHOLD: Final = 0.05


@dataclass(frozen=True, slots=True)
class SeriesStats:
    """Total/average/count for one labelled set of points."""

    label: str
    color: str
    total: float
    average: float
    count: int

    def as_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "color": self.color,
            "total": self.total,
            "average": self.average,
            "count": self.count,
        }


@dataclass(frozen=True, slots=True)
class Insight:
    kind: InsightKind
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True, slots=True)
class AnalyticsReport:
    """Analytics for a set of series.

    Attributes:
        complete: Stats over each whole series, in input order.
        in_range: Stats over each series clipped to the date range; empty when
            no range was given.
        by_period: Per series, stats for each color group; empty when no color
            periods were given.
        insights: Generated insights, per-series ones first.
    """

    complete: tuple[SeriesStats, ...]
    in_range: tuple[SeriesStats, ...]
    by_period: tuple[tuple[SeriesStats, ...], ...]
    insights: tuple[Insight, ...]

    def as_dict(self) -> dict[str, object]:
        return {
            "complete": [stats.as_dict() for stats in self.complete],
            "inRange": [stats.as_dict() for stats in self.in_range],
            "byPeriod": [[stats.as_dict() for stats in group] for group in self.by_period],
            "insights": [insight.as_dict() for insight in self.insights],
        }


def series_stats(label: str, color: str, points: Sequence[DataPoint]) -> SeriesStats:
    summary = summarize_points(points)
    return SeriesStats(label=label, color=color, total=summary.total, average=summary.average, count=summary.count)


def build_analytics(
    series: Sequence[Series],
    *,
    date_range: DateRange | None = None,
    color_periods: Sequence[ColorPeriod] = (),
) -> AnalyticsReport:
    """Compute stats and insights for a set of series.

    Args:
        series: Series to analyze, in display order.
        date_range: Optional inclusive range for the in-range stats.
        color_periods: Optional color periods for per-period stats.

    Returns:
        AnalyticsReport with stats and insights.
    """

    complete = tuple(series_stats(item.label, item.color, item.data) for item in series)

    in_range: tuple[SeriesStats, ...] = ()
    if date_range is not None:
        in_range = tuple(
            series_stats(item.label, item.color, filter_by_date_range(item.data, date_range)) for item in series
        )

    by_period: tuple[tuple[SeriesStats, ...], ...] = ()
    if color_periods:
        by_period = tuple(
            tuple(
                series_stats(
                    f"{item.label} - {group.label}" if group.label else item.label,
                    group.color,
                    group.data,
                )
                for group in partition_by_color(
                    filter_by_date_range(item.data, date_range), color_periods, item.color
                )
            )
            for item in series
        )

    insights: list[Insight] = []
    for overall, ranged in zip(complete, in_range):
        insights.extend(_range_insights(overall, ranged))
    for item, groups in zip(series, by_period):
        insights.extend(_period_insights(item.label, groups))
    insights.extend(_cross_insights(complete))

    return AnalyticsReport(
        complete=complete,
        in_range=in_range,
        by_period=by_period,
        insights=tuple(insights),
    )


def _range_insights(overall: SeriesStats, ranged: SeriesStats) -> list[Insight]:
    if overall.count == 0:
        return []

    found = [
        Insight(
            kind="range_share",
            message=(
                f"{overall.label}: date range represents "
                f"{format_percent(ranged.count / overall.count)} of total data points"
            ),
        )
    ]
    shift = delta(overall.average, ranged.average).percent
    if shift is not None and abs(shift) > AVERAGE_SHIFT_THRESHOLD:
        direction = "higher" if shift > 0 else "lower"
        found.append(
            Insight(
                kind="range_average_shift",
                message=(
                    f"{overall.label}: average in selected range is "
                    f"{format_percent(abs(shift))} {direction} than overall average"
                ),
            )
        )
    return found


def _period_label(label: str) -> str:
    _, _, period = label.partition(" - ")
    return period or label


def _period_insights(series_label: str, groups: Sequence[SeriesStats]) -> list[Insight]:
    if len(groups) < 2:
        return []
    ranked = sorted(groups, key=lambda stats: stats.average, reverse=True)
    highest, lowest = ranked[0], ranked[-1]
    if highest.average == lowest.average:
        return []
    spread = delta(lowest.average, highest.average).percent
    if spread is None:
        return []
    return [
        Insight(
            kind="period_spread",
            message=(
                f'{series_label}: "{_period_label(highest.label)}" period performs '
                f'{format_percent(spread)} better than "{_period_label(lowest.label)}" period on average'
            ),
        )
    ]


def _cross_insights(complete: Sequence[SeriesStats]) -> list[Insight]:
    if len(complete) < 2:
        return []

    found: list[Insight] = []
    comparisons: tuple[tuple[InsightKind, str, str], ...] = (
        ("cross_total", "total", "higher total value"),
        ("cross_average", "average", "higher average value"),
        ("cross_count", "count", "more data points"),
    )
    for kind, field, phrase in comparisons:
        ranked = sorted(complete, key=lambda stats: getattr(stats, field), reverse=True)
        highest, lowest = ranked[0], ranked[-1]
        high_value = float(getattr(highest, field))
        low_value = float(getattr(lowest, field))
        if high_value == low_value:
            continue
        difference = delta(low_value, high_value).percent
        if difference is None:
            continue
        found.append(
            Insight(
                kind=kind,
                message=f'"{highest.label}" has {format_percent(difference)} {phrase} than "{lowest.label}"',
            )
        )
    return found
