"""Period alignment for series with unrelated calendar dates.

Alignment re-expresses each series relative to its own anchor date so that
"week 3 of campaign A" lines up with "week 3 of campaign B". Offsets are always
computed on aggregated series, so weekly and monthly offsets count buckets
rather than raw days.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from .aggregations import aggregate_series
from .dto import AlignedDataPoint, ColorPeriod, DataPoint, Granularity, Series, validate_granularity
from .periods import partition_by_color

_OFFSET_UNITS: dict[str, str] = {"daily": "Day", "weekly": "Week", "monthly": "Month"}


@dataclass(frozen=True, slots=True)
class AlignedSeries:
    """One aligned line of a comparison.

    Attributes:
        label: Display label (`"<series> - <period>"` for color-period groups).
        color: Display color.
        metric_name: Metric the values represent.
        unit: Optional display unit.
        anchor: Anchor date offsets are measured from.
        points: Aligned points sorted by offset.
    """

    label: str
    color: str
    metric_name: str
    unit: str | None
    anchor: date
    points: tuple[AlignedDataPoint, ...]

    def value_at(self, offset: int) -> float | None:
        for point in self.points:
            if point.day_offset == offset:
                return point.value
        return None


@dataclass(frozen=True, slots=True)
class ComparisonRow:
    """One row of the offset-aligned comparison table.

    Attributes:
        offset: Shared offset value.
        label: Display label for the offset (e.g. `Week 2`).
        values: One cell per aligned series, None where the series has no point.
    """

    offset: int
    label: str
    values: tuple[float | None, ...]


@dataclass(frozen=True, slots=True)
class ComparisonTable:
    """Offset-aligned comparison of several series.

    Attributes:
        columns: Series labels, in input order.
        rows: One row per offset from 0 to the largest offset present.
    """

    columns: tuple[str, ...]
    rows: tuple[ComparisonRow, ...]


def period_offset(day: date, anchor: date, granularity: str) -> int:
    """Return the whole-period offset of `day` from `anchor`.

    Args:
        day: Point date.
        anchor: Anchor date.
        granularity: `daily` (days), `weekly` (floored 7-day periods) or
            `monthly` (calendar-month difference ignoring day-of-month).

    Returns:
        Integer offset; negative when `day` precedes the anchor.
    """

    resolved = validate_granularity(granularity)
    if resolved == "monthly":
        return (day.year * 12 + day.month) - (anchor.year * 12 + anchor.month)
    days = (day - anchor).days
    if resolved == "weekly":
        return days // 7
    return days


def align_points(points: Iterable[DataPoint], anchor: date, granularity: str) -> tuple[AlignedDataPoint, ...]:
    """Re-express points as offsets from an anchor date.

    Args:
        points: Already-aggregated points, one per bucket.
        anchor: Anchor date for offset zero.
        granularity: Unit of the offsets.

    Returns:
        Aligned points sorted by offset. Points before the anchor are dropped.
    """

    aligned: list[AlignedDataPoint] = []
    for point in points:
        offset = period_offset(point.date, anchor, granularity)
        if offset < 0:
            continue
        aligned.append(
            AlignedDataPoint(
                day_offset=offset,
                value=point.value,
                original_date=point.date,
                average=point.average,
                count=point.count,
            )
        )
    aligned.sort(key=lambda item: item.day_offset)
    return tuple(aligned)


def default_anchor(points: Sequence[DataPoint]) -> date | None:
    """Return the earliest date of a series, the anchor used when none is chosen."""

    if not points:
        return None
    return min(point.date for point in points)


def align_series(
    series: Series,
    *,
    anchor: date | None,
    granularity: Granularity,
    color_periods: Sequence[ColorPeriod] = (),
) -> tuple[AlignedSeries, ...]:
    """Aggregate, optionally partition, then align one series.

    Args:
        series: Canonical series.
        anchor: Anchor date; the series' earliest date is used when None.
        granularity: Aggregation and offset unit.
        color_periods: Optional periods; when given, each color group becomes its
            own aligned line.

    Returns:
        One AlignedSeries, or one per non-empty color group. Empty when the
        series has no points.
    """

    resolved_anchor = anchor or default_anchor(series.data)
    if resolved_anchor is None:
        return ()

    aggregated = aggregate_series(series.data, granularity)
    if not color_periods:
        return (
            AlignedSeries(
                label=series.label,
                color=series.color,
                metric_name=series.metric_name,
                unit=series.unit,
                anchor=resolved_anchor,
                points=align_points(aggregated, resolved_anchor, granularity),
            ),
        )

    return tuple(
        AlignedSeries(
            label=f"{series.label} - {group.label}" if group.label else series.label,
            color=group.color,
            metric_name=series.metric_name,
            unit=series.unit,
            anchor=resolved_anchor,
            points=align_points(group.data, resolved_anchor, granularity),
        )
        for group in partition_by_color(aggregated, color_periods, series.color)
    )


def offset_label(offset: int, granularity: str) -> str:
    """Return the display label for an offset (e.g. `Day 0`, `Week 3`)."""

    return f"{_OFFSET_UNITS[validate_granularity(granularity)]} {offset}"


def build_comparison_table(aligned: Sequence[AlignedSeries], *, granularity: str = "daily") -> ComparisonTable:
    """Lay several aligned series out on a shared offset axis.

    Args:
        aligned: Aligned series in display order.
        granularity: Unit used for row labels.

    Returns:
        ComparisonTable whose rows span offset 0 through the largest offset of
        any series. Series without a point at an offset show None there.
    """

    with_points = [item for item in aligned if item.points]
    if not with_points:
        return ComparisonTable(columns=(), rows=())

    max_offset = max(item.points[-1].day_offset for item in with_points)
    lookups = [{point.day_offset: point.value for point in item.points} for item in with_points]
    rows = tuple(
        ComparisonRow(
            offset=offset,
            label=offset_label(offset, granularity),
            values=tuple(lookup.get(offset) for lookup in lookups),
        )
        for offset in range(max_offset + 1)
    )
    return ComparisonTable(columns=tuple(item.label for item in with_points), rows=rows)
