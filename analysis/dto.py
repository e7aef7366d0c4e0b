"""DTO types shared by the Analysis Engine.

DTOs are plain data containers used to transport series between ingest,
aggregation, partitioning and alignment. They intentionally avoid any Django
dependencies so the engine stays importable from scripts and tests.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Final, Literal

Granularity = Literal["daily", "weekly", "monthly"]

GRANULARITIES: Final[tuple[Granularity, ...]] = ("daily", "weekly", "monthly")


def validate_granularity(value: str) -> Granularity:
    """Return `value` as a Granularity or raise for unsupported values.

    Args:
        value: Candidate granularity string.

    Returns:
        The same value, narrowed to the Granularity literal type.

    Raises:
        ValueError: When the value is not one of daily/weekly/monthly.
    """

    if value not in GRANULARITIES:
        raise ValueError(f"Unsupported granularity {value!r}; expected one of {', '.join(GRANULARITIES)}.")
    return value  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class DataPoint:
    """A single calendar-date observation.

    Attributes:
        date: Calendar date (never carries a time of day).
        value: Finite, non-negative metric value (a bucket total once aggregated).
        average: Bucket mean, populated only by the aggregator.
        count: Number of source points in the bucket, populated only by the aggregator.
    """

    date: date
    value: float
    average: float | None = None
    count: int | None = None

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-friendly mapping with an ISO date string."""

        payload: dict[str, object] = {"date": self.date.isoformat(), "value": self.value}
        if self.average is not None:
            payload["average"] = self.average
        if self.count is not None:
            payload["count"] = self.count
        return payload


@dataclass(frozen=True, slots=True)
class Series:
    """A named, colored, date-ordered collection of points for one metric.

    Attributes:
        label: Human-friendly label shown in legends and tables.
        data: Points sorted ascending by date, one point per date.
        color: Opaque display token (typically a hex color).
        metric_name: Name of the metric the values represent.
        unit: Optional display unit string.
    """

    label: str
    data: tuple[DataPoint, ...]
    color: str
    metric_name: str
    unit: str | None = None

    def with_data(self, data: tuple[DataPoint, ...], *, metric_name: str | None = None) -> Series:
        """Return a copy whose data (and optionally metric name) is replaced wholesale."""

        return replace(self, data=tuple(data), metric_name=metric_name or self.metric_name)

    def with_label(self, label: str) -> Series:
        return replace(self, label=label)

    def with_color(self, color: str) -> Series:
        return replace(self, color=color)

    def with_unit(self, unit: str | None) -> Series:
        return replace(self, unit=unit)

    def with_metric_name(self, metric_name: str) -> Series:
        return replace(self, metric_name=metric_name)


@dataclass(frozen=True, slots=True)
class DateRange:
    """An inclusive calendar-date range.

    Attributes:
        start_date: Inclusive start date.
        end_date: Inclusive end date.
    """

    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        """Return True when `day` falls inside the range (both ends inclusive)."""

        return self.start_date <= day <= self.end_date

    @property
    def days(self) -> int:
        """Span of the range in days (`end - start`); zero for a single date."""

        return (self.end_date - self.start_date).days

    def as_dict(self) -> dict[str, str]:
        return {"startDate": self.start_date.isoformat(), "endDate": self.end_date.isoformat()}


@dataclass(frozen=True, slots=True)
class ColorPeriod:
    """A user-declared date range used to recolor part of a series.

    Periods may overlap each other; the first declared period wins.

    Attributes:
        id: Unique identifier of the period.
        start_date: Inclusive start date.
        end_date: Inclusive end date.
        color: Display color applied to points inside the period.
        label: Human-friendly period label (e.g. a campaign name).
    """

    id: str
    start_date: date
    end_date: date
    color: str
    label: str

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True, slots=True)
class ColorGroup:
    """One bucket of points sharing a display color.

    Attributes:
        color: Grouping key and display color.
        data: Points assigned to this color, in source order.
        label: Period label; None for the default (unmatched) bucket.
    """

    color: str
    data: tuple[DataPoint, ...]
    label: str | None = None


@dataclass(frozen=True, slots=True)
class AlignedDataPoint:
    """A point re-expressed relative to a per-series anchor date.

    Attributes:
        day_offset: Whole days/weeks/months since the anchor (never negative).
        value: Point value (bucket total when aggregated).
        original_date: Calendar date of the source point.
        average: Bucket mean carried over from aggregation, if any.
        count: Bucket size carried over from aggregation, if any.
    """

    day_offset: int
    value: float
    original_date: date
    average: float | None = None
    count: int | None = None

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "dayOffset": self.day_offset,
            "value": self.value,
            "originalDate": self.original_date.isoformat(),
        }
        if self.average is not None:
            payload["average"] = self.average
        if self.count is not None:
            payload["count"] = self.count
        return payload


@dataclass(frozen=True)
class MetricDelta:
    """A deterministic delta between two numeric metric values.

    Attributes:
        baseline: Baseline value (A).
        comparison: Comparison value (B).
        absolute: `comparison - baseline`.
        percent: `(comparison - baseline) / baseline`, or None when baseline is 0.
    """

    baseline: float
    comparison: float
    absolute: float
    percent: float | None


@dataclass(frozen=True, slots=True)
class SeriesSummary:
    """Total/average/count over a set of points.

    Attributes:
        total: Sum of point values.
        average: Arithmetic mean of point values (0 when empty).
        count: Number of points.
    """

    total: float
    average: float
    count: int
