"""Rendering of compared series into Chart.js datasets."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final, TypedDict

from analysis.aggregations import bucket_label
from analysis.alignment import AlignedSeries, ComparisonTable, offset_label
from analysis.dto import ColorPeriod, Series
from analysis.periods import partition_by_color

PRIMARY_AXIS: Final = "y"
SECONDARY_AXIS: Final = "y1"
MAX_CHART_LABELS: Final = 2000


class ChartDataset(TypedDict, total=False):
    """A Chart.js dataset payload."""

    label: str
    metricName: str
    unit: str | None
    data: list[float | None]
    borderColor: str
    backgroundColor: str
    yAxisID: str
    spanGaps: bool
    borderWidth: int
    pointRadius: int
    pointHoverRadius: int
    tension: float
    fill: bool


class ChartData(TypedDict):
    """The full Chart.js payload (labels + datasets) for a chart panel.

    `labels` are stable keys (ISO dates or offset labels); `displayLabels`
    holds the human-readable text for the same positions.
    """

    labels: list[str]
    displayLabels: list[str]
    datasets: list[ChartDataset]


class TooManyLabelsError(ValueError):
    """Raised when a chart would carry more labels than can be rendered safely."""


def axis_assignments(metric_names: Sequence[str]) -> dict[str, str]:
    """Map metric names to y-axis ids.

    The first distinct metric uses the primary axis and the second distinct
    metric uses the secondary axis. Any further metrics share the primary axis.
    A single metric always uses the primary axis.
    """

    distinct = list(dict.fromkeys(metric_names))
    axes = {name: PRIMARY_AXIS for name in distinct}
    if len(distinct) > 1:
        axes[distinct[1]] = SECONDARY_AXIS
    return axes


def render_absolute_chart(
    series: Sequence[Series],
    *,
    granularity: str = "daily",
    color_periods: Sequence[ColorPeriod] = (),
) -> ChartData:
    """Render already-aggregated series on a shared calendar axis.

    Args:
        series: Aggregated series in display order.
        granularity: Granularity the series were aggregated to, for display labels.
        color_periods: Optional color periods; each color group becomes its own
            dataset labelled `"<series> - <period>"`.

    Returns:
        ChartData with ISO date labels, matching display labels and one dataset
        per series or group.

    Raises:
        TooManyLabelsError: When the combined axis exceeds MAX_CHART_LABELS.
    """

    bucket_dates = sorted({point.date for item in series for point in item.data})
    labels = [day.isoformat() for day in bucket_dates]
    _check_label_count(labels)
    axes = axis_assignments([item.metric_name for item in series])

    datasets: list[ChartDataset] = []
    for item in series:
        if color_periods:
            parts = [
                (f"{item.label} - {group.label}" if group.label else item.label, group.color, group.data)
                for group in partition_by_color(item.data, color_periods, item.color)
            ]
        else:
            parts = [(item.label, item.color, item.data)]
        for part_label, color, points in parts:
            values = {point.date.isoformat(): point.value for point in points}
            datasets.append(
                _dataset(
                    label=part_label,
                    metric_name=item.metric_name,
                    unit=item.unit,
                    color=color,
                    axis=axes[item.metric_name],
                    data=[values.get(label) for label in labels],
                )
            )
    return {
        "labels": labels,
        "displayLabels": [bucket_label(day, granularity) for day in bucket_dates],
        "datasets": datasets,
    }


def render_aligned_chart(aligned: Sequence[AlignedSeries], *, granularity: str) -> ChartData:
    """Render aligned series on a shared offset axis.

    Args:
        aligned: Aligned series in display order.
        granularity: Offset unit, used for `Day N`/`Week N`/`Month N` labels.

    Returns:
        ChartData whose labels span offset 0 through the largest offset.
    """

    max_offset = max((item.points[-1].day_offset for item in aligned if item.points), default=-1)
    labels = [offset_label(offset, granularity) for offset in range(max_offset + 1)]
    _check_label_count(labels)
    axes = axis_assignments([item.metric_name for item in aligned])

    datasets: list[ChartDataset] = []
    for item in aligned:
        values = {point.day_offset: point.value for point in item.points}
        datasets.append(
            _dataset(
                label=item.label,
                metric_name=item.metric_name,
                unit=item.unit,
                color=item.color,
                axis=axes[item.metric_name],
                data=[values.get(offset) for offset in range(max_offset + 1)],
            )
        )
    return {"labels": labels, "displayLabels": list(labels), "datasets": datasets}


def table_payload(table: ComparisonTable) -> dict[str, object]:
    """Return a JSON-friendly form of an offset comparison table."""

    return {
        "columns": list(table.columns),
        "rows": [{"offset": row.offset, "label": row.label, "values": list(row.values)} for row in table.rows],
    }


def _check_label_count(labels: Sequence[str]) -> None:
    if len(labels) > MAX_CHART_LABELS:
        raise TooManyLabelsError(
            f"Too many data points to render safely (>{MAX_CHART_LABELS}). Narrow the date range or use a coarser granularity."
        )


def _dataset(
    *,
    label: str,
    metric_name: str,
    unit: str | None,
    color: str,
    axis: str,
    data: list[float | None],
) -> ChartDataset:
    """Build a Chart.js dataset dict with consistent styling."""

    return {
        "label": label,
        "metricName": metric_name,
        "unit": unit,
        "data": data,
        "borderColor": color,
        "backgroundColor": f"{color}20",
        "yAxisID": axis,
        "spanGaps": False,
        "borderWidth": 2,
        "pointRadius": 2,
        "pointHoverRadius": 6,
        "tension": 0.1,
        "fill": False,
    }
