"""Service-layer functions for the core app.

Services in `core` coordinate request-shaped inputs with the pure analysis
modules: one ingest per submitted series, then the comparison pipeline
(clip, aggregate, partition, align) over every series that ingested cleanly.
A series that fails to ingest is reported alongside the result and never
aborts its siblings.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Literal

import structlog

from analysis.aggregations import aggregate_series, available_date_range, filter_by_date_range
from analysis.alignment import AlignedSeries, ComparisonTable, align_series, build_comparison_table, default_anchor
from analysis.dto import ColorPeriod, DateRange, Granularity, Series
from analysis.ingest import ParseError, ParseResult, parse_grid, read_csv_grid, series_from_analytics_rows
from analysis.insights import AnalyticsReport, build_analytics
from analysis.overlap import conflicts_with_existing
from analysis.workspace import SeriesWorkspace
from core.charting.render import ChartData, render_absolute_chart, render_aligned_chart

logger = structlog.get_logger(__name__)

ComparisonMode = Literal["absolute", "aligned"]


@dataclass(frozen=True, slots=True)
class SeriesRequest:
    """One series submitted for comparison.

    Attributes:
        label: Display label.
        csv_text: Delimited text, when the series comes from a file.
        analytics_rows: Analytics API rows, when the series comes from a fetch.
        analytics_metadata: Metadata accompanying `analytics_rows`.
        metric: Optional metric to select (or a custom metric name).
        color: Optional display color; the palette is used when None.
        unit: Optional display unit.
        alignment_date: Optional anchor for aligned mode.
        visible: Whether the series takes part in the comparison.
    """

    label: str
    csv_text: str | None = None
    analytics_rows: Sequence[Mapping[str, object]] | None = None
    analytics_metadata: Mapping[str, object] = field(default_factory=dict)
    metric: str | None = None
    color: str | None = None
    unit: str | None = None
    alignment_date: date | None = None
    visible: bool = True


@dataclass(frozen=True, slots=True)
class IngestFailure:
    """A series that could not be ingested."""

    index: int
    label: str
    message: str
    headers: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, object]:
        return {"index": self.index, "label": self.label, "error": self.message, "headers": list(self.headers)}


@dataclass(frozen=True, slots=True)
class OverlapWarning:
    """An analytics series whose dates do not overlap the series before it."""

    index: int
    label: str
    message: str = "New dataset does not overlap existing data; series are compared by aligned periods."

    def as_dict(self) -> dict[str, object]:
        return {"index": self.index, "label": self.label, "warning": self.message}


@dataclass(frozen=True)
class ComparisonResult:
    """Everything a comparison view needs to respond.

    Attributes:
        mode: `absolute` when the visible series share a calendar, else `aligned`.
        granularity: Granularity used for aggregation and offsets.
        series: Ingested series in request order (hidden ones included).
        chart: Chart.js payload for the chosen mode.
        table: Offset comparison table; None in absolute mode.
        aligned: Aligned lines; empty in absolute mode.
        analytics: Stats and insights over the visible series.
        available_range: Union date range of the visible series.
        errors: Per-series ingest failures.
        warnings: Analytics series whose dates conflict with earlier series.
    """

    mode: ComparisonMode
    granularity: Granularity
    series: tuple[Series, ...]
    chart: ChartData
    table: ComparisonTable | None
    aligned: tuple[AlignedSeries, ...]
    analytics: AnalyticsReport
    available_range: DateRange | None
    errors: tuple[IngestFailure, ...]
    warnings: tuple[OverlapWarning, ...] = ()


def parse_csv_text(text: str, *, metric: str | None = None) -> ParseResult:
    """Tokenize and parse delimited text.

    Raises:
        ParseError: When the text cannot yield a series.
    """

    return parse_grid(read_csv_grid(text), selected_metric=metric or None)


def build_workspace(requests: Sequence[SeriesRequest]) -> tuple[SeriesWorkspace, tuple[IngestFailure, ...]]:
    """Ingest each request into a fresh workspace.

    Args:
        requests: Submitted series in display order.

    Returns:
        The workspace (ids are the request indices as strings) and the ingest
        failures, in request order.
    """

    workspace = SeriesWorkspace()
    failures: list[IngestFailure] = []
    for index, request in enumerate(requests):
        series_id = str(index)
        try:
            _ingest_request(workspace, request, series_id=series_id)
        except ParseError as exc:
            logger.warning("Series ingest failed", index=index, label=request.label, reason=exc.reason)
            failures.append(IngestFailure(index=index, label=request.label, message=str(exc), headers=exc.headers))
            # Keep palette positions stable for the series that follow.
            workspace.add_series(
                Series(label=request.label, data=(), color=request.color or workspace.next_color(), metric_name=""),
                series_id=series_id,
                visible=False,
            )
            continue
        workspace.set_visible(series_id, request.visible)
        if request.alignment_date is not None:
            workspace.set_alignment_date(series_id, request.alignment_date)
    return workspace, tuple(failures)


def run_comparison(
    requests: Sequence[SeriesRequest],
    *,
    granularity: Granularity,
    date_range: DateRange | None = None,
    color_periods: Sequence[ColorPeriod] = (),
) -> ComparisonResult:
    """Run the full comparison pipeline.

    Args:
        requests: Submitted series in display order.
        granularity: Aggregation granularity.
        date_range: Optional inclusive clip applied before aggregation.
        color_periods: Optional color periods.

    Returns:
        ComparisonResult for the visible, successfully ingested series.
    """

    workspace, failures = build_workspace(requests)
    failed = {str(failure.index) for failure in failures}
    visible_ids = [
        series_id
        for series_id in workspace.ids()
        if series_id not in failed and workspace.state(series_id).visible and workspace.get(series_id).data
    ]
    visible = [workspace.get(series_id) for series_id in visible_ids]

    mode: ComparisonMode = "aligned" if workspace.needs_alignment() else "absolute"
    logger.info("Comparison mode selected", mode=mode, series=len(visible), granularity=granularity)

    clipped = {
        series_id: workspace.get(series_id).with_data(filter_by_date_range(workspace.get(series_id).data, date_range))
        for series_id in visible_ids
    }

    table: ComparisonTable | None = None
    aligned: tuple[AlignedSeries, ...] = ()
    if mode == "aligned":
        workspace.auto_align()
        lines: list[AlignedSeries] = []
        for series_id in visible_ids:
            current = clipped[series_id]
            anchor = workspace.state(series_id).alignment_date or default_anchor(current.data)
            lines.extend(
                align_series(current, anchor=anchor, granularity=granularity, color_periods=color_periods)
            )
        aligned = tuple(lines)
        chart = render_aligned_chart(aligned, granularity=granularity)
        table = build_comparison_table(aligned, granularity=granularity)
    else:
        aggregated = [
            clipped[series_id].with_data(aggregate_series(clipped[series_id].data, granularity))
            for series_id in visible_ids
        ]
        chart = render_absolute_chart(aggregated, granularity=granularity, color_periods=color_periods)

    return ComparisonResult(
        mode=mode,
        granularity=granularity,
        series=tuple(series for series_id, series in workspace if series_id not in failed),
        chart=chart,
        table=table,
        aligned=aligned,
        analytics=build_analytics(visible, date_range=date_range, color_periods=color_periods),
        available_range=available_date_range(item.data for item in visible),
        errors=failures,
        warnings=overlap_warnings(workspace, requests),
    )


def overlap_warnings(workspace: SeriesWorkspace, requests: Sequence[SeriesRequest]) -> tuple[OverlapWarning, ...]:
    """Flag analytics series comparable with none of the series submitted before them.

    Args:
        workspace: Workspace built from `requests` (ids are request indices).
        requests: Submitted series in display order.

    Returns:
        One warning per conflicting analytics series, in request order. Series
        without points neither conflict nor count as existing data.
    """

    ranges = workspace.date_ranges()
    existing: list[DateRange] = []
    warnings: list[OverlapWarning] = []
    for index, request in enumerate(requests):
        found = ranges.get(str(index))
        if found is None:
            continue
        if request.analytics_rows is not None and conflicts_with_existing(existing, found):
            logger.info("Analytics series does not overlap existing data", index=index, label=request.label)
            warnings.append(OverlapWarning(index=index, label=request.label))
        existing.append(found)
    return tuple(warnings)


def _ingest_request(workspace: SeriesWorkspace, request: SeriesRequest, *, series_id: str) -> None:
    if request.analytics_rows is not None:
        metadata = {**request.analytics_metadata, "label": request.label}
        series = series_from_analytics_rows(
            request.analytics_rows,
            metadata,
            color=request.color or workspace.next_color(),
        )
        if request.unit:
            series = series.with_unit(request.unit)
        workspace.add_series(series, series_id=series_id)
        return

    result = parse_csv_text(request.csv_text or "", metric=request.metric)
    workspace.add_parsed(
        result,
        label=request.label,
        color=request.color,
        unit=request.unit,
        series_id=series_id,
    )
    if request.metric and request.metric != result.metric_name:
        # Not a detected column: keep the data and treat the metric as a custom name.
        workspace.select_metric(series_id, request.metric)
