"""In-memory workspace of series under comparison.

The workspace keeps series in an arena keyed by stable string ids, so removing
one series never shifts the identity of the others. Per-series display state
(visibility, alignment anchor) and the raw tables needed for metric switching
live beside the series, keyed by the same id.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, replace
from datetime import date
from typing import Final

import structlog

from .aggregations import series_date_range
from .alignment import default_anchor
from .dto import DateRange, Series
from .ingest import ParseError, ParseResult, RawTable, reparse_table
from .overlap import is_non_overlapping

logger = structlog.get_logger(__name__)

COLOR_PALETTE: Final[tuple[str, ...]] = (
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#06B6D4",
    "#84CC16",
    "#F97316",
    "#EC4899",
    "#6366F1",
    "#14B8A6",
    "#F59E0B",
    "#DC2626",
    "#7C3AED",
    "#0891B2",
    "#059669",
    "#D97706",
    "#BE185D",
)


class WorkspaceError(KeyError):
    """Raised when a workspace operation references an unknown series id."""

    def __init__(self, series_id: str) -> None:
        super().__init__(f"Unknown series id {series_id!r}.")
        self.series_id = series_id


@dataclass(frozen=True, slots=True)
class SeriesState:
    """Display state for one workspace series.

    Attributes:
        visible: Whether the series takes part in charts and overlap checks.
        alignment_date: Anchor used in aligned mode; None means not chosen.
    """

    visible: bool = True
    alignment_date: date | None = None


class SeriesWorkspace:
    """Arena of series keyed by stable ids."""

    def __init__(self) -> None:
        self._series: dict[str, Series] = {}
        self._state: dict[str, SeriesState] = {}
        self._raw_tables: dict[str, RawTable] = {}
        self._detected: dict[str, tuple[str, ...]] = {}
        self._added = 0

    def __len__(self) -> int:
        return len(self._series)

    def __iter__(self) -> Iterator[tuple[str, Series]]:
        return iter(list(self._series.items()))

    def __contains__(self, series_id: object) -> bool:
        return series_id in self._series

    def next_color(self) -> str:
        """Return the palette color for the next added series."""

        return COLOR_PALETTE[self._added % len(COLOR_PALETTE)]

    def add_series(self, series: Series, *, series_id: str | None = None, visible: bool = True) -> str:
        """Add a series and return its id.

        Args:
            series: Series to store.
            series_id: Optional caller-chosen id; a random hex id is generated otherwise.
            visible: Initial visibility.

        Raises:
            ValueError: When `series_id` is already in use.
        """

        new_id = series_id or uuid.uuid4().hex
        if new_id in self._series:
            raise ValueError(f"Series id {new_id!r} is already in use.")
        self._series[new_id] = series
        self._state[new_id] = SeriesState(visible=visible)
        self._added += 1
        logger.debug("Added series", series_id=new_id, label=series.label, points=len(series.data))
        return new_id

    def add_parsed(
        self,
        result: ParseResult,
        *,
        label: str,
        color: str | None = None,
        unit: str | None = None,
        series_id: str | None = None,
    ) -> str:
        """Add a series built from a parse result, caching its raw table."""

        series = Series(
            label=label,
            data=result.series,
            color=color or self.next_color(),
            metric_name=result.metric_name,
            unit=unit,
        )
        new_id = self.add_series(series, series_id=series_id)
        self._raw_tables[new_id] = result.raw_table
        self._detected[new_id] = result.detected_metrics
        return new_id

    def remove(self, series_id: str) -> Series:
        series = self.get(series_id)
        del self._series[series_id]
        self._state.pop(series_id, None)
        self._raw_tables.pop(series_id, None)
        self._detected.pop(series_id, None)
        return series

    def get(self, series_id: str) -> Series:
        try:
            return self._series[series_id]
        except KeyError:
            raise WorkspaceError(series_id) from None

    def state(self, series_id: str) -> SeriesState:
        self.get(series_id)
        return self._state[series_id]

    def ids(self) -> tuple[str, ...]:
        return tuple(self._series)

    def detected_metrics(self, series_id: str) -> tuple[str, ...]:
        self.get(series_id)
        return self._detected.get(series_id, ())

    def relabel(self, series_id: str, label: str) -> Series:
        return self._replace(series_id, self.get(series_id).with_label(label))

    def recolor(self, series_id: str, color: str) -> Series:
        return self._replace(series_id, self.get(series_id).with_color(color))

    def set_unit(self, series_id: str, unit: str | None) -> Series:
        return self._replace(series_id, self.get(series_id).with_unit(unit))

    def set_visible(self, series_id: str, visible: bool) -> None:
        self._state[series_id] = replace(self.state(series_id), visible=visible)

    def set_alignment_date(self, series_id: str, alignment_date: date | None) -> None:
        self._state[series_id] = replace(self.state(series_id), alignment_date=alignment_date)

    def select_metric(self, series_id: str, metric_name: str) -> Series:
        """Switch the metric a series represents.

        When the metric is one detected in the series' cached raw table, the
        data is re-derived from that table. Otherwise (or when re-derivation
        fails) only the metric name changes.

        Args:
            series_id: Workspace id.
            metric_name: Metric to switch to.

        Returns:
            The updated series.
        """

        series = self.get(series_id)
        table = self._raw_tables.get(series_id)
        if table is not None and metric_name in self._detected.get(series_id, ()):
            try:
                result = reparse_table(table, metric_name)
            except ParseError as exc:
                logger.warning(
                    "Metric switch failed; renaming only",
                    series_id=series_id,
                    metric=metric_name,
                    reason=exc.reason,
                )
            else:
                return self._replace(series_id, series.with_data(result.series, metric_name=result.metric_name))
        return self._replace(series_id, series.with_metric_name(metric_name))

    def visible_series(self) -> tuple[Series, ...]:
        return tuple(series for series_id, series in self._series.items() if self._state[series_id].visible)

    def needs_alignment(self) -> bool:
        """Return True when the visible non-empty series do not share a calendar."""

        return is_non_overlapping([series for series in self.visible_series() if series.data])

    def auto_align(self) -> dict[str, date]:
        """Anchor visible series at their first date when alignment is needed.

        Anchors are filled only when alignment is needed and no series has an
        anchor yet; a user-chosen anchor is never overwritten.

        Returns:
            Mapping of series id to the anchor that was set.
        """

        if not self.needs_alignment():
            return {}
        if any(state.alignment_date is not None for state in self._state.values()):
            return {}

        assigned: dict[str, date] = {}
        for series_id, series in self._series.items():
            if not self._state[series_id].visible:
                continue
            anchor = default_anchor(series.data)
            if anchor is None:
                continue
            self.set_alignment_date(series_id, anchor)
            assigned[series_id] = anchor
        logger.info("Auto-assigned alignment dates", count=len(assigned))
        return assigned

    def visible_metric_names(self) -> tuple[str, ...]:
        """Return distinct metric names of visible series, in first-seen order."""

        names: dict[str, None] = {}
        for series in self.visible_series():
            names.setdefault(series.metric_name, None)
        return tuple(names)

    def date_ranges(self) -> dict[str, DateRange]:
        """Return each non-empty series' date range keyed by id."""

        return {
            series_id: found
            for series_id, found in ((sid, series_date_range(series.data)) for sid, series in self._series.items())
            if found is not None
        }

    def _replace(self, series_id: str, series: Series) -> Series:
        self._series[series_id] = series
        return series
