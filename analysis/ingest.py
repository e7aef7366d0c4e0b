"""Best-effort ingestion of tabular exports into canonical date/value series.

Exports from analytics and finance tools are messy: preamble comment rows,
summary rows, thousands separators, repeated header rows. The parser follows a
few guiding rules:

- The first row with a cell reading exactly `Date` is the header.
- Malformed data rows are dropped silently; only structural problems raise.
- The raw grid and the header/date/data indices are returned so the caller can
  switch metrics later without re-reading the file.
"""

from __future__ import annotations

import csv
import io
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Final

import structlog

from .dates import parse_calendar_date
from .dto import DataPoint, Series

logger = structlog.get_logger(__name__)

Grid = Sequence[Sequence[str]]

METRIC_KEYWORDS: Final[tuple[str, ...]] = (
    "revenue",
    "sales",
    "amount",
    "value",
    "total",
    "sum",
    "count",
    "quantity",
    "volume",
    "price",
    "cost",
    "profit",
    "income",
    "expense",
    "budget",
    "target",
    "actual",
    "forecast",
    "clicks",
    "impressions",
    "views",
    "sessions",
    "users",
    "conversions",
    "ctr",
    "cpc",
    "cpm",
    "roas",
    "roi",
    "bounce",
    "rate",
)

SAMPLE_ROWS: Final = 5

_EXCLUDED_HEADER_TOKENS: Final = ("id", "name")
_SUMMARY_TOKENS: Final = ("total", "grand")
_NUMBER_PREFIX_RE: Final = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_SEPARATORS_RE: Final = re.compile(r"[,\s]")


class ParseError(ValueError):
    """Raised when a table cannot yield a series at all.

    Attributes:
        reason: Short machine-readable reason (`no header row`, `no date column`,
            `no metric column`, `no valid rows`, `unknown metric`,
            `unreadable file`).
        headers: Header texts that were available, for user-facing messages.
    """

    _MESSAGES: Final = {
        "no header row": 'Could not find a header row containing a "Date" column.',
        "no date column": 'Could not find a "Date" column.',
        "no metric column": "Could not find a metric column.",
        "no valid rows": (
            "No valid data rows found. Check that the file contains a date column "
            "and a numeric metric column."
        ),
        "unknown metric": "Could not find a column for the requested metric.",
        "unreadable file": "The file could not be read as delimited text.",
    }

    def __init__(self, reason: str, *, headers: Sequence[str] = (), metric: str | None = None) -> None:
        """Initialize the error.

        Args:
            reason: One of the documented reason codes.
            headers: Available header texts (may be empty when no header was found).
            metric: Requested metric name, for `unknown metric` failures.
        """

        message = self._MESSAGES.get(reason, reason)
        if metric:
            message = f"{message} ({metric!r})"
        if headers:
            message = f"{message} Available headers: {', '.join(headers)}"
        super().__init__(message)
        self.reason = reason
        self.headers = tuple(headers)
        self.metric = metric


@dataclass(frozen=True, slots=True)
class RawTable:
    """Artifacts retained from a parse so a different metric can be derived cheaply.

    Attributes:
        grid: The raw cell grid exactly as read.
        header_row_index: Index of the header row within `grid`.
        date_column_index: Index of the date column within each row.
        data_start_index: Index of the first row after the header.
    """

    grid: tuple[tuple[str, ...], ...]
    header_row_index: int
    date_column_index: int
    data_start_index: int

    @property
    def header(self) -> tuple[str, ...]:
        return self.grid[self.header_row_index]


@dataclass(frozen=True)
class ParseResult:
    """Output of `parse_grid`.

    Attributes:
        series: Canonical points sorted by date.
        metric_name: Name of the metric column that produced `series`.
        detected_metrics: Metric names found in the table, in column order.
        raw_grid: The raw grid, retained for metric switching.
        header_row_index: Header row index within `raw_grid`.
        date_column_index: Date column index.
        first_data_row_index: First row index after the header.
    """

    series: tuple[DataPoint, ...]
    metric_name: str
    detected_metrics: tuple[str, ...]
    raw_grid: tuple[tuple[str, ...], ...]
    header_row_index: int
    date_column_index: int
    first_data_row_index: int

    @property
    def detected_metric_names(self) -> frozenset[str]:
        return frozenset(self.detected_metrics)

    @property
    def raw_table(self) -> RawTable:
        return RawTable(
            grid=self.raw_grid,
            header_row_index=self.header_row_index,
            date_column_index=self.date_column_index,
            data_start_index=self.first_data_row_index,
        )


@dataclass(frozen=True, slots=True)
class ReparseResult:
    """Output of `reparse_with_metric`.

    Attributes:
        series: Canonical points for the requested metric.
        metric_name: The requested metric name.
    """

    series: tuple[DataPoint, ...]
    metric_name: str


def read_csv_grid(text: str) -> list[list[str]]:
    """Tokenize delimited text into a grid of string cells.

    Args:
        text: Decoded file contents.

    Returns:
        One list of cells per non-empty line. Row lengths may differ.

    Raises:
        ParseError: With reason `unreadable file` when the tokenizer rejects the
            text (for example a cell over the csv field size limit).
    """

    if text.startswith("\ufeff"):
        text = text[1:]
    try:
        return [list(row) for row in csv.reader(io.StringIO(text)) if row]
    except csv.Error as exc:
        logger.debug("CSV tokenizer rejected file", error=str(exc))
        raise ParseError("unreadable file") from exc


def parse_grid(grid: Grid, *, selected_metric: str | None = None) -> ParseResult:
    """Parse a raw cell grid into a canonical date/value series.

    Args:
        grid: Rows of string cells (e.g. from `read_csv_grid`).
        selected_metric: Optional metric name to use instead of the default choice.
            Ignored when it does not match a detected metric.

    Returns:
        ParseResult with the chosen series and the artifacts needed by
        `reparse_with_metric`.

    Raises:
        ParseError: When no header, date column, metric column or valid row exists.
    """

    table = _freeze(grid)
    header_row_index = _find_header_row(table)
    if header_row_index is None:
        raise ParseError("no header row")

    header = table[header_row_index]
    headers = _header_texts(header)
    data_start_index = header_row_index + 1
    date_column_index = _find_date_column(header)
    if date_column_index is None:
        raise ParseError("no date column", headers=headers)
    logger.debug(
        "Detected header row",
        header_row_index=header_row_index,
        date_column_index=date_column_index,
    )

    metric_columns = _detect_metric_columns(table, header_row_index, date_column_index)
    detected = [name for _, name in metric_columns]

    chosen: tuple[int, str] | None = None
    if selected_metric and selected_metric in detected:
        chosen = next(column for column in metric_columns if column[1] == selected_metric)
    if chosen is None and metric_columns:
        chosen = next(
            (column for column in metric_columns if _matches_keyword(column[1])),
            metric_columns[0],
        )
    if chosen is None:
        chosen = _fallback_metric_column(header, date_column_index)
        if chosen is not None:
            detected.append(chosen[1])
    if chosen is None:
        raise ParseError("no metric column", headers=headers)

    metric_index, metric_name = chosen
    logger.debug("Selected metric column", metric=metric_name, column_index=metric_index, detected=detected)

    points = _extract_points(table, data_start_index, date_column_index, metric_index)
    if not points:
        raise ParseError("no valid rows", headers=headers)

    return ParseResult(
        series=points,
        metric_name=metric_name,
        detected_metrics=tuple(detected),
        raw_grid=table,
        header_row_index=header_row_index,
        date_column_index=date_column_index,
        first_data_row_index=data_start_index,
    )


def reparse_with_metric(
    raw_grid: Grid,
    header_row_index: int,
    date_column_index: int,
    data_start_index: int,
    metric_name: str,
) -> ReparseResult:
    """Derive the series for a different metric from a previously parsed grid.

    The result is identical to calling `parse_grid(raw_grid, selected_metric=metric_name)`.

    Args:
        raw_grid: Grid retained from the original parse.
        header_row_index: Header row index from the original parse.
        date_column_index: Date column index from the original parse.
        data_start_index: First data row index from the original parse.
        metric_name: Metric to derive.

    Returns:
        ReparseResult with the new series.

    Raises:
        ParseError: When the metric has no column, or no valid rows remain.
    """

    table = _freeze(raw_grid)
    header = table[header_row_index]
    headers = _header_texts(header)

    metric_index = _resolve_metric_column(table, header_row_index, date_column_index, metric_name)
    if metric_index is None:
        raise ParseError("unknown metric", headers=headers, metric=metric_name)

    points = _extract_points(table, data_start_index, date_column_index, metric_index)
    if not points:
        raise ParseError("no valid rows", headers=headers)
    return ReparseResult(series=points, metric_name=metric_name)


def reparse_table(table: RawTable, metric_name: str) -> ReparseResult:
    """Convenience wrapper around `reparse_with_metric` for a RawTable."""

    return reparse_with_metric(
        table.grid,
        table.header_row_index,
        table.date_column_index,
        table.data_start_index,
        metric_name,
    )


def points_from_analytics_rows(
    rows: Iterable[Mapping[str, object]],
    *,
    metric_headers: Sequence[str] = (),
    fallback_date: date | None = None,
) -> tuple[DataPoint, ...]:
    """Convert analytics API rows into canonical points.

    Args:
        rows: Rows shaped like `{"date": "20240101", "<metric>": "12"}`.
        metric_headers: Metric header names reported by the API; the first is used.
        fallback_date: Date applied to rows whose date is missing or unreadable.
            When None such rows are skipped.

    Returns:
        Points sorted by date. Values that cannot be read as numbers become 0;
        negative values are dropped, as they are for CSV rows.
    """

    metric_key = metric_headers[0] if metric_headers else None
    values_by_date: dict[date, float] = {}
    for row in rows:
        raw_date = row.get("date")
        day = parse_calendar_date(str(raw_date)) if raw_date not in (None, "") else None
        if day is None:
            day = fallback_date
        if day is None:
            continue

        raw_value = row.get(metric_key) if metric_key else None
        if raw_value in (None, ""):
            raw_value = row.get("value")
        value = _coerce_number(raw_value)
        if value < 0:
            continue
        values_by_date[day] = values_by_date.get(day, 0.0) + value

    return tuple(DataPoint(date=day, value=value) for day, value in sorted(values_by_date.items()))


def series_from_analytics_rows(
    rows: Iterable[Mapping[str, object]],
    metadata: Mapping[str, object],
    *,
    color: str,
    fallback_date: date | None = None,
) -> Series:
    """Build a Series from an analytics fetch result.

    Args:
        rows: Rows returned by the analytics fetch collaborator.
        metadata: Fetch metadata; `metricHeaders` and an optional `label` are read.
        color: Color assigned to the new series.
        fallback_date: Date applied to rows without a usable date.

    Returns:
        A Series labelled after the metric (or the provided label).
    """

    raw_headers = metadata.get("metricHeaders") or ()
    metric_headers = tuple(str(header) for header in raw_headers)  # type: ignore[union-attr]
    metric_name = metric_headers[0] if metric_headers else "GA4 Metric"
    label = str(metadata.get("label") or f"GA4: {metric_name}")
    return Series(
        label=label,
        data=points_from_analytics_rows(rows, metric_headers=metric_headers, fallback_date=fallback_date),
        color=color,
        metric_name=metric_name,
        unit="USD" if "Revenue" in metric_name else "count",
    )


def _freeze(grid: Grid) -> tuple[tuple[str, ...], ...]:
    return tuple(tuple("" if cell is None else str(cell) for cell in row) for row in grid)


def _cell(row: Sequence[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index].strip()


def _is_blank(row: Sequence[str]) -> bool:
    return not any(cell.strip() for cell in row)


def _header_texts(header: Sequence[str]) -> tuple[str, ...]:
    return tuple(cell.strip() for cell in header)


def _column_name(header: Sequence[str], index: int) -> str:
    return _cell(header, index) or f"Column {index + 1}"


def _find_header_row(table: Grid) -> int | None:
    for index, row in enumerate(table):
        if _is_blank(row):
            continue
        if _cell(row, 0).startswith("#"):
            continue
        if any(cell.strip().lower() == "date" for cell in row):
            return index
    return None


def _find_date_column(header: Sequence[str]) -> int | None:
    # A repeated "Date" header resolves to the right-most match.
    found: int | None = None
    for index, cell in enumerate(header):
        if cell.strip().lower() == "date":
            found = index
    return found


def _detect_metric_columns(table: Grid, header_row_index: int, date_column_index: int) -> list[tuple[int, str]]:
    header = table[header_row_index]
    sample = table[header_row_index + 1 : header_row_index + 1 + SAMPLE_ROWS]
    columns: list[tuple[int, str]] = []
    for index in range(len(header)):
        if index == date_column_index:
            continue
        lowered = _cell(header, index).lower()
        if lowered == "date" or any(token in lowered for token in _EXCLUDED_HEADER_TOKENS):
            continue
        if any(parse_number(_cell(row, index)) is not None for row in sample):
            columns.append((index, _column_name(header, index)))
    return columns


def _fallback_metric_column(header: Sequence[str], date_column_index: int) -> tuple[int, str] | None:
    for index in range(len(header)):
        if index != date_column_index:
            return index, _column_name(header, index)
    return None


def _resolve_metric_column(
    table: Grid,
    header_row_index: int,
    date_column_index: int,
    metric_name: str,
) -> int | None:
    for index, name in _detect_metric_columns(table, header_row_index, date_column_index):
        if name == metric_name:
            return index
    header = table[header_row_index]
    for index in range(len(header)):
        if index != date_column_index and _column_name(header, index) == metric_name:
            return index
    return None


def _matches_keyword(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in METRIC_KEYWORDS)


def _is_summary_or_header_row(date_text: str, value_text: str) -> bool:
    date_lower = date_text.lower()
    value_lower = value_text.lower()
    if any(token in date_lower or token in value_lower for token in _SUMMARY_TOKENS):
        return True
    return date_lower == "date"


def _extract_points(
    table: Grid,
    data_start_index: int,
    date_column_index: int,
    metric_column_index: int,
) -> tuple[DataPoint, ...]:
    values_by_date: dict[date, float] = {}
    dropped = 0
    for row in table[data_start_index:]:
        if _is_blank(row):
            continue
        date_text = _cell(row, date_column_index)
        value_text = _cell(row, metric_column_index)
        if not date_text or not value_text or _is_summary_or_header_row(date_text, value_text):
            dropped += 1
            continue

        day = parse_calendar_date(date_text)
        value = parse_number(value_text)
        if day is None or value is None or value < 0:
            dropped += 1
            continue
        # Repeated dates collapse into one point so dates stay unique per series.
        values_by_date[day] = values_by_date.get(day, 0.0) + value

    if dropped:
        logger.debug("Dropped malformed rows", dropped=dropped, kept=len(values_by_date))
    return tuple(DataPoint(date=day, value=value) for day, value in sorted(values_by_date.items()))


def parse_number(text: str) -> float | None:
    """Parse the leading numeric portion of a cell after removing separators.

    Args:
        text: Raw cell text such as `1,234.50`, `12 %` or `3e2`.

    Returns:
        The parsed finite float, or None when no leading number is present.
    """

    cleaned = _SEPARATORS_RE.sub("", text or "")
    match = _NUMBER_PREFIX_RE.match(cleaned)
    if match is None:
        return None
    value = float(match.group(0))
    if not math.isfinite(value):
        return None
    return value


def _coerce_number(raw: object) -> float:
    if isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (int, float)):
        return float(raw) if math.isfinite(raw) else 0.0
    if raw is None:
        return 0.0
    parsed = parse_number(str(raw))
    return parsed if parsed is not None else 0.0
