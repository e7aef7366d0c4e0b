"""Calendar-date normalization for heterogeneous export formats.

Exports from spreadsheets and analytics tools encode dates in many ways
(`20240131`, `2024-01-31`, `01/31/2024`, `Jan 31, 2024`, timestamps). Every
stage of the engine works on plain `datetime.date` values, so this module is
the single place where raw cells become calendar dates.

Normalization never raises: a cell that cannot be read as a date yields None
and callers drop the row.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Final

from dateutil import parser as date_parser

_COMPACT_DATE_RE: Final = re.compile(r"^\d{8}$")
_BARE_NUMBER_RE: Final = re.compile(r"^[+-]?\d+(?:\.\d+)?$")
_HAS_DIGIT_RE: Final = re.compile(r"\d")

# Fields missing from a raw string are filled from these values. A string that
# parses differently under the two is missing its year or month. The day is
# shared so `Jan 2024` still reads as the first of the month.
_PARSE_DEFAULT: Final = datetime(2000, 1, 1)
_ALTERNATE_DEFAULT: Final = datetime(2001, 2, 1)


def parse_calendar_date(raw: str | None) -> date | None:
    """Parse a raw cell into a calendar date.

    Args:
        raw: Raw cell text.

    Returns:
        The calendar date, or None when the text cannot be read as a date.

    Notes:
        - Exactly 8 digits are read as `YYYYMMDD`.
        - Other strings go through dateutil (month-first for slashed forms);
          any time-of-day component is discarded.
        - Strings without digits and other bare numbers are rejected because
          they are ambiguous (weekday names, spreadsheet serials, years).
        - Strings without a year or month (`10:30`, `5 Jan`) are rejected
          rather than completed from a default.
    """

    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    if _COMPACT_DATE_RE.match(text):
        try:
            return date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
        except ValueError:
            return None

    if not _HAS_DIGIT_RE.search(text) or _BARE_NUMBER_RE.match(text):
        return None

    try:
        parsed = date_parser.parse(text, default=_PARSE_DEFAULT)
        alternate = date_parser.parse(text, default=_ALTERNATE_DEFAULT)
    except (ValueError, OverflowError):
        return None
    if (parsed.year, parsed.month) != (alternate.year, alternate.month):
        return None
    return parsed.date()


def normalize_date(raw: str | None) -> str | None:
    """Return the canonical `YYYY-MM-DD` form of a raw date cell, or None."""

    parsed = parse_calendar_date(raw)
    return parsed.isoformat() if parsed is not None else None


def to_iso(day: date) -> str:
    return day.isoformat()


def parse_iso(text: str) -> date:
    """Parse a canonical `YYYY-MM-DD` string.

    Raises:
        ValueError: When the string is not a canonical ISO calendar date.
    """

    return date.fromisoformat(text.strip())
