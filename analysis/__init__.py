"""Pure analysis package for periodLens.

This package contains deterministic, testable computations that operate on
in-memory inputs and return DTOs. It must not import Django or perform any
I/O beyond tokenizing text it is handed.
"""

from .aggregations import aggregate_series, filter_by_date_range
from .alignment import align_points, align_series, build_comparison_table
from .ingest import ParseError, parse_grid, read_csv_grid, reparse_with_metric
from .overlap import is_non_overlapping
from .periods import partition_by_color

__all__ = [
    "ParseError",
    "aggregate_series",
    "align_points",
    "align_series",
    "build_comparison_table",
    "filter_by_date_range",
    "is_non_overlapping",
    "parse_grid",
    "partition_by_color",
    "read_csv_grid",
    "reparse_with_metric",
]
