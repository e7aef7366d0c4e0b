"""Delta calculations for the Analysis Engine.

Deltas compare a baseline against a comparison value (a series against
another, a date range against the whole series). They are computed on-demand
and are never persisted.
"""

from __future__ import annotations

from .dto import MetricDelta


def delta(baseline: float, comparison: float) -> MetricDelta:
    """Compute absolute and percentage delta between two values.

    Args:
        baseline: Baseline value (A).
        comparison: Comparison value (B).

    Returns:
        MetricDelta with absolute and percentage changes. Percentage delta is
        None when the baseline is 0.
    """

    absolute = comparison - baseline
    percent = None if baseline == 0 else absolute / baseline
    return MetricDelta(baseline=baseline, comparison=comparison, absolute=absolute, percent=percent)


def format_percent(fraction: float, *, signed: bool = False) -> str:
    """Format a fractional change as a percentage with one decimal.

    Args:
        fraction: Fractional value (0.125 means 12.5%).
        signed: When True, positive values carry a leading `+`.

    Returns:
        A string such as `12.5%` or `+12.5%`.
    """

    text = f"{fraction * 100:.1f}%"
    if signed and fraction > 0:
        return f"+{text}"
    return text
