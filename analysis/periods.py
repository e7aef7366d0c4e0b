"""Period coloring helpers.

Color periods are user-declared inclusive date ranges that recolor the part of
a series falling inside them (a campaign, a promotion, a holiday). Helpers are
pure (no Django imports) so charts and analytics share one assignment rule:
the first declared period containing a date wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .dto import ColorGroup, ColorPeriod, DataPoint


def matching_period(point: DataPoint, periods: Sequence[ColorPeriod]) -> ColorPeriod | None:
    """Return the first period containing the point's date, if any."""

    for period in periods:
        if period.contains(point.date):
            return period
    return None


def point_color(point: DataPoint, periods: Sequence[ColorPeriod], default_color: str) -> str:
    """Return the display color for a single point.

    Args:
        point: Point to color.
        periods: Color periods in declaration order.
        default_color: Color used when no period contains the point.

    Returns:
        The first matching period's color, or `default_color`.
    """

    period = matching_period(point, periods)
    return period.color if period is not None else default_color


def color_points(
    points: Iterable[DataPoint],
    periods: Sequence[ColorPeriod],
    default_color: str,
) -> tuple[tuple[DataPoint, str], ...]:
    """Pair each point with its display color, preserving order."""

    return tuple((point, point_color(point, periods, default_color)) for point in points)


def partition_by_color(
    points: Iterable[DataPoint],
    periods: Sequence[ColorPeriod],
    default_color: str,
) -> tuple[ColorGroup, ...]:
    """Split points into buckets keyed by display color.

    Args:
        points: Source points.
        periods: Color periods in declaration order.
        default_color: Color for points outside every period.

    Returns:
        Non-empty ColorGroups. The default bucket comes first, then one bucket
        per distinct period color in declaration order. Points keep their
        relative order inside each bucket.

    Notes:
        Buckets are keyed by color, so periods sharing a color share a bucket.
        Such a bucket keeps the position of its first occurrence and carries
        the label of the last period declared with that color.
    """

    labels: dict[str, str | None] = {default_color: None}
    for period in periods:
        labels[period.color] = period.label

    buckets: dict[str, list[DataPoint]] = {color: [] for color in labels}
    for point in points:
        buckets[point_color(point, periods, default_color)].append(point)

    return tuple(
        ColorGroup(color=color, data=tuple(members), label=labels[color])
        for color, members in buckets.items()
        if members
    )
