"""Pytest fixtures shared across the test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date

import pytest

from analysis.dto import DataPoint, Series


@pytest.fixture
def make_series() -> Callable[..., Series]:
    """Return a factory building a Series from `(iso_date, value)` pairs."""

    def _make(
        label: str,
        pairs: Sequence[tuple[str, float]],
        *,
        color: str = "#3B82F6",
        metric_name: str = "Revenue",
        unit: str | None = None,
    ) -> Series:
        return Series(
            label=label,
            data=tuple(DataPoint(date=date.fromisoformat(day), value=value) for day, value in pairs),
            color=color,
            metric_name=metric_name,
            unit=unit,
        )

    return _make


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    The suite must be runnable by intent:
    - `unit`: pure, fast tests with no Django request cycle.
    - `integration`: tests touching Django settings, views, or IO.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
