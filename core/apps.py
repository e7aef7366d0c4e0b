"""App configuration for the core Django app."""

from __future__ import annotations

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuration for the `core` app (HTTP surface of the comparison engine)."""

    name = "core"
    verbose_name = "periodLens core"
