"""URL configuration for core views."""

from __future__ import annotations

from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("api/parse/", views.parse_upload, name="parse_upload"),
    path("api/compare/", views.compare, name="compare"),
    path("api/compare/export.csv", views.export_comparison_csv, name="export_comparison_csv"),
]
