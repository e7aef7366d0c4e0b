"""JSON API views for ingesting and comparing time series."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from analysis.aggregations import series_date_range
from analysis.dto import ColorPeriod, DateRange
from analysis.ingest import ParseError
from core.charting.render import TooManyLabelsError, table_payload
from core.forms import ColorPeriodForm, ComparisonForm, CsvUploadForm, SeriesInputForm
from core.services import ComparisonResult, SeriesRequest, parse_csv_text, run_comparison

logger = structlog.get_logger(__name__)


class RequestValidationError(ValueError):
    """Raised while reading a request body; carries the JSON error payload."""

    def __init__(self, message: str, *, errors: object | None = None) -> None:
        super().__init__(message)
        self.payload: dict[str, object] = {"error": message}
        if errors is not None:
            self.payload["errors"] = errors


@csrf_exempt
@require_POST
def parse_upload(request: HttpRequest) -> JsonResponse:
    """Parse one uploaded file and return its series and detected metrics."""

    form = CsvUploadForm(request.POST, request.FILES, max_upload_bytes=settings.PERIODLENS_MAX_UPLOAD_BYTES)
    if not form.is_valid():
        return JsonResponse({"error": "Invalid upload.", "errors": form.errors.get_json_data()}, status=400)

    upload = form.cleaned_data["file"]
    try:
        text = upload.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        return JsonResponse({"error": "File is not valid UTF-8 text.", "headers": []}, status=400)

    try:
        result = parse_csv_text(text, metric=form.cleaned_data.get("metric") or None)
    except ParseError as exc:
        logger.warning("Upload parse failed", filename=upload.name, reason=exc.reason)
        return JsonResponse({"error": str(exc), "headers": list(exc.headers)}, status=400)

    found_range = series_date_range(result.series)
    logger.info("Upload parsed", filename=upload.name, metric=result.metric_name, points=len(result.series))
    return JsonResponse(
        {
            "metricName": result.metric_name,
            "detectedMetrics": list(result.detected_metrics),
            "points": [point.as_dict() for point in result.series],
            "dateRange": found_range.as_dict() if found_range else None,
        }
    )


@csrf_exempt
@require_POST
def compare(request: HttpRequest) -> JsonResponse:
    """Run a comparison over the submitted series.

    The response always reports per-series ingest errors; one bad file never
    prevents the other series from being compared.
    """

    try:
        result = _run_from_request(request)
    except RequestValidationError as exc:
        return JsonResponse(exc.payload, status=400)
    except TooManyLabelsError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    return JsonResponse(
        {
            "mode": result.mode,
            "granularity": result.granularity,
            "series": [
                {
                    "label": item.label,
                    "color": item.color,
                    "metricName": item.metric_name,
                    "unit": item.unit,
                    "pointCount": len(item.data),
                }
                for item in result.series
            ],
            "availableRange": result.available_range.as_dict() if result.available_range else None,
            "chart": result.chart,
            "table": table_payload(result.table) if result.table is not None else None,
            "analytics": result.analytics.as_dict(),
            "errors": [failure.as_dict() for failure in result.errors],
            "warnings": [warning.as_dict() for warning in result.warnings],
        }
    )


@csrf_exempt
@require_POST
def export_comparison_csv(request: HttpRequest) -> HttpResponse:
    """Export the comparison as CSV.

    Aligned comparisons export the offset table; absolute comparisons export
    the calendar timeline with one column per dataset.
    """

    try:
        result = _run_from_request(request)
    except RequestValidationError as exc:
        return JsonResponse(exc.payload, status=400)
    except TooManyLabelsError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    if result.table is not None:
        writer.writerow(["offset", "period", *result.table.columns])
        for row in result.table.rows:
            writer.writerow([row.offset, row.label, *("" if value is None else value for value in row.values)])
    else:
        datasets = result.chart["datasets"]
        writer.writerow(["date", *(dataset.get("label", "") for dataset in datasets)])
        for idx, label in enumerate(result.chart["labels"]):
            values = [dataset.get("data", [])[idx] for dataset in datasets]
            writer.writerow([label, *("" if value is None else value for value in values)])

    response = HttpResponse(buffer.getvalue(), content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="periodLens-{result.mode}-comparison.csv"'
    return response


def _run_from_request(request: HttpRequest) -> ComparisonResult:
    payload = _json_body(request)

    options = ComparisonForm(
        {
            "granularity": payload.get("granularity") or "",
            "start_date": payload.get("startDate") or "",
            "end_date": payload.get("endDate") or "",
        }
    )
    if not options.is_valid():
        raise RequestValidationError("Invalid comparison options.", errors=options.errors.get_json_data())

    date_range = None
    if options.cleaned_data.get("start_date") and options.cleaned_data.get("end_date"):
        date_range = DateRange(
            start_date=options.cleaned_data["start_date"],
            end_date=options.cleaned_data["end_date"],
        )

    return run_comparison(
        _series_requests(payload.get("series")),
        granularity=options.cleaned_data["granularity"],
        date_range=date_range,
        color_periods=_color_periods(payload.get("colorPeriods")),
    )


def _json_body(request: HttpRequest) -> Mapping[str, Any]:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RequestValidationError("Request body must be a JSON object.") from exc
    if not isinstance(payload, dict):
        raise RequestValidationError("Request body must be a JSON object.")
    return payload


def _series_requests(raw: object) -> list[SeriesRequest]:
    if not isinstance(raw, list) or not raw:
        raise RequestValidationError("Provide at least one series.")
    if len(raw) > settings.PERIODLENS_MAX_SERIES:
        raise RequestValidationError(f"At most {settings.PERIODLENS_MAX_SERIES} series can be compared at once.")

    requests: list[SeriesRequest] = []
    errors: dict[str, object] = {}
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            errors[str(index)] = "Each series must be a JSON object."
            continue

        rows = entry.get("analyticsRows")
        metadata = entry.get("analyticsMetadata") or {}
        if rows is not None and (not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows)):
            errors[str(index)] = "analyticsRows must be a list of objects."
            continue
        if not isinstance(metadata, dict):
            errors[str(index)] = "analyticsMetadata must be an object."
            continue

        form = SeriesInputForm(
            {
                "label": entry.get("label") or "",
                "csv": entry.get("csv") or "",
                "metric": entry.get("metric") or "",
                "color": entry.get("color") or "",
                "unit": entry.get("unit") or "",
                "alignment_date": entry.get("alignmentDate") or "",
                "visible": entry.get("visible"),
            },
            has_analytics_rows=rows is not None,
        )
        if not form.is_valid():
            errors[str(index)] = form.errors.get_json_data()
            continue

        cleaned = form.cleaned_data
        requests.append(
            SeriesRequest(
                label=cleaned["label"],
                csv_text=cleaned.get("csv") or None,
                analytics_rows=rows,
                analytics_metadata=metadata,
                metric=cleaned.get("metric") or None,
                color=cleaned.get("color") or None,
                unit=cleaned.get("unit") or None,
                alignment_date=cleaned.get("alignment_date"),
                visible=cleaned["visible"],
            )
        )

    if errors:
        raise RequestValidationError("Invalid series.", errors=errors)
    return requests


def _color_periods(raw: object) -> Sequence[ColorPeriod]:
    if raw in (None, ""):
        return ()
    if not isinstance(raw, list):
        raise RequestValidationError("colorPeriods must be a list.")

    periods: list[ColorPeriod] = []
    errors: dict[str, object] = {}
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            errors[str(index)] = "Each color period must be a JSON object."
            continue
        form = ColorPeriodForm(
            {
                "id": entry.get("id") or "",
                "start_date": entry.get("startDate") or "",
                "end_date": entry.get("endDate") or "",
                "color": entry.get("color") or "",
                "label": entry.get("label") or "",
            }
        )
        if not form.is_valid():
            errors[str(index)] = form.errors.get_json_data()
            continue
        cleaned = form.cleaned_data
        periods.append(
            ColorPeriod(
                id=cleaned.get("id") or f"period-{index + 1}",
                start_date=cleaned["start_date"],
                end_date=cleaned["end_date"],
                color=cleaned["color"],
                label=cleaned["label"],
            )
        )

    if errors:
        raise RequestValidationError("Invalid color periods.", errors=errors)
    return tuple(periods)
