"""Django integration tests for the JSON comparison API."""

from __future__ import annotations

import json

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

pytestmark = pytest.mark.integration

JANUARY_2024 = "Date,Revenue\n2024-01-01,100\n2024-01-02,200\n2024-01-03,300\n"
JANUARY_2023 = "Date,Revenue\n2023-01-01,10\n2023-01-02,20\n"


def _post_json(client, name: str, body: object):
    return client.post(reverse(name), data=json.dumps(body), content_type="application/json")


def test_parse_upload_returns_series_and_detected_metrics(client) -> None:
    """Uploading a file returns the parsed points and metric names."""

    upload = SimpleUploadedFile(
        "sales.csv",
        b"# export\nDate,Sessions,Revenue\n2024-01-02,5,50\n2024-01-01,4,40\n",
        content_type="text/csv",
    )

    response = client.post(reverse("core:parse_upload"), {"file": upload, "metric": "Revenue"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["metricName"] == "Revenue"
    assert payload["detectedMetrics"] == ["Sessions", "Revenue"]
    assert payload["points"] == [{"date": "2024-01-01", "value": 40.0}, {"date": "2024-01-02", "value": 50.0}]
    assert payload["dateRange"] == {"startDate": "2024-01-01", "endDate": "2024-01-02"}


def test_parse_upload_reports_parse_errors(client) -> None:
    """A file without a date column yields HTTP 400 with the available headers."""

    upload = SimpleUploadedFile("bad.csv", b"Date\n2024-01-01\n", content_type="text/csv")

    response = client.post(reverse("core:parse_upload"), {"file": upload})

    assert response.status_code == 400
    assert response.json()["headers"] == ["Date"]
    assert "metric column" in response.json()["error"]


def test_parse_upload_enforces_size_limit(client, settings) -> None:
    """Uploads over the configured limit are rejected by the form."""

    settings.PERIODLENS_MAX_UPLOAD_BYTES = 8
    upload = SimpleUploadedFile("big.csv", JANUARY_2024.encode(), content_type="text/csv")

    response = client.post(reverse("core:parse_upload"), {"file": upload})

    assert response.status_code == 400
    assert "file" in response.json()["errors"]


def test_api_endpoints_require_post(client) -> None:
    """The API only accepts POST requests."""

    assert client.get(reverse("core:compare")).status_code == 405
    assert client.get(reverse("core:parse_upload")).status_code == 405


def test_compare_returns_absolute_chart_for_overlapping_series(client) -> None:
    """Overlapping series are charted on the calendar axis."""

    response = _post_json(
        client,
        "core:compare",
        {
            "granularity": "daily",
            "series": [
                {"label": "A", "csv": JANUARY_2024},
                {"label": "B", "csv": JANUARY_2024, "color": "#EF4444"},
            ],
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["mode"] == "absolute"
    assert payload["table"] is None
    assert payload["chart"]["labels"] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert payload["chart"]["datasets"][1]["backgroundColor"] == "#EF444420"
    assert payload["errors"] == []


def test_compare_aligns_disjoint_series(client) -> None:
    """Series from different years are compared by offset."""

    response = _post_json(
        client,
        "core:compare",
        {
            "granularity": "daily",
            "series": [{"label": "2024", "csv": JANUARY_2024}, {"label": "2023", "csv": JANUARY_2023}],
        },
    )

    payload = response.json()
    assert payload["mode"] == "aligned"
    assert payload["chart"]["labels"] == ["Day 0", "Day 1", "Day 2"]
    assert payload["table"]["columns"] == ["2024", "2023"]
    assert payload["table"]["rows"][2]["values"] == [300.0, None]


def test_compare_reports_per_series_errors(client) -> None:
    """A broken file is reported while the other series are still compared."""

    response = _post_json(
        client,
        "core:compare",
        {"series": [{"label": "A", "csv": JANUARY_2024}, {"label": "Broken", "csv": "a,b\n1,2\n"}]},
    )

    assert response.status_code == 200
    payload = response.json()
    assert [error["index"] for error in payload["errors"]] == [1]
    assert [series["label"] for series in payload["series"]] == ["A"]


def test_compare_applies_date_range_and_color_periods(client) -> None:
    """Date ranges clip the chart and color periods split datasets."""

    response = _post_json(
        client,
        "core:compare",
        {
            "startDate": "2024-01-02",
            "endDate": "2024-01-03",
            "colorPeriods": [
                {"startDate": "2024-01-03", "endDate": "2024-01-03", "color": "#EF4444", "label": "Promo"}
            ],
            "series": [{"label": "A", "csv": JANUARY_2024}],
        },
    )

    payload = response.json()
    assert payload["chart"]["labels"] == ["2024-01-02", "2024-01-03"]
    assert [dataset["label"] for dataset in payload["chart"]["datasets"]] == ["A", "A - Promo"]
    assert payload["analytics"]["inRange"][0]["count"] == 2


@pytest.mark.parametrize(
    "body",
    [
        {"granularity": "hourly", "series": [{"label": "A", "csv": JANUARY_2024}]},
        {"startDate": "2024-01-02", "series": [{"label": "A", "csv": JANUARY_2024}]},
        {"series": []},
        {"series": [{"label": "A"}]},
        {"series": [{"label": "A", "csv": JANUARY_2024, "color": "blue"}]},
        {
            "series": [{"label": "A", "csv": JANUARY_2024}],
            "colorPeriods": [{"startDate": "2024-01-05", "endDate": "2024-01-01", "color": "#EF4444", "label": "X"}],
        },
    ],
)
def test_compare_rejects_invalid_requests(client, body: dict[str, object]) -> None:
    """Invalid options, series and periods are reported as HTTP 400."""

    response = _post_json(client, "core:compare", body)

    assert response.status_code == 400
    assert "error" in response.json()


def test_compare_rejects_malformed_json(client) -> None:
    """A body that is not a JSON object is a client error."""

    response = client.post(reverse("core:compare"), data="[1, 2", content_type="application/json")

    assert response.status_code == 400


def test_compare_enforces_series_limit(client, settings) -> None:
    """Requests with more series than configured are rejected."""

    settings.PERIODLENS_MAX_SERIES = 1

    response = _post_json(
        client,
        "core:compare",
        {"series": [{"label": "A", "csv": JANUARY_2024}, {"label": "B", "csv": JANUARY_2024}]},
    )

    assert response.status_code == 400


def test_export_aligned_comparison_as_csv(client) -> None:
    """Aligned comparisons export the offset table."""

    response = _post_json(
        client,
        "core:export_comparison_csv",
        {"series": [{"label": "2024", "csv": JANUARY_2024}, {"label": "2023", "csv": JANUARY_2023}]},
    )

    assert response.status_code == 200
    assert response["Content-Type"].startswith("text/csv")
    lines = response.content.decode().splitlines()
    assert lines[0] == "offset,period,2024,2023"
    assert lines[1] == "0,Day 0,100.0,10.0"
    assert lines[3] == "2,Day 2,300.0,"


def test_export_absolute_comparison_as_csv(client) -> None:
    """Absolute comparisons export the calendar timeline."""

    response = _post_json(
        client,
        "core:export_comparison_csv",
        {"granularity": "monthly", "series": [{"label": "A", "csv": JANUARY_2024}]},
    )

    lines = response.content.decode().splitlines()
    assert lines == ["date,A", "2024-01-01,600.0"]


def test_parse_upload_rejects_oversized_cells_with_400(client) -> None:
    """A file the tokenizer cannot read is a descriptive client error."""

    upload = SimpleUploadedFile(
        "huge.csv",
        b"Date,Revenue,Notes\n2024-01-01,5," + b"x" * 200_000 + b"\n",
        content_type="text/csv",
    )

    response = client.post(reverse("core:parse_upload"), {"file": upload})

    assert response.status_code == 400
    assert "could not be read" in response.json()["error"]


def test_compare_isolates_an_unreadable_file_from_its_siblings(client) -> None:
    """An oversized cell fails one series while the others are still charted."""

    oversized = "Date,Revenue,Notes\n2024-01-01,5," + "x" * 200_000 + "\n"

    response = _post_json(
        client,
        "core:compare",
        {"series": [{"label": "Huge", "csv": oversized}, {"label": "A", "csv": JANUARY_2024}]},
    )

    assert response.status_code == 200
    payload = response.json()
    assert [error["index"] for error in payload["errors"]] == [0]
    assert [series["label"] for series in payload["series"]] == ["A"]
    assert payload["chart"]["displayLabels"] == ["Jan 1, 2024", "Jan 2, 2024", "Jan 3, 2024"]


def test_compare_warns_about_non_overlapping_analytics_rows(client) -> None:
    """Analytics rows outside the existing date range come back as a warning."""

    response = _post_json(
        client,
        "core:compare",
        {
            "series": [
                {"label": "A", "csv": JANUARY_2024},
                {
                    "label": "GA",
                    "analyticsRows": [{"date": "20230101", "sessions": "5"}, {"date": "20230102", "sessions": "6"}],
                    "analyticsMetadata": {"metricHeaders": ["sessions"]},
                },
            ]
        },
    )

    assert response.status_code == 200
    assert response.json()["warnings"] == [
        {
            "index": 1,
            "label": "GA",
            "warning": "New dataset does not overlap existing data; series are compared by aligned periods.",
        }
    ]
