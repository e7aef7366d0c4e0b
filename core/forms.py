"""Forms for core API workflows.

The comparison API accepts JSON, but each scalar part of a request is still
validated with a Django form so error messages and date parsing match the
rest of the app:
- a `ComparisonForm` for the request-level options,
- a `SeriesInputForm` per submitted series,
- a `ColorPeriodForm` per declared color period.
"""

from __future__ import annotations

from django import forms

from analysis.dto import GRANULARITIES

_HEX_COLOR_RE = r"^#[0-9A-Fa-f]{6}$"


class CsvUploadForm(forms.Form):
    """Validate a single uploaded delimited file."""

    file = forms.FileField(label="File")
    metric = forms.CharField(
        required=False,
        max_length=200,
        help_text="Optional metric column to use instead of the detected default.",
    )

    def __init__(self, *args, max_upload_bytes: int, **kwargs) -> None:
        """Initialize the form with the configured upload size limit."""

        super().__init__(*args, **kwargs)
        self._max_upload_bytes = max_upload_bytes

    def clean_file(self):
        upload = self.cleaned_data["file"]
        if upload.size > self._max_upload_bytes:
            raise forms.ValidationError(f"File exceeds the {self._max_upload_bytes} byte upload limit.")
        return upload


class ComparisonForm(forms.Form):
    """Validate request-level comparison options."""

    granularity = forms.ChoiceField(
        required=False,
        choices=tuple((value, value.title()) for value in GRANULARITIES),
        label="Granularity",
        help_text="Bucket size used for aggregation and aligned offsets.",
    )
    start_date = forms.DateField(required=False, label="Start date")
    end_date = forms.DateField(required=False, label="End date")

    def clean(self) -> dict[str, object]:
        """Default the granularity and enforce a complete, ordered date range."""

        cleaned = super().clean()
        if not cleaned.get("granularity"):
            cleaned["granularity"] = "daily"
        start_date = cleaned.get("start_date")
        end_date = cleaned.get("end_date")
        if (start_date is None) != (end_date is None):
            self.add_error("end_date" if end_date is None else "start_date", "Provide both start and end dates.")
        elif start_date and end_date and start_date > end_date:
            self.add_error("end_date", "End date must be on or after the start date.")
        return cleaned


class SeriesInputForm(forms.Form):
    """Validate one submitted series.

    A series carries either delimited text (`csv`) or analytics rows; the rows
    themselves are structured JSON and are checked by the view, which tells the
    form whether they were supplied.
    """

    label = forms.CharField(max_length=200, label="Label")
    csv = forms.CharField(required=False, strip=False, label="CSV text")
    metric = forms.CharField(required=False, max_length=200, label="Metric")
    color = forms.RegexField(required=False, regex=_HEX_COLOR_RE, label="Color")
    unit = forms.CharField(required=False, max_length=40, label="Unit")
    alignment_date = forms.DateField(required=False, label="Alignment date")
    visible = forms.NullBooleanField(required=False, label="Visible")

    def __init__(self, *args, has_analytics_rows: bool = False, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._has_analytics_rows = has_analytics_rows

    def clean(self) -> dict[str, object]:
        cleaned = super().clean()
        if not (cleaned.get("csv") or "").strip() and not self._has_analytics_rows:
            self.add_error("csv", "Provide CSV text or analytics rows for this series.")
        # Omitted visibility means visible.
        cleaned["visible"] = cleaned.get("visible") is not False
        return cleaned


class ColorPeriodForm(forms.Form):
    """Validate one color period declaration."""

    id = forms.CharField(required=False, max_length=64, label="Id")
    start_date = forms.DateField(label="Start date")
    end_date = forms.DateField(label="End date")
    color = forms.RegexField(regex=_HEX_COLOR_RE, label="Color")
    label = forms.CharField(max_length=200, label="Label")

    def clean(self) -> dict[str, object]:
        cleaned = super().clean()
        start_date = cleaned.get("start_date")
        end_date = cleaned.get("end_date")
        if start_date and end_date and start_date > end_date:
            self.add_error("end_date", "End date must be on or after the start date.")
        return cleaned
