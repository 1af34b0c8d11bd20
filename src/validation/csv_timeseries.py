# src/validation/csv_timeseries.py — v1
"""CSV timeseries validator (GA4-style daily export).

Stages run in order: decode content, parse rows, check headers, check the row
ceiling, validate each data row, then run the order-sensitive global checks.
Header-stage failures abort the whole document; a malformed data row only
affects its own findings.

Known limitation: no CSV quoting. Fields containing the separator are not
supported.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from rapidval.validation.base_validator import BaseValidator
from rapidval.validation.content import ContentEncodingError, decode_content
from rapidval.validation.models import Finding, TimeseriesOptions, ValidationResult

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ","
REQUIRED_HEADERS: tuple[str, ...] = ("date", "sessions", "users")
OPTIONAL_HEADERS: tuple[str, ...] = ("pageviews",)
DATE_KEY = "date"

_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
_INTEGER_RE = re.compile(r"^[0-9]+$")


def is_valid_date(value: str) -> bool:
    """ISO calendar date ``YYYY-MM-DD`` that actually exists."""
    if not _DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def is_non_negative_integer(value: str) -> bool:
    """Plain ASCII digits, no sign, no whitespace, no leading zeros."""
    if not _INTEGER_RE.match(value):
        return False
    return value == "0" or not value.startswith("0")


def parse_rows(text: str) -> list[list[str]]:
    """Split text into rows and trimmed cells."""
    return [
        [cell.strip() for cell in line.split(FIELD_SEPARATOR)]
        for line in text.strip().split("\n")
    ]


class TimeseriesCsvValidator(BaseValidator):
    """Validator for daily timeseries CSV with date/sessions/users columns."""

    description = "CSV timeseries validation for Google Analytics 4 data"
    options_model = TimeseriesOptions

    def validate(self, content: str, options: TimeseriesOptions) -> ValidationResult:  # type: ignore[override]
        findings: list[Finding] = []

        try:
            text = decode_content(content)
        except ContentEncodingError as e:
            findings.append(_error("INVALID_CONTENT_ENCODING", str(e)))
            return _aborted(findings, row_count=0)

        if not text.strip():
            findings.append(_error("EMPTY_CONTENT", "CSV content is empty"))
            return _aborted(findings, row_count=0)

        rows = parse_rows(text)
        headers = rows[0]

        missing = [h for h in REQUIRED_HEADERS if h not in headers]
        if missing:
            findings.append(
                _error(
                    "MISSING_REQUIRED_HEADERS",
                    f"Missing required headers: {', '.join(missing)}",
                    missing=missing,
                )
            )
            return _aborted(findings, row_count=0)

        for optional in OPTIONAL_HEADERS:
            if optional not in headers and not options.allow_pageviews_missing:
                findings.append(
                    Finding(
                        severity="warning",
                        code="MISSING_OPTIONAL_HEADER",
                        message=f'Optional header "{optional}" is missing',
                        locator={"header": optional},
                    )
                )

        data_rows = rows[1:]
        row_count = len(data_rows)
        if row_count > options.max_rows:
            findings.append(
                _error(
                    "MAX_ROWS_EXCEEDED",
                    f"CSV has {row_count} rows, exceeding maximum of {options.max_rows}",
                    maxRows=options.max_rows,
                    actualRows=row_count,
                )
            )
            return _aborted(findings, row_count=row_count)

        dated_rows = self._validate_rows(headers, data_rows, options, findings)

        if options.require_sorted_by_date_asc:
            self._check_sorted(dated_rows, findings)

        summary: dict[str, Any] = {"detectedHeaders": headers}
        if dated_rows:
            summary["dateRange"] = {
                "start": dated_rows[0][1],
                "end": dated_rows[-1][1],
            }
        return ValidationResult.from_findings(findings, row_count, summary)

    def describe(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "requiredHeaders": list(REQUIRED_HEADERS),
            "optionalHeaders": list(OPTIONAL_HEADERS),
            "options": TimeseriesOptions().model_dump(by_alias=True),
        }

    def _validate_rows(
        self,
        headers: list[str],
        data_rows: list[list[str]],
        options: TimeseriesOptions,
        findings: list[Finding],
    ) -> list[tuple[int, str]]:
        """Per-row checks. Returns (row number, date) for rows with a valid date."""
        index = {name: headers.index(name) for name in REQUIRED_HEADERS}
        pageviews_idx = headers.index("pageviews") if "pageviews" in headers else -1
        min_cells = max(len(REQUIRED_HEADERS), max(index.values()) + 1)

        dated_rows: list[tuple[int, str]] = []
        seen_dates: set[str] = set()

        for offset, row in enumerate(data_rows):
            row_number = offset + 2  # 1-based, header is line 1

            if len(row) < min_cells:
                findings.append(
                    _error(
                        "INVALID_ROW_FORMAT",
                        f"Row {row_number} has insufficient columns",
                        row=row_number,
                    )
                )
                continue

            date = row[index["date"]]
            if not is_valid_date(date):
                findings.append(
                    _error(
                        "INVALID_DATE_FORMAT",
                        f'Row {row_number}: Invalid date format "{date}". Expected YYYY-MM-DD',
                        row=row_number,
                        value=date,
                    )
                )
            else:
                dated_rows.append((row_number, date))
                if date in seen_dates:
                    if not options.allow_duplicate_dates:
                        findings.append(
                            _error(
                                "DUPLICATE_DATE",
                                f'Row {row_number}: Duplicate date "{date}"',
                                row=row_number,
                                date=date,
                            )
                        )
                else:
                    seen_dates.add(date)

            for field in ("sessions", "users"):
                _check_integer(field, row[index[field]], row_number, findings)

            if 0 <= pageviews_idx < len(row) and row[pageviews_idx] != "":
                _check_integer("pageviews", row[pageviews_idx], row_number, findings)

        return dated_rows

    def _check_sorted(
        self, dated_rows: list[tuple[int, str]], findings: list[Finding]
    ) -> None:
        for (_, previous), (row_number, current) in zip(dated_rows, dated_rows[1:]):
            if current < previous:
                findings.append(
                    _error(
                        "NOT_SORTED_BY_KEY",
                        "Dates are not sorted in ascending order",
                        key=DATE_KEY,
                        row=row_number,
                        value=current,
                        previous=previous,
                    )
                )
                return


def _check_integer(
    field: str, value: str, row_number: int, findings: list[Finding]
) -> None:
    if not is_non_negative_integer(value):
        findings.append(
            _error(
                f"INVALID_{field.upper()}_VALUE",
                f'Row {row_number}: "{field}" must be a non-negative integer, got "{value}"',
                row=row_number,
                value=value,
            )
        )


def _error(code: str, message: str, **locator: Any) -> Finding:
    return Finding(severity="error", code=code, message=message, locator=locator or None)


def _aborted(findings: list[Finding], row_count: int) -> ValidationResult:
    logger.debug("Document aborted at %s", findings[-1].code)
    return ValidationResult.from_findings(
        findings, row_count, {"detectedHeaders": []}
    )
