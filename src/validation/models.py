# src/validation/models.py — v1
"""Validation domain models: Finding, ValidationResult, TimeseriesOptions."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["error", "warning"]


class Finding(BaseModel):
    """One validation observation with a stable code."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    code: str
    message: str
    locator: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
        }
        if self.locator is not None:
            payload["locator"] = self.locator
        return payload


class ValidationResult(BaseModel):
    """Deterministic outcome of one engine run.

    Identical inputs produce an identical ``to_payload()`` dict, which is what
    the idempotency store persists and replays.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    findings: list[Finding] = Field(default_factory=list)
    row_count: int = 0
    normalized_summary: dict[str, Any] = Field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == "warning")

    @classmethod
    def from_findings(
        cls,
        findings: list[Finding],
        row_count: int,
        normalized_summary: dict[str, Any],
    ) -> ValidationResult:
        """Aggregate: valid iff no error-severity finding."""
        return cls(
            valid=not any(f.severity == "error" for f in findings),
            findings=findings,
            row_count=row_count,
            normalized_summary=normalized_summary,
        )

    def to_payload(self) -> dict[str, Any]:
        """Wire representation returned to the dispatcher."""
        return {
            "valid": self.valid,
            "issues": self.error_count,
            "warnings": self.warning_count,
            "rowCount": self.row_count,
            "findings": [f.to_payload() for f in self.findings],
            "normalizedSummary": self.normalized_summary,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ValidationResult:
        """Rebuild a result from its stored wire representation."""
        return cls(
            valid=payload["valid"],
            findings=[Finding(**f) for f in payload.get("findings", [])],
            row_count=payload.get("rowCount", 0),
            normalized_summary=payload.get("normalizedSummary", {}),
        )


class TimeseriesOptions(BaseModel):
    """Typed options for the CSV timeseries validator. Unknown keys are ignored."""

    model_config = ConfigDict(
        extra="ignore", frozen=True, populate_by_name=True, strict=True
    )

    allow_duplicate_dates: bool = Field(False, alias="allowDuplicateDates")
    require_sorted_by_date_asc: bool = Field(False, alias="requireSortedByDateAsc")
    allow_pageviews_missing: bool = Field(False, alias="allowPageviewsMissing")
    max_rows: int = Field(100_000, alias="maxRows", ge=0)
