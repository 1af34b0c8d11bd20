# src/api/models.py — v2
"""API-level models: ValidationRequest, orchestrator outcomes, ApiResponse."""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rapidval.validation.models import ValidationResult

CONFLICT_CODE = "IDEMPOTENCY_KEY_REUSE_MISMATCH"


class ValidationRequest(BaseModel):
    """Immutable validation request as received from the dispatcher."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    operation_type: str = Field(alias="type", min_length=1)
    content: str = Field(min_length=1)
    options: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def reject_unencodable_text(self) -> ValidationRequest:
        """Lone surrogates cannot be stored or hashed as UTF-8."""
        for name in ("operation_type", "content", "options", "context"):
            if _has_lone_surrogate(getattr(self, name)):
                raise ValueError(f"{name} contains text that is not valid UTF-8")
        return self


def _has_lone_surrogate(value: Any) -> bool:
    if isinstance(value, str):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            return True
        return False
    if isinstance(value, dict):
        return any(_has_lone_surrogate(k) or _has_lone_surrogate(v) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return any(_has_lone_surrogate(item) for item in value)
    return False


class Completed(BaseModel):
    """Validation result, either fresh or replayed from the store."""

    kind: Literal["completed"] = "completed"
    result: ValidationResult
    replayed: bool = False
    idempotency_key: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.result.to_payload()
        if self.idempotency_key is not None:
            payload["idempotency"] = {
                "key": self.idempotency_key,
                "replayed": self.replayed,
            }
        return payload


class Conflict(BaseModel):
    """Token reused with different request parameters. Carries no result."""

    kind: Literal["conflict"] = "conflict"
    idempotency_key: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "ok": False,
            "error": {
                "code": CONFLICT_CODE,
                "message": "Idempotency key was already used with different request parameters",
            },
        }


Outcome = Union[Completed, Conflict]


class ApiResponse(BaseModel):
    """Status code and JSON body handed back to the dispatcher."""

    status_code: int
    body: dict[str, Any]
