# src/core/errors.py — v1
"""Error taxonomy shared by every layer.

Malformed input data never raises: it becomes a Finding. Exceptions are kept
for request-shape problems, infrastructure failures and configuration defects,
each carrying a stable machine-readable code.
"""

from __future__ import annotations


class RapidValError(Exception):
    """Base class for all errors surfaced to the dispatcher."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class RequestError(RapidValError):
    """Request rejected before the engine runs (missing fields, bad options...)."""

    code = "INVALID_REQUEST"
    status_code = 400


class UnsupportedTypeError(RequestError):
    """Operation type has no registered validator."""

    code = "UNSUPPORTED_TYPE"

    def __init__(self, operation_type: str) -> None:
        super().__init__(f'Validation type "{operation_type}" is not supported')
        self.operation_type = operation_type


class StoreUnavailableError(RapidValError):
    """Key-value backend failed; must never be read as 'no prior record'."""

    code = "STORE_UNAVAILABLE"
    status_code = 503


class ConfigurationError(RapidValError):
    """Raised when configuration is missing or internally inconsistent."""

    code = "CONFIG_ERROR"
    status_code = 500
