# src/api/facade.py — v2
"""Public API facade: the boundary the request dispatcher calls.

Usage:
    from rapidval.api.facade import build_orchestrator, handle_validation
    orchestrator = build_orchestrator()
    response = await handle_validation(body, idempotency_key, api_key,
                                       orchestrator=orchestrator)

Authentication has already happened upstream; ``caller_identity`` is the
authenticated credential and is only ever used in hashed form.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from rapidval.api.models import ApiResponse, Completed, ValidationRequest
from rapidval.api.orchestrator import ValidationOrchestrator
from rapidval.cache.idempotency_store import IdempotencyStore
from rapidval.config.settings import Settings
from rapidval.core.errors import RapidValError, RequestError
from rapidval.logging.context import clear_context, set_request_context
from rapidval.validation.engine import ValidationEngine, create_default_engine

if TYPE_CHECKING:
    from rapidval.cache.base_kv_store import BaseKeyValueStore

logger = logging.getLogger(__name__)


def build_orchestrator(
    settings: Settings | None = None,
    backend: BaseKeyValueStore | None = None,
    engine: ValidationEngine | None = None,
) -> ValidationOrchestrator:
    """Wire engine, key-value backend and idempotency store from settings."""
    settings = settings or Settings()
    return ValidationOrchestrator(
        engine=engine or create_default_engine(),
        store=IdempotencyStore.from_settings(settings, backend=backend),
        key_max_length=settings.idempotency_key_max_length,
    )


async def handle_validation(
    body: Any,
    idempotency_key: str | None = None,
    caller_identity: str | None = None,
    *,
    orchestrator: ValidationOrchestrator,
    request_id: str | None = None,
) -> ApiResponse:
    """Validate a decoded JSON request body and map every outcome to a code.

    Status codes: 200 valid, 422 invalid, 409 idempotency conflict, 400
    request errors, 503 store unavailable, 500 configuration or internal
    errors.
    """
    set_request_context(request_id)
    try:
        request = parse_request(body)
        outcome = await orchestrator.handle(
            request,
            idempotency_key=idempotency_key,
            caller_identity=caller_identity,
        )
        if isinstance(outcome, Completed):
            status = 200 if outcome.result.valid else 422
            return ApiResponse(status_code=status, body=outcome.to_payload())
        return ApiResponse(
            status_code=409, body=_with_request_id(outcome.to_payload(), request_id)
        )
    except RapidValError as e:
        if e.status_code >= 500:
            logger.error("Request failed: %s (%s)", e.message, e.code)
        else:
            logger.info("Request rejected: %s", e.code)
        return _error_response(e.status_code, e.code, e.message, request_id)
    except Exception:
        logger.exception("Unhandled error")
        return _error_response(
            500, "INTERNAL_ERROR", "An internal error occurred", request_id
        )
    finally:
        clear_context()


def parse_request(body: Any) -> ValidationRequest:
    """Turn a decoded JSON body into a ValidationRequest or raise RequestError."""
    if not isinstance(body, dict):
        raise RequestError("Request body must be a JSON object", code="INVALID_JSON")
    if not body.get("type"):
        raise RequestError("Validation type is required", code="MISSING_TYPE")
    if not body.get("content"):
        raise RequestError("Content is required", code="MISSING_CONTENT")
    try:
        return ValidationRequest.model_validate(body)
    except ValidationError as e:
        fields = sorted(
            {".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()}
        )
        raise RequestError(
            f"Invalid request fields: {', '.join(fields)}", code="INVALID_REQUEST"
        ) from e


def list_types(engine: ValidationEngine | None = None) -> dict[str, Any]:
    """Catalog of supported validation types."""
    engine = engine or create_default_engine()
    return {"ok": True, "types": engine.describe()}


def _error_response(
    status_code: int, code: str, message: str, request_id: str | None
) -> ApiResponse:
    body = {"ok": False, "error": {"code": code, "message": message}}
    return ApiResponse(status_code=status_code, body=_with_request_id(body, request_id))


def _with_request_id(body: dict[str, Any], request_id: str | None) -> dict[str, Any]:
    if request_id:
        body["error"]["request_id"] = request_id
    return body
