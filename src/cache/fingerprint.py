# src/cache/fingerprint.py — v3
"""Request fingerprinting for idempotent replay.

Two requests are the same logical operation iff their fingerprints match.
The fingerprint covers the operation type, a digest of the raw content and
the canonical forms of options and context, so key order inside those
mappings never changes the result.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from rapidval.core.canonical import canonicalize

if TYPE_CHECKING:
    from rapidval.api.models import ValidationRequest


def compute_fingerprint(request: ValidationRequest) -> str:
    """Compute the SHA-256 fingerprint of a validation request."""
    return fingerprint_parts(
        operation_type=request.operation_type,
        content=request.content,
        options=request.options,
        context=request.context,
    )


def fingerprint_parts(
    operation_type: str,
    content: str,
    options: Mapping[str, Any] | None = None,
    context: Mapping[str, str] | None = None,
) -> str:
    """Fingerprint from loose parts; ``None`` options/context count as empty."""
    composite = "".join(
        (
            operation_type,
            _sha256_hex(content),
            canonicalize(options if options is not None else {}),
            canonicalize(context if context is not None else {}),
        )
    )
    return _sha256_hex(composite)


def hash_caller_identity(credential: str) -> str:
    """One-way hash of the caller credential used to namespace store keys."""
    return _sha256_hex(credential)


def _sha256_hex(text: str) -> str:
    # surrogatepass keeps distinct lone surrogates distinct
    return hashlib.sha256(text.encode("utf-8", "surrogatepass")).hexdigest()
