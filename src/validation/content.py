# src/validation/content.py — v1
"""Content envelope decoding: ``text:`` and ``base64:`` prefixes."""

from __future__ import annotations

import base64
import binascii

TEXT_PREFIX = "text:"
BASE64_PREFIX = "base64:"


class ContentEncodingError(ValueError):
    """Content carries no known encoding tag or cannot be decoded."""


def decode_content(content: str) -> str:
    """Decode tagged content into text.

    Raises:
        ContentEncodingError: Unknown/absent tag, malformed base64, or
            bytes that are not valid UTF-8.
    """
    if content.startswith(TEXT_PREFIX):
        return content[len(TEXT_PREFIX):]
    if content.startswith(BASE64_PREFIX):
        data = content[len(BASE64_PREFIX):]
        try:
            raw = base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ContentEncodingError(f"Malformed base64 content: {e}") from e
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ContentEncodingError("Base64 content is not valid UTF-8") from e
    raise ContentEncodingError(
        f'Content must be prefixed with "{BASE64_PREFIX}" or "{TEXT_PREFIX}"'
    )
