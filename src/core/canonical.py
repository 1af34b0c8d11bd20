# src/core/canonical.py — v1
"""Canonical serialization of JSON-like values for hashing.

Output is byte-stable across processes and independent of dict insertion
order: mapping keys are sorted by codepoint, nothing is whitespace-padded and
numbers use the ECMAScript ``Number#toString`` form so that independent
implementations agree on every literal.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

NULL_SENTINEL = "null"


def canonicalize(value: Any) -> str:
    """Render ``value`` as a canonical string.

    Raises:
        TypeError: On non-string mapping keys or non JSON-like values.
    """
    if value is None:
        return NULL_SENTINEL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, Mapping):
        pairs = []
        for key in sorted(_check_keys(value)):
            pairs.append(f"{json.dumps(key, ensure_ascii=False)}:{canonicalize(value[key])}")
        return "{" + ",".join(pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(item) for item in value) + "]"
    raise TypeError(f"Cannot canonicalize value of type {type(value).__name__}")


def _check_keys(mapping: Mapping[Any, Any]) -> list[str]:
    keys = list(mapping.keys())
    for key in keys:
        if not isinstance(key, str):
            raise TypeError(f"Mapping keys must be strings, got {type(key).__name__}")
    return keys


def _format_number(value: float) -> str:
    """Format a float the way ``Number.prototype.toString`` does."""
    if not math.isfinite(value):
        return NULL_SENTINEL
    if value == 0:
        return "0"
    if value < 0:
        return "-" + _format_number(-value)

    # repr gives the shortest round-trip digits; re-layout them
    mantissa, _, exp_part = repr(value).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = (int_part + frac_part).lstrip("0")
    # decimal exponent n: value = 0.d1d2... * 10**n
    n = len(int_part.lstrip("0")) if int_part.strip("0") else -(
        len(frac_part) - len(frac_part.lstrip("0"))
    )
    if exp_part:
        n += int(exp_part)
    digits = digits.rstrip("0") or "0"
    k = len(digits)

    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return "0." + "0" * (-n) + digits
    exponent = n - 1
    sign = "+" if exponent >= 0 else "-"
    head = digits[0] if k == 1 else digits[0] + "." + digits[1:]
    return f"{head}e{sign}{abs(exponent)}"
