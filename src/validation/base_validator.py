# src/validation/base_validator.py — v1
"""Abstract validator interface: one implementation per schema id."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel

from rapidval.validation.models import ValidationResult


class BaseValidator(ABC):
    """Pure validator: ``(decoded content, options) -> ValidationResult``.

    Implementations must be deterministic and must report malformed data as
    findings rather than raising.
    """

    description: ClassVar[str] = ""
    options_model: ClassVar[type[BaseModel]]

    @abstractmethod
    def validate(self, content: str, options: BaseModel) -> ValidationResult:
        """Validate tagged content with already-parsed options."""

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        """Catalog entry: headers, option defaults, description."""
