# src/validation/engine.py — v1
"""Validation engine: schema id registry and pure dispatch to validators."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from rapidval.core.errors import ConfigurationError, RequestError, UnsupportedTypeError
from rapidval.validation.base_validator import BaseValidator
from rapidval.validation.models import ValidationResult

logger = logging.getLogger(__name__)

TIMESERIES_SCHEMA_ID = "csv.timeseries.ga4.v1"
TIMESERIES_SCHEMA_ALIAS = "csv.timeseries.v1"


class ValidationEngine:
    """Routes ``(schema id, content, options)`` to the registered validator."""

    def __init__(self) -> None:
        self._validators: dict[str, BaseValidator] = {}

    def register(self, schema_id: str, validator: BaseValidator) -> None:
        if schema_id in self._validators:
            raise ConfigurationError(f"Validator already registered for {schema_id!r}")
        self._validators[schema_id] = validator

    @property
    def schema_ids(self) -> list[str]:
        return sorted(self._validators)

    def resolve(self, schema_id: str) -> BaseValidator:
        """Return the validator for ``schema_id``.

        Raises:
            UnsupportedTypeError: No validator is registered for the id.
        """
        validator = self._validators.get(schema_id)
        if validator is None:
            raise UnsupportedTypeError(schema_id)
        return validator

    def parse_options(
        self, schema_id: str, raw_options: Mapping[str, Any] | None
    ) -> BaseModel:
        """Convert raw options into the validator's typed options model."""
        validator = self.resolve(schema_id)
        try:
            return validator.options_model.model_validate(dict(raw_options or {}))
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise RequestError(
                f"Invalid options for {schema_id}: {', '.join(fields)}",
                code="INVALID_OPTIONS",
            ) from e

    def run(
        self,
        schema_id: str,
        content: str,
        options: BaseModel | Mapping[str, Any] | None = None,
    ) -> ValidationResult:
        """Validate ``content``; malformed data yields findings, never exceptions."""
        validator = self.resolve(schema_id)
        if not isinstance(options, validator.options_model):
            options = self.parse_options(schema_id, options)  # type: ignore[arg-type]
        result = validator.validate(content, options)
        logger.debug(
            "Validated %s: valid=%s rows=%d findings=%d",
            schema_id, result.valid, result.row_count, len(result.findings),
        )
        return result

    def describe(self) -> list[dict[str, Any]]:
        """Catalog of registered validators, sorted by schema id."""
        return [
            {"type": schema_id, **self._validators[schema_id].describe()}
            for schema_id in self.schema_ids
        ]


def create_default_engine() -> ValidationEngine:
    """Engine with the built-in validators registered."""
    from rapidval.validation.csv_timeseries import TimeseriesCsvValidator

    engine = ValidationEngine()
    timeseries = TimeseriesCsvValidator()
    engine.register(TIMESERIES_SCHEMA_ID, timeseries)
    engine.register(TIMESERIES_SCHEMA_ALIAS, timeseries)
    return engine
