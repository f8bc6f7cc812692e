"""Structural validation of generation requests.

Wraps the pydantic request models so callers get a flat list of
``FieldError`` entries (field path, message, rejected value) instead of
pydantic's nested error format, and adds the cross-field rules the
models cannot express on a single field.
"""

import json
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from excel_generation_api.models import DeliveryMode, ExcelRequest
from excel_generation_api.utils.exceptions import (
    FieldError,
    InvalidJSONError,
    RequestValidationError,
)
from excel_generation_api.utils.logging import get_logger

logger = get_logger(__name__)

# Form fields that arrive as JSON-encoded strings in multipart requests.
JSON_ENCODED_FIELDS = ("jsonData", "mappingConfig", "tables", "options")

# Fields that only matter when the workbook is delivered to a single caller.
DELIVERY_FIELDS = ("mode", "emailAddress")


def field_errors_from_pydantic(exc: PydanticValidationError) -> list[FieldError]:
    """Flatten a pydantic ValidationError into field-level errors."""
    errors: list[FieldError] = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(part) for part in error["loc"])
        errors.append(
            FieldError(
                field=location,
                message=error["msg"],
                value=_json_safe(error.get("input")),
            )
        )
    return errors


def cross_field_errors(payload: dict[str, Any]) -> list[FieldError]:
    """Rules spanning several fields."""
    errors: list[FieldError] = []
    if payload.get("mode") == DeliveryMode.EMAIL.value and not payload.get(
        "emailAddress"
    ):
        errors.append(
            FieldError(
                field="emailAddress",
                message="emailAddress is required when mode is 'email'",
                value=payload.get("emailAddress"),
            )
        )
    return errors


def decode_json_fields(payload: dict[str, Any]) -> dict[str, Any]:
    """Parse JSON-encoded string fields from a multipart form.

    Raises:
        InvalidJSONError: If one of the fields is not valid JSON.
    """
    decoded = dict(payload)
    for name in JSON_ENCODED_FIELDS:
        value = decoded.get(name)
        if isinstance(value, str):
            try:
                decoded[name] = json.loads(value)
            except json.JSONDecodeError as e:
                logger.warning("Invalid JSON form field", field=name, error=str(e))
                raise InvalidJSONError(
                    field=name,
                    details={"parse_error": str(e)},
                ) from e
    return decoded


def validate_excel_request(payload: Any, check_delivery: bool = True) -> ExcelRequest:
    """Validate a raw request body and return the parsed request.

    Args:
        payload: Decoded request body.
        check_delivery: When False, ``mode`` and ``emailAddress`` are ignored
            and the request falls back to the default delivery mode.

    Returns:
        The validated ExcelRequest.

    Raises:
        RequestValidationError: With every field error found.
    """
    if not isinstance(payload, dict):
        raise RequestValidationError(
            errors=[
                FieldError(
                    field="",
                    message="Request body must be a JSON object",
                    value=_json_safe(payload),
                )
            ]
        )

    if not check_delivery:
        payload = {k: v for k, v in payload.items() if k not in DELIVERY_FIELDS}

    errors: list[FieldError] = []
    request: ExcelRequest | None = None
    try:
        request = ExcelRequest.model_validate(payload)
    except PydanticValidationError as e:
        errors.extend(field_errors_from_pydantic(e))

    errors.extend(cross_field_errors(payload))

    if errors:
        logger.warning(
            "Request validation failed",
            error_count=len(errors),
            fields=",".join(e.field for e in errors),
        )
        raise RequestValidationError(errors=errors)

    assert request is not None
    return request


def _json_safe(value: Any) -> Any:
    """Keep rejected values only when they serialize cleanly."""
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value
