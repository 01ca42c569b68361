"""
api/validation.py -- Schema checks that report problems instead of raising.

validate() is the only entry point route handlers use. It runs a Pydantic
model against untrusted input and returns a ValidationResult: either the
parsed model, or an ordered list of {field, message} pairs in the order
Pydantic reported them.

format_validation_errors() is shared with the app-level RequestValidationError
handler so malformed JSON and schema failures produce the same 400 body.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)

# FastAPI prefixes error locations with where the value came from.
_LOCATION_PREFIXES = ("body", "path", "query", "header", "cookie")
_VALUE_ERROR_PREFIX = "Value error, "


@dataclass
class ValidationResult(Generic[M]):
    success: bool
    data: M | None = None
    errors: list[dict[str, str]] = field(default_factory=list)


def _field_name(loc: Iterable[Any]) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(parts) or "body"


def format_validation_errors(errors: Iterable[Mapping[str, Any]]) -> list[dict[str, str]]:
    """Flatten Pydantic/FastAPI error dicts into [{field, message}, ...]."""
    formatted: list[dict[str, str]] = []
    for err in errors:
        message = str(err.get("msg", "Invalid value"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX) :]
        # Malformed JSON is located by character offset; report it on the body.
        name = "body" if err.get("type") == "json_invalid" else _field_name(err.get("loc", ()))
        formatted.append({"field": name, "message": message})
    return formatted


def validate(model: type[M], data: Any) -> ValidationResult[M]:
    """Validate `data` against `model`. Never raises.

    A non-object payload (list, string, null) fails with a single "body" error.
    """
    if not isinstance(data, Mapping):
        return ValidationResult(
            success=False,
            errors=[{"field": "body", "message": "Request body must be a JSON object"}],
        )
    try:
        parsed = model.model_validate(dict(data))
    except ValidationError as exc:
        return ValidationResult(success=False, errors=format_validation_errors(exc.errors()))
    return ValidationResult(success=True, data=parsed)
