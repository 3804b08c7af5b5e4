"""Shape validation of candidate results.

Shapes are JSON Schema mappings, validated with ``jsonschema``'s Draft 2020-12
validator. A pydantic model class is accepted as a shape too: its JSON Schema
drives the tool definition and validation, and valid data is finally parsed
into a model instance.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any

from jsonschema import Draft202012Validator
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from llm_extract.core.exceptions import SchemaValidationError, ValidationErrorDetail


def json_schema_of(schema: Any) -> Any:
    """Return the JSON Schema for a shape description."""
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_json_schema()
    return schema


def model_class_of(schema: Any) -> type[BaseModel] | None:
    """Return the pydantic model class behind `schema`, if any."""
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema
    return None


def validation_schema(normalized: Any, original: Any) -> Any:
    """Schema to validate against: the normalized tool schema.

    Cycle edges left unresolved by normalization still point at the original
    ``$defs``; those definitions are re-attached so references resolve.
    """
    if not isinstance(normalized, Mapping) or not isinstance(original, Mapping):
        return normalized
    extra = {
        keyword: original[keyword]
        for keyword in ("$defs", "definitions")
        if keyword in original and keyword not in normalized
    }
    if not extra or '"$ref"' not in json.dumps(normalized):
        return normalized
    return {**normalized, **extra}


def _pointer(path: Any) -> str:
    parts = [str(p) for p in path]
    return "/" + "/".join(parts) if parts else "/"


def validate_arguments(
    arguments: Any,
    schema: Any,
    *,
    tool_name: str,
) -> Any:
    """Validate tool arguments against a JSON Schema.

    Returns:
        The arguments, unchanged, when valid.

    Raises:
        SchemaValidationError: Listing every violation, ordered by path.
    """
    validator = Draft202012Validator(schema)
    errors = sorted(
        validator.iter_errors(arguments),
        key=lambda e: (list(map(str, e.absolute_path)), e.message),
    )
    if not errors:
        return arguments
    details = tuple(
        ValidationErrorDetail(path=_pointer(e.absolute_path), message=e.message)
        for e in errors
    )
    raise SchemaValidationError(_format(tool_name, details, arguments), details)


def parse_model(data: Any, model: type[BaseModel], *, tool_name: str) -> BaseModel:
    """Parse shape-valid data into `model`, reporting pydantic errors as violations."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        details = tuple(
            ValidationErrorDetail(path=_pointer(err["loc"]), message=err["msg"])
            for err in e.errors()
        )
        raise SchemaValidationError(_format(tool_name, details, data), details) from e


def _format(
    tool_name: str, details: tuple[ValidationErrorDetail, ...], received: Any
) -> str:
    lines = [f'Validation failed for tool "{tool_name}":']
    lines.extend(f"  - {d.path}: {d.message}" for d in details)
    try:
        rendered = json.dumps(received, indent=2, default=str)
    except (TypeError, ValueError):
        rendered = repr(received)
    lines.extend(["", "Received arguments:", rendered])
    return "\n".join(lines)
