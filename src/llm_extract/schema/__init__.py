"""Tool schema normalization and shape validation."""

from llm_extract.schema.normalize import (
    NormalizedToolSchema,
    ProviderCapabilities,
    capabilities_for,
    normalize_tool_schema,
    unwrap_arguments,
    wrap_arguments,
)
from llm_extract.schema.validation import json_schema_of, validate_arguments

__all__ = [
    "NormalizedToolSchema",
    "ProviderCapabilities",
    "capabilities_for",
    "json_schema_of",
    "normalize_tool_schema",
    "unwrap_arguments",
    "validate_arguments",
    "wrap_arguments",
]
