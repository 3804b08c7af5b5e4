"""Provider-specific tool schema normalization.

Some providers cannot express every JSON Schema construct in their tool
definitions. Constraints are captured as a small set of capability flags,
resolved once per request, instead of provider-name checks spread through
the transforms:

- ``needs_literal_normalization``: local ``$ref`` pointers must be inlined,
  ``anyOf`` sets of ``const`` alternatives must become a single ``enum`` and
  unsupported annotation keywords (``examples``) must be stripped.
- ``needs_object_root_schema``: the top-level tool parameters must be an
  object, so any other shape is wrapped under a single well-known field.

Normalization is a pure data transformation; malformed schemas pass through.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
import dataclasses
from typing import Any

from llm_extract.constants import WRAPPED_VALUE_KEY
from llm_extract.core.exceptions import SchemaValidationError, ValidationErrorDetail
from llm_extract.core.types import ModelInfo

_DEFS_KEYWORDS = ("$defs", "definitions")
_REF_PREFIXES = ("#/$defs/", "#/definitions/")
_UNSUPPORTED_KEYWORDS = frozenset({"examples"})


@dataclasses.dataclass(frozen=True, slots=True)
class ProviderCapabilities:
    """Tool-schema constraints of a provider."""

    needs_literal_normalization: bool = False
    needs_object_root_schema: bool = False


_UNCONSTRAINED = ProviderCapabilities()

PROVIDER_CAPABILITIES: Mapping[str, ProviderCapabilities] = {
    "google-gemini-cli": ProviderCapabilities(
        needs_literal_normalization=True, needs_object_root_schema=True
    ),
    "google-antigravity": ProviderCapabilities(
        needs_literal_normalization=True, needs_object_root_schema=True
    ),
    "openai-codex": ProviderCapabilities(needs_object_root_schema=True),
}


def capabilities_for(provider: str | ModelInfo) -> ProviderCapabilities:
    """Resolve the capability flags for a provider id or model."""
    provider_id = provider.provider if isinstance(provider, ModelInfo) else provider
    return PROVIDER_CAPABILITIES.get(provider_id, _UNCONSTRAINED)


@dataclasses.dataclass(frozen=True, slots=True)
class NormalizedToolSchema:
    """A provider-ready schema plus the key to unwrap results by, if wrapped."""

    schema: Any
    unwrap_key: str | None


def normalize_tool_schema(
    provider: str | ModelInfo, schema: Any
) -> NormalizedToolSchema:
    """Rewrite `schema` into a shape the provider's tool calling accepts.

    Args:
        provider: Provider id, or a model whose provider is used.
        schema: A JSON Schema mapping.

    Returns:
        The normalized schema and the unwrap key (``None`` unless wrapped).
        Unconstrained providers get the very same schema object back.
    """
    caps = capabilities_for(provider)
    normalized = schema
    if caps.needs_literal_normalization:
        cloned = copy.deepcopy(schema)
        normalized = strip_unsupported_keywords(
            normalize_literals(resolve_refs(cloned))
        )
    if not caps.needs_object_root_schema:
        return NormalizedToolSchema(schema=normalized, unwrap_key=None)
    return wrap_non_object_schema(normalized)


# --- $ref resolution ---


def resolve_refs(schema: Any) -> Any:
    """Inline local ``$ref`` pointers, leaving cycle edges as references.

    A reference currently being expanded is tracked in `resolving`; meeting
    it again means a cycle, so the ``$ref`` node is kept as-is. Finished
    expansions are memoized in `resolved` and shared between uses.
    """
    if not isinstance(schema, Mapping):
        return schema
    defs = _definitions(schema)
    resolved: dict[str, Any] = {}
    resolving: set[str] = set()

    def resolve_node(node: Any) -> Any:
        if isinstance(node, list):
            return [resolve_node(item) for item in node]
        if not isinstance(node, Mapping):
            return node
        ref = node.get("$ref")
        if isinstance(ref, str):
            target = _lookup_ref(ref, defs)
            if target is not None:
                if ref in resolved:
                    return resolved[ref]
                if ref in resolving:
                    return dict(node)
                resolving.add(ref)
                expanded = resolve_node(target)
                resolving.discard(ref)
                resolved[ref] = expanded
                return expanded
        return {
            key: resolve_node(value)
            for key, value in node.items()
            if key not in _DEFS_KEYWORDS
        }

    return resolve_node(schema)


def _definitions(root: Mapping[str, Any]) -> Mapping[str, Any] | None:
    for keyword in _DEFS_KEYWORDS:
        defs = root.get(keyword)
        if isinstance(defs, Mapping):
            return defs
    return None


def _lookup_ref(ref: str, defs: Mapping[str, Any] | None) -> Any | None:
    if defs is None:
        return None
    for prefix in _REF_PREFIXES:
        if ref.startswith(prefix):
            return defs.get(ref[len(prefix) :])
    return None


# --- Literal collapsing ---


def normalize_literals(schema: Any) -> Any:
    """Collapse ``anyOf`` of ``const`` alternatives (and lone ``const``) into ``enum``."""
    if isinstance(schema, list):
        return [normalize_literals(item) for item in schema]
    if not isinstance(schema, Mapping):
        return schema

    any_of = schema.get("anyOf")
    if isinstance(any_of, list) and any_of and all(_is_const(i) for i in any_of):
        result = {
            key: normalize_literals(value)
            for key, value in schema.items()
            if key != "anyOf"
        }
        result["enum"] = [item["const"] for item in any_of]
        types = _shared_types(any_of)
        if len(types) == 1:
            result["type"] = types[0]
        elif not types:
            result.pop("type", None)
        return result

    if "const" in schema:
        result = {
            key: normalize_literals(value)
            for key, value in schema.items()
            if key != "const"
        }
        result["enum"] = [schema["const"]]
        return result

    return {key: normalize_literals(value) for key, value in schema.items()}


def _is_const(node: Any) -> bool:
    return isinstance(node, Mapping) and "const" in node


def _shared_types(items: list[Any]) -> list[str]:
    """Distinct declared ``type`` strings of the alternatives, in first-seen order."""
    types: list[str] = []
    for item in items:
        declared = item.get("type")
        if isinstance(declared, str) and declared not in types:
            types.append(declared)
    return types


def strip_unsupported_keywords(schema: Any) -> Any:
    """Drop annotation keywords the constrained providers reject."""
    if isinstance(schema, list):
        return [strip_unsupported_keywords(item) for item in schema]
    if not isinstance(schema, Mapping):
        return schema
    return {
        key: strip_unsupported_keywords(value)
        for key, value in schema.items()
        if key not in _UNSUPPORTED_KEYWORDS
    }


# --- Object-root wrapping ---


def is_object_schema(schema: Any) -> bool:
    """Whether `schema` already describes an object."""
    if not isinstance(schema, Mapping):
        return False
    return schema.get("type") == "object" or "properties" in schema


def wrap_non_object_schema(schema: Any) -> NormalizedToolSchema:
    """Wrap a non-object schema as a single required field."""
    if is_object_schema(schema):
        return NormalizedToolSchema(schema=schema, unwrap_key=None)
    wrapped = {
        "type": "object",
        "properties": {WRAPPED_VALUE_KEY: schema},
        "required": [WRAPPED_VALUE_KEY],
        "additionalProperties": False,
    }
    return NormalizedToolSchema(schema=wrapped, unwrap_key=WRAPPED_VALUE_KEY)


def wrap_arguments(arguments: Any, unwrap_key: str | None) -> Any:
    """Wrap a bare value under `unwrap_key`; already-wrapped objects pass through."""
    if unwrap_key is None:
        return arguments
    if isinstance(arguments, Mapping) and unwrap_key in arguments:
        return arguments
    return {unwrap_key: arguments}


def unwrap_arguments(data: Any, unwrap_key: str | None, *, tool_name: str) -> Any:
    """Return the value stored under `unwrap_key`.

    Raises:
        SchemaValidationError: If `data` is not an object holding the key.
    """
    if unwrap_key is None:
        return data
    if not isinstance(data, Mapping) or unwrap_key not in data:
        message = (
            f'Validation failed for tool "{tool_name}": missing "{unwrap_key}" field.'
        )
        raise SchemaValidationError(
            message,
            (ValidationErrorDetail(path=f"/{unwrap_key}", message="is required"),),
        )
    return data[unwrap_key]
