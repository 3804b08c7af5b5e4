"""Deterministic cache identity.

The key is a SHA-256 digest over a canonical JSON document built only from
request content: input text, schema, prompt, model name and the external
validator identifiers. No clock or randomness is involved, so identical
requests always map to the same entry.
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

from llm_extract.core.types import to_jsonable
from llm_extract.schema.validation import json_schema_of

if TYPE_CHECKING:
    from llm_extract.core.types import ExtractionRequest


def input_text(request: ExtractionRequest) -> str:
    """Canonical text form of the request input."""
    if isinstance(request.input, str):
        return request.input
    return json.dumps(to_jsonable(request.input), sort_keys=True, separators=(",", ":"))


def compute_cache_key(text: str, request: ExtractionRequest) -> str:
    """Return the default cache key for `request` with canonical input `text`."""
    key_data = {
        "input": text,
        "schema": json.dumps(
            to_jsonable(json_schema_of(request.schema)), sort_keys=True
        ),
        "prompt": request.prompt,
        "model": request.model.display_name if request.model else "unknown",
        "validate_command": request.validate_command,
        "validate_url": request.validate_url,
    }
    payload = json.dumps(key_data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
