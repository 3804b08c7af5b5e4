"""Enrichment of generation failures into actionable error messages."""

from __future__ import annotations

import re

from llm_extract.constants import CONTEXT_OVERFLOW_PATTERNS, GENERIC_ERROR_PATTERNS
from llm_extract.core.exceptions import ExtractError
from llm_extract.core.types import AssistantMessage, ModelInfo
from llm_extract.pipeline.parsing import get_text_content

_GENERIC = tuple(re.compile(p, re.IGNORECASE) for p in GENERIC_ERROR_PATTERNS)
_OVERFLOW = tuple(re.compile(p, re.IGNORECASE) for p in CONTEXT_OVERFLOW_PATTERNS)

GENERIC_ERROR_HINT = (
    " Provider returned a generic error; this often means the model is not"
    " enabled for your account, the API key lacks access, or quota was exceeded."
    " If this model works in another client, verify you are using the same"
    " provider and credentials."
)


def is_context_overflow(message: AssistantMessage, context_window: int) -> bool:
    """Whether a failed reply indicates the input exceeded the context window."""
    details = message.error_message or ""
    if any(p.search(details) for p in _OVERFLOW):
        return True
    return context_window > 0 and message.usage.input_tokens > context_window


def generation_error(message: AssistantMessage, model: ModelInfo) -> ExtractError:
    """Build the caller-facing error for a failed generation call.

    Provider metadata falls back to the requested model's when the reply
    does not carry its own.
    """
    metadata = [
        f"provider={message.provider or model.provider}",
        f"model={message.model or model.id}",
        f"api={message.api or model.api}",
        f"stopReason={message.stop_reason or 'error'}",
    ]
    if model.base_url:
        metadata.append(f"baseUrl={model.base_url}")

    details = (message.error_message or "").strip()
    head = f"LLM request failed ({', '.join(metadata)})"
    text = f"{head}. Provider message: {details}." if details else f"{head}."
    if details and any(p.search(details) for p in _GENERIC):
        text += GENERIC_ERROR_HINT
    if is_context_overflow(message, model.context_window):
        text += (
            f" Input exceeds the model context window ({model.context_window}"
            " tokens). Reduce input length or attachments."
        )

    content = get_text_content(message)
    if content and content != details:
        text += f" Provider content: {content}"
    return ExtractError(text)
