"""Conversation building and candidate discovery in assistant replies."""

from __future__ import annotations

import json
import re
from typing import Any

from llm_extract.core.types import (
    AssistantMessage,
    ImageContent,
    Message,
    TextContent,
    ToolCall,
    UserMessage,
)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def build_messages(
    input: str | tuple[Message, ...],  # noqa: A002
    attachments: tuple[ImageContent, ...] = (),
) -> list[Message]:
    """Return the opening conversation for an extraction.

    Text input becomes a single user message, carrying any attachments as
    extra parts. A prepared history is copied as-is.
    """
    if not isinstance(input, str):
        return list(input)
    if attachments:
        return [UserMessage(content=(TextContent(text=input), *attachments))]
    return [UserMessage(content=input)]


def find_tool_call(message: AssistantMessage, tool_name: str) -> ToolCall | None:
    """First tool call named `tool_name` in `message`, if any."""
    for part in message.content:
        if isinstance(part, ToolCall) and part.name == tool_name:
            return part
    return None


def get_text_content(message: AssistantMessage) -> str:
    """All text parts of `message`, newline-joined and stripped."""
    return "\n".join(
        part.text for part in message.content if isinstance(part, TextContent)
    ).strip()


def parse_json_from_text(message: AssistantMessage) -> Any | None:
    """Recover a JSON value from free-form reply text.

    Candidates are tried in order: a fenced code block, the whole text, the
    widest ``{...}`` slice and the widest ``[...]`` slice. Returns None when
    none parses (a literal JSON ``null`` counts as no candidate).
    """
    text = get_text_content(message)
    if not text:
        return None
    for candidate in _candidates(text):
        parsed = _try_parse(candidate)
        if parsed is not None:
            return parsed
    return None


def _candidates(text: str) -> list[str]:
    candidates: list[str] = []
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    candidates.append(text)
    for open_char, close_char in (("{", "}"), ("[", "]")):
        sliced = _slice_between(text, open_char, close_char)
        if sliced:
            candidates.append(sliced)
    return candidates


def _slice_between(text: str, open_char: str, close_char: str) -> str | None:
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1].strip()


def _try_parse(text: str) -> Any | None:
    try:
        return json.loads(text)
    except ValueError:
        return None
