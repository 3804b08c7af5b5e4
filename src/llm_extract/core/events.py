"""Progress events pushed onto the extraction event stream.

Every event is an immutable dataclass with a literal `type` discriminator so
callers can dispatch with `match event.type` or `isinstance`. `complete` and
`error` are terminal; nothing follows them.
"""

from __future__ import annotations

import dataclasses
import typing

from llm_extract.core.types import AssistantMessage, ModelInfo, ToolCall, Usage

ValidatorLayer = typing.Literal["schema", "sync", "async", "command", "http"]

# --- Lifecycle ---


@dataclasses.dataclass(frozen=True, slots=True)
class StartEvent:
    max_turns: int
    type: typing.Literal["start"] = "start"


@dataclasses.dataclass(frozen=True, slots=True)
class CompleteEvent:
    result: typing.Any
    turns: int
    usage: Usage
    type: typing.Literal["complete"] = "complete"


@dataclasses.dataclass(frozen=True, slots=True)
class ErrorEvent:
    error: BaseException
    turns: int
    type: typing.Literal["error"] = "error"


@dataclasses.dataclass(frozen=True, slots=True)
class WarningEvent:
    """Non-fatal condition worth surfacing to the caller."""

    code: typing.Literal["thinking_unsupported"]
    message: str
    type: typing.Literal["warning"] = "warning"


# --- Cache ---


@dataclasses.dataclass(frozen=True, slots=True)
class CacheHitEvent:
    key: str
    age: float  # seconds since the entry was written
    type: typing.Literal["cache_hit"] = "cache_hit"


@dataclasses.dataclass(frozen=True, slots=True)
class CacheMissEvent:
    key: str
    type: typing.Literal["cache_miss"] = "cache_miss"


@dataclasses.dataclass(frozen=True, slots=True)
class CacheSetEvent:
    key: str
    type: typing.Literal["cache_set"] = "cache_set"


# --- Turns ---


@dataclasses.dataclass(frozen=True, slots=True)
class TurnStartEvent:
    turn: int
    type: typing.Literal["turn_start"] = "turn_start"


@dataclasses.dataclass(frozen=True, slots=True)
class TurnEndEvent:
    turn: int
    has_result: bool
    type: typing.Literal["turn_end"] = "turn_end"


# --- Generation ---


@dataclasses.dataclass(frozen=True, slots=True)
class LlmStartEvent:
    type: typing.Literal["llm_start"] = "llm_start"


@dataclasses.dataclass(frozen=True, slots=True)
class LlmSelectedEvent:
    """The generation service picked a concrete model (routing/fallback)."""

    model: ModelInfo
    type: typing.Literal["llm_selected"] = "llm_selected"


@dataclasses.dataclass(frozen=True, slots=True)
class LlmDeltaEvent:
    delta: str
    type: typing.Literal["llm_delta"] = "llm_delta"


@dataclasses.dataclass(frozen=True, slots=True)
class LlmEndEvent:
    message: AssistantMessage
    usage: Usage
    type: typing.Literal["llm_end"] = "llm_end"


# --- Candidate extraction ---


@dataclasses.dataclass(frozen=True, slots=True)
class ThinkingEvent:
    text: str
    type: typing.Literal["thinking"] = "thinking"


@dataclasses.dataclass(frozen=True, slots=True)
class ToolCallEvent:
    tool_call: ToolCall
    type: typing.Literal["tool_call"] = "tool_call"


@dataclasses.dataclass(frozen=True, slots=True)
class JsonExtractedEvent:
    source: typing.Literal["tool_call", "text"]
    type: typing.Literal["json_extracted"] = "json_extracted"


# --- Validation ---


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationStartEvent:
    layer: ValidatorLayer
    type: typing.Literal["validation_start"] = "validation_start"


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationPassEvent:
    layer: ValidatorLayer
    type: typing.Literal["validation_pass"] = "validation_pass"


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationErrorEvent:
    layer: ValidatorLayer
    error: str
    type: typing.Literal["validation_error"] = "validation_error"


type ExtractEvent = (
    StartEvent
    | CompleteEvent
    | ErrorEvent
    | WarningEvent
    | CacheHitEvent
    | CacheMissEvent
    | CacheSetEvent
    | TurnStartEvent
    | TurnEndEvent
    | LlmStartEvent
    | LlmSelectedEvent
    | LlmDeltaEvent
    | LlmEndEvent
    | ThinkingEvent
    | ToolCallEvent
    | JsonExtractedEvent
    | ValidationStartEvent
    | ValidationPassEvent
    | ValidationErrorEvent
)

TERMINAL_EVENT_TYPES = frozenset({"complete", "error"})


def is_terminal(event: ExtractEvent) -> bool:
    """Whether `event` closes the stream."""
    return event.type in TERMINAL_EVENT_TYPES
