"""Core data types shared by the extraction engine.

These immutable structures describe the conversation exchanged with the
generation service, the per-call extraction request, and the terminal
result. Each type validates its own invariants at construction so that
downstream stages can rely on them without defensive checks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
import dataclasses
import typing

from pydantic import BaseModel

if typing.TYPE_CHECKING:
    from llm_extract.cache.types import CacheOptions
    from llm_extract.core.cancellation import CancellationToken

# --- Minimal guard helpers ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


def _is_tuple_of(value: object, typ: type | tuple[type, ...]) -> bool:
    return isinstance(value, tuple) and all(isinstance(v, typ) for v in value)


ThinkingLevel = typing.Literal["off", "minimal", "low", "medium", "high", "xhigh"]
THINKING_LEVELS: tuple[str, ...] = typing.get_args(ThinkingLevel)

# A JSON Schema mapping, or a pydantic model class whose JSON Schema is used.
type Schema = Mapping[str, typing.Any] | type[BaseModel]

# --- Usage accounting ---


@dataclasses.dataclass(frozen=True, slots=True)
class Usage:
    """Token and cost usage, for a single turn or accumulated over many."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cost=self.cost + other.cost,
        )

    def to_dict(self) -> dict[str, int | float]:
        """Return a JSON-compatible mapping."""
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, typing.Any] | None) -> Usage:
        """Rebuild usage from `to_dict()` output, tolerating missing keys."""
        if not data:
            return cls()
        return cls(
            input_tokens=int(data.get("input_tokens", 0)),
            output_tokens=int(data.get("output_tokens", 0)),
            total_tokens=int(data.get("total_tokens", 0)),
            cost=float(data.get("cost", 0.0)),
        )


# --- Content parts ---


@dataclasses.dataclass(frozen=True, slots=True)
class TextContent:
    """Plain text content."""

    text: str
    type: typing.Literal["text"] = "text"

    def __post_init__(self) -> None:
        """Validate TextContent invariants."""
        _require(
            condition=isinstance(self.text, str),
            message="must be a str",
            field_name="text",
            exc=TypeError,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ThinkingContent:
    """Reasoning text emitted by models with extended thinking."""

    thinking: str
    type: typing.Literal["thinking"] = "thinking"


@dataclasses.dataclass(frozen=True, slots=True)
class ImageContent:
    """A base64-encoded image attachment."""

    data: str
    mime_type: str
    type: typing.Literal["image"] = "image"

    def __post_init__(self) -> None:
        """Validate ImageContent invariants."""
        _require(
            condition=isinstance(self.data, str) and self.data != "",
            message="must be a non-empty base64 str",
            field_name="data",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.mime_type, str)
            and self.mime_type.startswith("image/"),
            message=f"must be an image/* MIME type, got {self.mime_type!r}",
            field_name="mime_type",
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ToolCall:
    """A structured tool invocation returned by the model."""

    id: str
    name: str
    arguments: typing.Any
    type: typing.Literal["tool_call"] = "tool_call"


type UserContentPart = TextContent | ImageContent
type AssistantContentPart = TextContent | ThinkingContent | ToolCall

# --- Messages ---


@dataclasses.dataclass(frozen=True, slots=True)
class UserMessage:
    """A user turn: plain text or a sequence of text/image parts."""

    content: str | tuple[UserContentPart, ...]
    role: typing.Literal["user"] = "user"

    def __post_init__(self) -> None:
        """Validate UserMessage invariants."""
        _require(
            condition=isinstance(self.content, str)
            or _is_tuple_of(self.content, TextContent | ImageContent),
            message="must be a str or tuple[TextContent | ImageContent, ...]",
            field_name="content",
            exc=TypeError,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class AssistantMessage:
    """A completed assistant response, or a provider error payload.

    When `stop_reason == "error"` the message describes a failure; the
    metadata fields then identify where the failure came from.
    """

    content: tuple[AssistantContentPart, ...] = ()
    usage: Usage = dataclasses.field(default_factory=Usage)
    stop_reason: str = "stop"
    provider: str | None = None
    model: str | None = None
    api: str | None = None
    error_message: str | None = None
    role: typing.Literal["assistant"] = "assistant"

    def __post_init__(self) -> None:
        """Validate AssistantMessage invariants."""
        _require(
            condition=_is_tuple_of(
                self.content, TextContent | ThinkingContent | ToolCall
            ),
            message="must be a tuple of TextContent | ThinkingContent | ToolCall",
            field_name="content",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.usage, Usage),
            message="must be a Usage",
            field_name="usage",
            exc=TypeError,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ToolResultMessage:
    """The outcome of a tool call, reported back to the model."""

    tool_call_id: str
    tool_name: str
    content: tuple[TextContent, ...]
    is_error: bool = False
    role: typing.Literal["tool_result"] = "tool_result"


type Message = UserMessage | AssistantMessage | ToolResultMessage
MESSAGE_TYPES = (UserMessage, AssistantMessage, ToolResultMessage)

# --- Generation service contract ---


@dataclasses.dataclass(frozen=True, slots=True)
class ModelInfo:
    """Descriptor of the model used for generation."""

    provider: str
    id: str
    api: str = "unknown"
    name: str | None = None
    context_window: int = 128_000
    max_tokens: int = 32_000
    reasoning: bool = False
    base_url: str | None = None

    def __post_init__(self) -> None:
        """Validate ModelInfo invariants."""
        _require(
            condition=isinstance(self.provider, str) and self.provider.strip() != "",
            message="must be a non-empty str",
            field_name="provider",
        )
        _require(
            condition=isinstance(self.id, str) and self.id.strip() != "",
            message="must be a non-empty str",
            field_name="id",
        )
        _require(
            condition=isinstance(self.max_tokens, int) and self.max_tokens > 0,
            message=f"must be an int > 0, got {self.max_tokens!r}",
            field_name="max_tokens",
        )

    @property
    def display_name(self) -> str:
        """Name used in cache keys and diagnostics."""
        return self.name or self.id


@dataclasses.dataclass(frozen=True, slots=True)
class Tool:
    """A tool definition offered to the model."""

    name: str
    description: str
    parameters: Mapping[str, typing.Any]


@dataclasses.dataclass(frozen=True, slots=True)
class Context:
    """Everything sent to the generation service for one turn."""

    system_prompt: str
    messages: tuple[Message, ...]
    tools: tuple[Tool, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationOptions:
    """Per-call options forwarded to the generation service."""

    max_tokens: int
    api_key: str | None = None
    cancel_token: CancellationToken | None = None
    reasoning: str | None = None
    thinking_budgets: Mapping[str, int] | None = None
    # Routing services report the concrete model they picked through this hook.
    on_model_selected: Callable[[ModelInfo], None] | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class TextDelta:
    """Incremental response text."""

    delta: str
    type: typing.Literal["text_delta"] = "text_delta"


@dataclasses.dataclass(frozen=True, slots=True)
class ThinkingDelta:
    """Incremental reasoning text."""

    delta: str
    type: typing.Literal["thinking_delta"] = "thinking_delta"


@dataclasses.dataclass(frozen=True, slots=True)
class Done:
    """Terminal event carrying the final assistant message."""

    message: AssistantMessage
    type: typing.Literal["done"] = "done"


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationError:
    """Terminal event carrying a provider error payload."""

    message: AssistantMessage
    type: typing.Literal["error"] = "error"


type GenerationEvent = TextDelta | ThinkingDelta | Done | GenerationError

type StreamFn = Callable[
    [ModelInfo, Context, GenerationOptions], AsyncIterator[GenerationEvent]
]

type SyncValidator = Callable[[typing.Any], object]
type AsyncValidator = Callable[[typing.Any], Awaitable[object]]

# --- Request and result ---


@dataclasses.dataclass(frozen=True, slots=True)
class ExtractionRequest:
    """Immutable configuration for one extraction call.

    Attributes:
        input: Free text, or a prepared conversation history.
        schema: Target shape as a JSON Schema mapping or a pydantic model class.
        prompt: Instruction describing what to extract.
        model: Model descriptor passed through to the generation service.
        stream_fn: The generation service.
        api_key: Optional credential forwarded to the generation service.
        attachments: Images sent alongside a text input.
        validate: Synchronous check; raise to reject.
        validate_async: Asynchronous check; raise to reject.
        validate_command: Shell command; receives JSON on stdin, exit 0 passes.
        validate_url: HTTP endpoint; receives a JSON POST, 2xx passes.
        max_turns: Upper bound on generation calls. `None` uses configuration.
        cache: `True`, `False`/`None`, or a `CacheOptions`.
        cancel_token: External cancellation signal.
        thinking: Reasoning effort level for models that support it.
        thinking_budgets: Optional token budgets per reasoning level.
    """

    input: str | tuple[Message, ...]
    schema: Schema
    prompt: str
    model: ModelInfo | None
    stream_fn: StreamFn | None = None
    api_key: str | None = None
    attachments: tuple[ImageContent, ...] = ()
    validate: SyncValidator | None = None
    validate_async: AsyncValidator | None = None
    validate_command: str | None = None
    validate_url: str | None = None
    max_turns: int | None = None
    cache: bool | CacheOptions | None = None
    cancel_token: CancellationToken | None = None
    thinking: ThinkingLevel = "off"
    thinking_budgets: Mapping[str, int] | None = None

    def __post_init__(self) -> None:
        """Validate ExtractionRequest invariants."""
        _require(
            condition=isinstance(self.input, str)
            or _is_tuple_of(self.input, MESSAGE_TYPES),
            message="must be a str or tuple of messages",
            field_name="input",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.prompt, str),
            message="must be a str",
            field_name="prompt",
            exc=TypeError,
        )
        _require(
            condition=_is_tuple_of(self.attachments, ImageContent),
            message="must be a tuple[ImageContent, ...]",
            field_name="attachments",
            exc=TypeError,
        )
        _require(
            condition=self.max_turns is None
            or (isinstance(self.max_turns, int) and self.max_turns >= 1),
            message=f"must be an int >= 1, got {self.max_turns!r}",
            field_name="max_turns",
        )
        _require(
            condition=self.thinking in THINKING_LEVELS,
            message=f"must be one of {list(THINKING_LEVELS)}, got {self.thinking!r}",
            field_name="thinking",
        )
        for name in ("validate_command", "validate_url"):
            value = getattr(self, name)
            _require(
                condition=value is None or (isinstance(value, str) and value.strip() != ""),
                message="must be a non-empty str when provided",
                field_name=name,
            )

    @property
    def has_function_validators(self) -> bool:
        """Whether in-process validators are attached."""
        return self.validate is not None or self.validate_async is not None

    def replace(self, **changes: typing.Any) -> ExtractionRequest:
        """Return a copy with `changes` applied."""
        return dataclasses.replace(self, **changes)


@dataclasses.dataclass(frozen=True, slots=True)
class ExtractResult[T]:
    """Terminal success value of an extraction."""

    data: T
    turns: int
    usage: Usage


# --- Serialization helpers ---


def to_jsonable(value: typing.Any) -> typing.Any:
    """Convert dataclasses, pydantic models and tuples into JSON-compatible values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_jsonable(v) for v in value]
    return value
