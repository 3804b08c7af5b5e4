"""Test doubles for the generation service."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from llm_extract.core.types import (
    AssistantMessage,
    Context,
    Done,
    GenerationError,
    GenerationOptions,
    ModelInfo,
    TextContent,
    TextDelta,
    ThinkingContent,
    ThinkingDelta,
    ToolCall,
    Usage,
)

MODEL = ModelInfo(provider="test", id="test-model", api="test-api")

TURN_USAGE = Usage(input_tokens=10, output_tokens=5, total_tokens=15, cost=0.01)


class Hang:
    """Script entry that blocks until the generation call is cancelled."""


type Reply = AssistantMessage | GenerationError | Exception | Hang | Callable[
    [Context], AssistantMessage
]


def tool_reply(
    arguments: Any, *, call_id: str = "call_1", usage: Usage = TURN_USAGE
) -> AssistantMessage:
    """Assistant message calling the respond tool with `arguments`."""
    return AssistantMessage(
        content=(ToolCall(id=call_id, name="respond", arguments=arguments),),
        usage=usage,
        stop_reason="tool_use",
    )


def text_reply(text: str, *, usage: Usage = TURN_USAGE) -> AssistantMessage:
    """Assistant message with plain text only."""
    return AssistantMessage(content=(TextContent(text=text),), usage=usage)


def error_reply(error_message: str, **metadata: Any) -> GenerationError:
    """Terminal provider failure."""
    return GenerationError(
        message=AssistantMessage(
            stop_reason="error", error_message=error_message, **metadata
        )
    )


@dataclass
class ScriptedStream:
    """Generation service that answers each call with the next scripted reply.

    Text and thinking parts are streamed as deltas before the final message.
    Every call's arguments are recorded in `calls`.
    """

    replies: list[Reply]
    calls: list[tuple[ModelInfo, Context, GenerationOptions]] = field(
        default_factory=list
    )

    @classmethod
    def of(cls, *replies: Reply) -> "ScriptedStream":
        return cls(list(replies))

    @property
    def contexts(self) -> list[Context]:
        return [context for _, context, _ in self.calls]

    async def __call__(
        self, model: ModelInfo, context: Context, options: GenerationOptions
    ):
        self.calls.append((model, context, options))
        if not self.replies:
            raise AssertionError("generation called more often than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Hang):
            await asyncio.Event().wait()
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, GenerationError):
            yield reply
            return
        message = reply(context) if callable(reply) else reply
        for part in message.content:
            if isinstance(part, ThinkingContent):
                yield ThinkingDelta(delta=part.thinking)
            elif isinstance(part, TextContent):
                yield TextDelta(delta=part.text)
        yield Done(message=message)
