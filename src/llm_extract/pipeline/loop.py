"""The extraction loop.

Drives a bounded conversation with the generation service until a candidate
passes shape validation and every configured validator, or the turn budget
is spent. Each turn proceeds as:

    generate -> find candidate -> shape check -> validators -> complete
                      |                 |             |
                      v                 v             v
                   continue         feedback      feedback

Validation failures never escape: they become feedback for the next turn.
Generation failures, cancellation and turn exhaustion end the run, and the
event stream always receives exactly one terminal event.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
import copy
import dataclasses
import logging
import time
from typing import TYPE_CHECKING, Any

from llm_extract.cache.defaults import default_cache_store
from llm_extract.cache.key import compute_cache_key, input_text
from llm_extract.cache.types import CacheEntry, CacheOptions, CacheStore
from llm_extract.constants import (
    FALLBACK_TOOL_CALL_ID,
    RESPOND_TOOL_DESCRIPTION,
    RESPOND_TOOL_NAME,
)
from llm_extract.core.cancellation import CancellationToken
from llm_extract.core.events import (
    CacheHitEvent,
    CacheMissEvent,
    CacheSetEvent,
    CompleteEvent,
    ErrorEvent,
    ExtractEvent,
    JsonExtractedEvent,
    LlmDeltaEvent,
    LlmEndEvent,
    LlmSelectedEvent,
    LlmStartEvent,
    StartEvent,
    ThinkingEvent,
    ToolCallEvent,
    TurnEndEvent,
    TurnStartEvent,
    WarningEvent,
)
from llm_extract.core.exceptions import AbortError, ExtractError, MaxTurnsError
from llm_extract.core.types import (
    AssistantMessage,
    Context,
    Done,
    ExtractionRequest,
    ExtractResult,
    GenerationError,
    GenerationOptions,
    Message,
    ModelInfo,
    StreamFn,
    TextContent,
    TextDelta,
    ThinkingDelta,
    Tool,
    ToolCall,
    ToolResultMessage,
    Usage,
    UserMessage,
    to_jsonable,
)
from llm_extract.pipeline.diagnostics import generation_error
from llm_extract.pipeline.parsing import (
    build_messages,
    find_tool_call,
    get_text_content,
    parse_json_from_text,
)
from llm_extract.schema.normalize import (
    normalize_tool_schema,
    unwrap_arguments,
    wrap_arguments,
)
from llm_extract.schema.validation import (
    json_schema_of,
    model_class_of,
    parse_model,
    validate_arguments,
    validation_schema,
)
from llm_extract.telemetry import TelemetryContext
from llm_extract.validators.http import HttpClientFactory, default_client_factory
from llm_extract.validators.pipeline import (
    ValidationEmitter,
    ValidatorSettings,
    error_message,
    run_validators,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from llm_extract.config import FrozenConfig
    from llm_extract.telemetry import TelemetryContextProtocol, TelemetryReporter

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_FOOTER = (
    "When you are ready, call the 'respond' tool with your structured answer.",
    "Do not include extra commentary in the tool call arguments.",
)
CONTINUE_PROMPT = (
    "Continue. Call the 'respond' tool when ready with your structured response."
)
CORRECTION_PROMPT = (
    "Continue. Call the 'respond' tool when ready with your corrected"
    " structured response."
)

_END_OF_STREAM = object()


def _discard(event: ExtractEvent) -> None:  # noqa: ARG001
    return None


@dataclasses.dataclass(frozen=True, slots=True)
class CachePlan:
    """Where and how a request's result is cached."""

    key: str
    store: CacheStore
    ttl: float | None
    revalidate: bool


class ExtractionLoop:
    """Runs extraction requests against a frozen configuration.

    One loop can serve any number of concurrent requests; per-call state
    lives in a private run object.
    """

    def __init__(
        self,
        config: FrozenConfig,
        *,
        reporters: Sequence[TelemetryReporter] = (),
        http_client_factory: HttpClientFactory | None = None,
    ) -> None:
        """Bind the loop to `config`.

        Args:
            config: Resolved configuration.
            reporters: Telemetry reporters; ignored unless telemetry is enabled.
            http_client_factory: Builds the client used by the HTTP validator.
        """
        self.config = config
        self.telemetry: TelemetryContextProtocol = TelemetryContext(*reporters)
        self.validator_settings = ValidatorSettings(
            shell=config.validator_shell,
            http_timeout=config.http_timeout_seconds,
            http_client_factory=http_client_factory or default_client_factory,
        )

    async def run(
        self,
        request: ExtractionRequest,
        push: Callable[[ExtractEvent], None] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> ExtractResult[Any]:
        """Execute `request` to completion.

        Args:
            request: The extraction to perform.
            push: Receives progress events; the last one is always terminal.
            cancel_token: Token to observe. Defaults to one linked to
                `request.cancel_token`.

        Returns:
            The validated result with the turn count and summed usage.

        Raises:
            ExtractError: On a generation failure, a missing model or
                generation service, or turn exhaustion (`MaxTurnsError`).
            AbortError: If cancelled.
        """
        token = (
            cancel_token
            if cancel_token is not None
            else CancellationToken.linked(request.cancel_token)
        )
        run = _Run(self, request, push or _discard, token)
        try:
            with self.telemetry("extract"):
                return await run.execute()
        except asyncio.CancelledError:
            error = token.error() if token.cancelled else AbortError()
            run.push(ErrorEvent(error=error, turns=run.turns))
            raise
        except Exception as e:
            logger.debug("Extraction ended with %s after %d turns", e, run.turns)
            run.push(ErrorEvent(error=e, turns=run.turns))
            raise
        finally:
            if cancel_token is None:
                token.detach()


class _Run:
    """Mutable state of one extraction."""

    def __init__(
        self,
        loop: ExtractionLoop,
        request: ExtractionRequest,
        push: Callable[[ExtractEvent], None],
        token: CancellationToken,
    ) -> None:
        self.loop = loop
        self.config = loop.config
        self.request = request
        self.push = push
        self.token = token
        self.max_turns = request.max_turns or self.config.max_turns
        self.turns = 0
        self.usage = Usage()
        self.model_class = model_class_of(request.schema)

    async def execute(self) -> ExtractResult[Any]:
        request = self.request
        self.push(StartEvent(max_turns=self.max_turns))

        model = request.model
        if model is None:
            raise ExtractError('Missing required option "model".')
        self.token.raise_if_cancelled()

        if request.thinking != "off" and not model.reasoning:
            self.push(
                WarningEvent(
                    code="thinking_unsupported",
                    message=(
                        f'Model "{model.provider}:{model.id}" does not support'
                        " extended thinking. The 'thinking' option will be ignored."
                    ),
                )
            )

        plan = self._resolve_cache()
        if plan is not None:
            cached = await self._check_cache(plan)
            if cached is not None:
                return cached

        if request.stream_fn is None:
            raise ExtractError('Missing required option "stream_fn".')

        return await self._converse(model, request.stream_fn, plan)

    # --- Cache ---

    def _resolve_cache(self) -> CachePlan | None:
        raw = self.request.cache
        if not raw:
            return None
        options = raw if isinstance(raw, CacheOptions) else CacheOptions()
        if self.request.has_function_validators and not options.revalidate:
            logger.debug("Caching skipped: function validators need revalidate=True")
            return None

        text = input_text(self.request)
        key = (
            options.key(text, self.request)
            if options.key is not None
            else compute_cache_key(text, self.request)
        )
        store = options.store
        if store is None:
            store = default_cache_store(self.config.cache_dir, self.config.cache_max_size)
        ttl = options.ttl if options.ttl is not None else self.config.cache_ttl_seconds
        return CachePlan(key=key, store=store, ttl=ttl, revalidate=options.revalidate)

    async def _check_cache(self, plan: CachePlan) -> ExtractResult[Any] | None:
        entry = await plan.store.get(plan.key)
        if entry is not None:
            age = max(0.0, time.time() - entry.timestamp)
            if plan.ttl is not None and age > plan.ttl:
                logger.debug("Cache entry %s expired (age %.1fs)", plan.key, age)
            else:
                data = await self._accept_cached(plan, entry)
                if data is not None:
                    self.loop.telemetry.count("cache_hit")
                    self.push(CacheHitEvent(key=plan.key, age=age))
                    self.push(
                        CompleteEvent(result=data, turns=entry.turns, usage=entry.usage)
                    )
                    return ExtractResult(data=data, turns=entry.turns, usage=entry.usage)

        self.loop.telemetry.count("cache_miss")
        self.push(CacheMissEvent(key=plan.key))
        return None

    async def _accept_cached(self, plan: CachePlan, entry: CacheEntry) -> Any | None:
        """Return usable cached data, evicting entries that no longer pass."""
        try:
            data = copy.deepcopy(entry.data)
            if self.model_class is not None and not isinstance(data, self.model_class):
                data = parse_model(data, self.model_class, tool_name=RESPOND_TOOL_NAME)
            if plan.revalidate:
                await self.token.guard(self._validate(data, ValidationEmitter(self.push)))
        except AbortError:
            raise
        except Exception as e:
            logger.debug("Evicting cache entry %s: %s", plan.key, e)
            await plan.store.delete(plan.key)
            return None
        return data

    async def _store(self, plan: CachePlan | None, result: ExtractResult[Any]) -> None:
        if plan is None:
            return
        entry = CacheEntry(
            data=to_jsonable(result.data),
            timestamp=time.time(),
            turns=result.turns,
            usage=result.usage,
        )
        try:
            await plan.store.set(plan.key, entry, plan.ttl)
        except Exception:
            logger.debug("Cache write for %s failed", plan.key, exc_info=True)
            return
        self.push(CacheSetEvent(key=plan.key))

    # --- Conversation ---

    async def _converse(
        self, model: ModelInfo, stream_fn: StreamFn, plan: CachePlan | None
    ) -> ExtractResult[Any]:
        request = self.request
        original_schema = json_schema_of(request.schema)
        normalized = normalize_tool_schema(model, original_schema)
        shape = validation_schema(normalized.schema, original_schema)
        tool = Tool(
            name=RESPOND_TOOL_NAME,
            description=RESPOND_TOOL_DESCRIPTION,
            parameters=normalized.schema,
        )
        system_prompt = "\n\n".join((request.prompt, *SYSTEM_PROMPT_FOOTER))
        messages = build_messages(request.input, request.attachments)
        options = GenerationOptions(
            max_tokens=min(model.max_tokens, self.config.max_output_tokens),
            api_key=request.api_key,
            cancel_token=self.token,
            reasoning=request.thinking if request.thinking != "off" else None,
            thinking_budgets=request.thinking_budgets,
            on_model_selected=lambda selected: self.push(
                LlmSelectedEvent(model=selected)
            ),
        )
        last_error: Exception | None = None

        for turn in range(1, self.max_turns + 1):
            self.turns = turn - 1
            self.token.raise_if_cancelled()
            self.turns = turn
            logger.debug("Extraction turn %d/%d", turn, self.max_turns)
            self.push(TurnStartEvent(turn=turn))

            with self.loop.telemetry("turn", turn=turn):
                self.push(LlmStartEvent())
                context = Context(
                    system_prompt=system_prompt,
                    messages=tuple(messages),
                    tools=(tool,),
                )
                assistant = await self._generate(stream_fn, model, context, options)
                self.usage += assistant.usage
                self.push(LlmEndEvent(message=assistant, usage=assistant.usage))

                tool_call = find_tool_call(assistant, RESPOND_TOOL_NAME)
                if tool_call is not None:
                    self.push(ToolCallEvent(tool_call=tool_call))
                    self.push(JsonExtractedEvent(source="tool_call"))
                    candidate = tool_call.arguments
                else:
                    candidate = parse_json_from_text(assistant)
                    if candidate is not None:
                        self.push(JsonExtractedEvent(source="text"))

                if candidate is None:
                    self.push(ThinkingEvent(text=get_text_content(assistant)))
                    messages.extend((assistant, UserMessage(content=CONTINUE_PROMPT)))
                    self.push(TurnEndEvent(turn=turn, has_result=False))
                    continue

                emitter = ValidationEmitter(self.push)
                try:
                    data = self._check_shape(candidate, normalized.unwrap_key, shape, emitter)
                    await self.token.guard(self._validate(data, emitter))
                except AbortError:
                    raise
                except Exception as e:
                    last_error = e
                    self.loop.telemetry.count("validation_failure", turn=turn)
                    messages.extend((assistant, _feedback(tool_call, e)))
                    self.push(TurnEndEvent(turn=turn, has_result=False))
                    continue

            self.push(TurnEndEvent(turn=turn, has_result=True))
            result = ExtractResult(data=data, turns=turn, usage=self.usage)
            await self._store(plan, result)
            self.push(CompleteEvent(result=data, turns=turn, usage=self.usage))
            return result

        self.turns = self.max_turns
        raise MaxTurnsError(
            f"Extraction failed after {self.max_turns} turns",
            turns=self.max_turns,
            last_error=last_error,
        )

    async def _generate(
        self,
        stream_fn: StreamFn,
        model: ModelInfo,
        context: Context,
        options: GenerationOptions,
    ) -> AssistantMessage:
        """Consume one generation stream, forwarding deltas as events."""
        events = aiter(stream_fn(model, context, options))
        message: AssistantMessage | None = None
        try:
            while True:
                event = await self.token.guard(_next_event(events))
                if event is _END_OF_STREAM:
                    break
                if isinstance(event, TextDelta):
                    self.push(LlmDeltaEvent(delta=event.delta))
                elif isinstance(event, ThinkingDelta):
                    self.push(ThinkingEvent(text=event.delta))
                elif isinstance(event, Done):
                    message = event.message
                elif isinstance(event, GenerationError):
                    raise generation_error(event.message, model)
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        if message is None:
            raise ExtractError("Generation stream ended without a final message.")
        return message

    # --- Validation ---

    def _check_shape(
        self,
        candidate: Any,
        unwrap_key: str | None,
        shape: Any,
        emitter: ValidationEmitter,
    ) -> Any:
        emitter.start("schema")
        try:
            wrapped = wrap_arguments(candidate, unwrap_key)
            validate_arguments(wrapped, shape, tool_name=RESPOND_TOOL_NAME)
            data = unwrap_arguments(wrapped, unwrap_key, tool_name=RESPOND_TOOL_NAME)
            if self.model_class is not None:
                data = parse_model(data, self.model_class, tool_name=RESPOND_TOOL_NAME)
        except Exception as e:
            emitter.fail("schema", error_message(e))
            raise
        emitter.passed("schema")
        return data

    async def _validate(self, data: Any, emitter: ValidationEmitter) -> None:
        await run_validators(
            data,
            self.request,
            emitter,
            self.token,
            self.loop.validator_settings,
        )


async def _next_event(events: AsyncIterator[Any]) -> Any:
    try:
        return await anext(events)
    except StopAsyncIteration:
        return _END_OF_STREAM


def _feedback(tool_call: ToolCall | None, error: BaseException) -> Message:
    """Message telling the model why its last candidate was rejected."""
    text = error_message(error)
    if tool_call is not None:
        return ToolResultMessage(
            tool_call_id=tool_call.id or FALLBACK_TOOL_CALL_ID,
            tool_name=RESPOND_TOOL_NAME,
            content=(TextContent(text=f"Validation error: {text}"),),
            is_error=True,
        )
    return UserMessage(
        content="\n".join(
            (
                "Validation error in your previous JSON output:",
                text,
                "",
                CORRECTION_PROMPT,
            )
        )
    )
