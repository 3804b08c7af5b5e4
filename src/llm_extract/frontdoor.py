"""Entry points for running extractions.

`extract()` starts an extraction in the background and returns its event
stream. `extract_data()` runs inline and returns only the data.
`warm_cache()` pre-populates the cache for a batch of inputs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
import logging
from typing import TYPE_CHECKING, Any

from llm_extract.cache.types import CacheOptions
from llm_extract.config import FrozenConfig, resolve_config
from llm_extract.core.cancellation import CancellationToken
from llm_extract.core.stream import ExtractStream
from llm_extract.core.types import ExtractionRequest, ExtractResult, Message, Schema
from llm_extract.pipeline.loop import ExtractionLoop

if TYPE_CHECKING:
    from llm_extract.core.types import ModelInfo
    from llm_extract.telemetry import TelemetryReporter
    from llm_extract.validators.http import HttpClientFactory

logger = logging.getLogger(__name__)

type ExtractInput = str | Sequence[Message]


def build_request(
    input: ExtractInput,  # noqa: A002
    *,
    schema: Schema,
    prompt: str,
    model: ModelInfo | None,
    **options: Any,
) -> ExtractionRequest:
    """Assemble an `ExtractionRequest`.

    Args:
        input: Free text, or a conversation history.
        schema: JSON Schema mapping or pydantic model class.
        prompt: What to extract.
        model: Model descriptor for the generation service.
        **options: Any other `ExtractionRequest` field (`stream_fn`,
            `validate`, `cache`, `max_turns`, ...). Sequences are accepted
            where tuples are stored.
    """
    if "attachments" in options:
        options["attachments"] = tuple(options["attachments"] or ())
    return ExtractionRequest(
        input=input if isinstance(input, str) else tuple(input),
        schema=schema,
        prompt=prompt,
        model=model,
        **options,
    )


def create_loop(
    cfg: FrozenConfig | None = None,
    *,
    reporters: Sequence[TelemetryReporter] = (),
    http_client_factory: HttpClientFactory | None = None,
) -> ExtractionLoop:
    """Build an extraction loop, resolving configuration if not given."""
    return ExtractionLoop(
        cfg or resolve_config(),
        reporters=reporters,
        http_client_factory=http_client_factory,
    )


def extract(
    input: ExtractInput,  # noqa: A002
    *,
    schema: Schema,
    prompt: str,
    model: ModelInfo | None,
    cfg: FrozenConfig | None = None,
    loop: ExtractionLoop | None = None,
    **options: Any,
) -> ExtractStream:
    """Start an extraction and return its event stream.

    Must be called while an event loop is running. The extraction proceeds
    in a task owned by the returned stream, whether or not its events are
    consumed.

    Example:
        ```python
        stream = extract(
            "Ada Lovelace, born 1815",
            schema={"type": "object", "properties": {"name": {"type": "string"}}},
            prompt="Extract the person",
            model=model,
            stream_fn=provider.stream,
        )
        async for event in stream:
            print(event.type)
        result = await stream.result()
        ```

    Returns:
        The stream; `await stream.result()` yields the `ExtractResult`, or
        None when the extraction failed (the failure is the `error` event).
    """
    request = build_request(input, schema=schema, prompt=prompt, model=model, **options)
    runner = loop or create_loop(cfg)
    token = CancellationToken.linked(request.cancel_token)
    stream = ExtractStream(token)
    task = asyncio.get_running_loop().create_task(
        _drive(runner, request, stream, token)
    )
    stream.attach(task)
    return stream


async def _drive(
    runner: ExtractionLoop,
    request: ExtractionRequest,
    stream: ExtractStream,
    token: CancellationToken,
) -> None:
    try:
        await runner.run(request, stream.push, cancel_token=token)
    except Exception as e:
        # Already delivered to consumers as the terminal error event.
        logger.debug("Background extraction failed: %s", e)
    finally:
        token.detach()


async def extract_data(
    input: ExtractInput,  # noqa: A002
    *,
    schema: Schema,
    prompt: str,
    model: ModelInfo | None,
    cfg: FrozenConfig | None = None,
    loop: ExtractionLoop | None = None,
    **options: Any,
) -> Any:
    """Run an extraction inline and return the validated data.

    Raises:
        ExtractError: Generation failure, `MaxTurnsError` or `AbortError`.
    """
    request = build_request(input, schema=schema, prompt=prompt, model=model, **options)
    result = await (loop or create_loop(cfg)).run(request)
    return result.data


def _warming_cache(request: ExtractionRequest) -> bool | CacheOptions:
    """Force caching on, revalidating by default when function validators exist."""
    raw = request.cache
    if isinstance(raw, CacheOptions):
        if request.has_function_validators and not raw.revalidate:
            return CacheOptions(
                ttl=raw.ttl, key=raw.key, store=raw.store, revalidate=True
            )
        return raw
    if request.has_function_validators:
        return CacheOptions(revalidate=True)
    return True


async def warm_cache(
    inputs: Iterable[ExtractInput],
    *,
    schema: Schema,
    prompt: str,
    model: ModelInfo | None,
    cfg: FrozenConfig | None = None,
    loop: ExtractionLoop | None = None,
    **options: Any,
) -> list[ExtractResult[Any]]:
    """Run extractions one after another so their results land in the cache.

    Caching is forced on. When in-process validators are attached and the
    cache options do not say otherwise, cached entries are revalidated on
    later hits.

    Raises:
        ExtractError: The first extraction failure; earlier inputs stay cached.
    """
    runner = loop or create_loop(cfg)
    results: list[ExtractResult[Any]] = []
    for item in inputs:
        request = build_request(item, schema=schema, prompt=prompt, model=model, **options)
        request = request.replace(cache=_warming_cache(request))
        results.append(await runner.run(request))
    logger.debug("Warmed cache with %d results", len(results))
    return results
