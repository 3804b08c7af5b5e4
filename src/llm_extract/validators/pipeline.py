"""Ordered validation layers run after the shape check.

Layers run in a fixed order: sync, async, command, http. Only configured
layers run, and the first failure stops the pipeline. Each attempted layer
reports start, then pass or fail, through a `ValidationEmitter`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import dataclasses
import inspect
import logging
from typing import TYPE_CHECKING, Any

from llm_extract.constants import DEFAULT_HTTP_TIMEOUT, DEFAULT_VALIDATOR_SHELL
from llm_extract.core.events import (
    ExtractEvent,
    ValidationErrorEvent,
    ValidationPassEvent,
    ValidationStartEvent,
    ValidatorLayer,
)
from llm_extract.core.exceptions import AbortError
from llm_extract.validators.command import run_command_validator
from llm_extract.validators.http import (
    HttpClientFactory,
    default_client_factory,
    run_http_validator,
)

if TYPE_CHECKING:
    from llm_extract.core.cancellation import CancellationToken
    from llm_extract.core.types import ExtractionRequest

logger = logging.getLogger(__name__)


class ValidationEmitter:
    """Turns layer outcomes into validation events."""

    __slots__ = ("_push",)

    def __init__(self, push: Callable[[ExtractEvent], None]) -> None:
        self._push = push

    def start(self, layer: ValidatorLayer) -> None:
        self._push(ValidationStartEvent(layer=layer))

    def passed(self, layer: ValidatorLayer) -> None:
        self._push(ValidationPassEvent(layer=layer))

    def fail(self, layer: ValidatorLayer, error: str) -> None:
        self._push(ValidationErrorEvent(layer=layer, error=error))


@dataclasses.dataclass(frozen=True, slots=True)
class ValidatorSettings:
    """Runtime knobs for the external validator layers."""

    shell: str = DEFAULT_VALIDATOR_SHELL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    http_client_factory: HttpClientFactory = default_client_factory


def error_message(error: BaseException) -> str:
    """Feedback text for a validator failure."""
    return str(error) or type(error).__name__


async def run_validators(
    data: Any,
    request: ExtractionRequest,
    emitter: ValidationEmitter,
    cancel_token: CancellationToken | None = None,
    settings: ValidatorSettings | None = None,
) -> None:
    """Run every configured validation layer against `data`.

    Raises:
        Exception: The first layer failure, unchanged, after its
            ``validation_error`` event has been emitted.
    """
    settings = settings or ValidatorSettings()

    if request.validate is not None:
        sync_check = request.validate
        await _run_layer("sync", emitter, lambda: _call_sync(sync_check, data))

    if request.validate_async is not None:
        async_check = request.validate_async
        await _run_layer("async", emitter, lambda: _call_async(async_check, data))

    if request.validate_command is not None:
        command = request.validate_command
        await _run_layer(
            "command",
            emitter,
            lambda: run_command_validator(
                data, command, cancel_token, shell=settings.shell
            ),
        )

    if request.validate_url is not None:
        url = request.validate_url
        await _run_layer(
            "http",
            emitter,
            lambda: run_http_validator(
                data,
                url,
                cancel_token,
                timeout=settings.http_timeout,
                client_factory=settings.http_client_factory,
            ),
        )


async def _run_layer(
    layer: ValidatorLayer,
    emitter: ValidationEmitter,
    check: Callable[[], Awaitable[None]],
) -> None:
    emitter.start(layer)
    try:
        await check()
    except AbortError:
        raise
    except Exception as e:
        logger.debug("Validation layer %s rejected candidate: %s", layer, e)
        emitter.fail(layer, error_message(e))
        raise
    emitter.passed(layer)


async def _call_sync(check: Callable[[Any], object], data: Any) -> None:
    check(data)


async def _call_async(check: Callable[[Any], Any], data: Any) -> None:
    outcome = check(data)
    if inspect.isawaitable(outcome):
        await outcome
