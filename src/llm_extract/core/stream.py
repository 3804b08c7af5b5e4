"""Append-only event stream with a separate terminal-result accessor.

The producer pushes events synchronously; consumers iterate lazily with
`async for`. Each iterator replays the log from the beginning, so late
subscribers see the full history. `result()` resolves once a terminal event
has been pushed and never requires consuming the events.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
import logging
import typing

from llm_extract.core.events import CompleteEvent, ExtractEvent, is_terminal
from llm_extract.core.exceptions import AbortError
from llm_extract.core.types import ExtractResult

if typing.TYPE_CHECKING:
    from llm_extract.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class EventStream:
    """Ordered, push-based event log closed by its first terminal event."""

    def __init__(
        self,
        *,
        is_complete: Callable[[ExtractEvent], bool] = is_terminal,
    ) -> None:
        """Create an open, empty stream."""
        self._log: list[ExtractEvent] = []
        self._is_complete = is_complete
        self._closed = False
        self._final: ExtractResult[typing.Any] | None = None
        self._done = asyncio.Event()
        self._signal = asyncio.Event()

    @property
    def closed(self) -> bool:
        """Whether a terminal event has been pushed."""
        return self._closed

    @property
    def events(self) -> tuple[ExtractEvent, ...]:
        """Snapshot of every event pushed so far."""
        return tuple(self._log)

    def push(self, event: ExtractEvent) -> None:
        """Append `event`; ignored once the stream is closed."""
        if self._closed:
            logger.debug("Dropping %s event pushed after close", event.type)
            return
        self._log.append(event)
        if self._is_complete(event):
            self._closed = True
            if isinstance(event, CompleteEvent):
                self._final = ExtractResult(
                    data=event.result, turns=event.turns, usage=event.usage
                )
            self._done.set()
        # Wake current waiters, then arm a fresh signal for the next push.
        signal, self._signal = self._signal, asyncio.Event()
        signal.set()

    async def __aiter__(self) -> AsyncIterator[ExtractEvent]:
        index = 0
        while True:
            while index < len(self._log):
                event = self._log[index]
                index += 1
                yield event
            if self._closed:
                return
            await self._signal.wait()

    async def result(self) -> ExtractResult[typing.Any] | None:
        """Wait for the terminal event; return the success payload or None."""
        await self._done.wait()
        return self._final


class ExtractStream(EventStream):
    """Event stream for one extraction, with cancellation and task ownership."""

    def __init__(self, cancel_token: CancellationToken) -> None:
        """Create a stream bound to the token that `abort()` fires."""
        super().__init__()
        self._cancel_token = cancel_token
        self._task: asyncio.Task[typing.Any] | None = None

    def attach(self, task: asyncio.Task[typing.Any]) -> None:
        """Hold a strong reference to the task producing this stream."""
        self._task = task

    def abort(self, reason: BaseException | str | None = None) -> None:
        """Cancel the extraction; the stream then ends with an error event."""
        self._cancel_token.cancel(reason if reason is not None else AbortError())
