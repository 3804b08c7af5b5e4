"""Cooperative cancellation shared across every suspension point.

A single `CancellationToken` is threaded through the extraction loop, the
generation service call and the external validators. Work that may block is
raced against the token with `guard()` so in-flight I/O is abandoned as soon
as the token fires.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import contextlib
import logging
from typing import Any

from llm_extract.core.exceptions import AbortError

logger = logging.getLogger(__name__)


class CancellationToken:
    """A one-shot cancellation signal with an optional reason."""

    __slots__ = ("_callbacks", "_event", "_parent", "_reason")

    def __init__(self) -> None:
        """Create an untriggered token."""
        self._event = asyncio.Event()
        self._reason: BaseException | str | None = None
        self._callbacks: list[Callable[[BaseException | str | None], None]] = []
        self._parent: CancellationToken | None = None

    @classmethod
    def linked(cls, parent: CancellationToken | None) -> CancellationToken:
        """Return a new token that fires whenever `parent` fires.

        The child can also be cancelled on its own without affecting the parent.
        """
        child = cls()
        if parent is None:
            return child
        if parent.cancelled:
            child.cancel(parent.reason)
        else:
            parent.add_callback(child.cancel)
            child._parent = parent
        return child

    def detach(self) -> None:
        """Unregister from the parent given to `linked()`."""
        parent, self._parent = self._parent, None
        if parent is not None:
            parent.remove_callback(self.cancel)

    @property
    def cancelled(self) -> bool:
        """Whether the token has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> BaseException | str | None:
        """The reason passed to `cancel()`, if any."""
        return self._reason

    def cancel(self, reason: BaseException | str | None = None) -> None:
        """Fire the token. Subsequent calls are ignored."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for callback in tuple(self._callbacks):
            try:
                callback(reason)
            except Exception:
                logger.debug("Cancellation callback failed", exc_info=True)

    def add_callback(self, callback: Callable[[BaseException | str | None], None]) -> None:
        """Run `callback(reason)` when the token fires (immediately if it has)."""
        if self._event.is_set():
            callback(self._reason)
            return
        self._callbacks.append(callback)

    def remove_callback(
        self, callback: Callable[[BaseException | str | None], None]
    ) -> None:
        """Forget `callback`; unknown callbacks are ignored."""
        with contextlib.suppress(ValueError):
            self._callbacks.remove(callback)

    def error(self) -> AbortError:
        """Build the `AbortError` that represents this cancellation."""
        reason = self._reason
        if isinstance(reason, AbortError):
            return reason
        if isinstance(reason, BaseException):
            return AbortError(str(reason) or "Extraction aborted")
        if isinstance(reason, str) and reason:
            return AbortError(reason)
        return AbortError()

    def raise_if_cancelled(self) -> None:
        """Raise `AbortError` if the token has fired."""
        if self._event.is_set():
            raise self.error()

    async def guard[T](self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable`, abandoning it if the token fires first.

        Raises:
            AbortError: If the token fires before `awaitable` completes.
        """
        self.raise_if_cancelled()
        task: asyncio.Future[T] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        if task in done:
            waiter.cancel()
            return task.result()
        task.cancel()
        await _drain(task)
        raise self.error()


async def _drain(task: asyncio.Future[Any]) -> None:
    """Wait for a cancelled task to unwind, discarding its outcome."""
    results = await asyncio.gather(task, return_exceptions=True)
    for outcome in results:
        if isinstance(outcome, Exception):
            logger.debug("Abandoned task ended with %r", outcome)
