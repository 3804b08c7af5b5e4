import asyncio

import pytest

from llm_extract.core.cancellation import CancellationToken
from llm_extract.core.exceptions import AbortError

pytestmark = pytest.mark.unit


def test_linked_token_fires_with_parent_but_not_the_reverse():
    parent = CancellationToken()
    child = CancellationToken.linked(parent)
    sibling = CancellationToken.linked(parent)

    sibling.cancel("only me")
    assert not parent.cancelled
    assert not child.cancelled

    parent.cancel("stop")
    assert child.cancelled
    assert child.reason == "stop"


def test_linking_an_already_cancelled_parent():
    parent = CancellationToken()
    parent.cancel(AbortError("gone"))
    child = CancellationToken.linked(parent)
    assert child.cancelled
    assert str(child.error()) == "gone"


def test_error_maps_reasons_to_abort_errors():
    token = CancellationToken()
    token.cancel()
    assert str(token.error()) == "Extraction aborted"

    token = CancellationToken()
    token.cancel(RuntimeError("user quit"))
    error = token.error()
    assert isinstance(error, AbortError)
    assert str(error) == "user quit"


def test_cancel_is_one_shot():
    token = CancellationToken()
    token.cancel("first")
    token.cancel("second")
    assert token.reason == "first"


@pytest.mark.asyncio
async def test_guard_returns_result_when_not_cancelled():
    token = CancellationToken()

    async def work():
        return 42

    assert await token.guard(work()) == 42


@pytest.mark.asyncio
async def test_guard_abandons_in_flight_work():
    token = CancellationToken()
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def slow():
        started.set()
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    async def fire():
        await started.wait()
        token.cancel("halt")

    firing = asyncio.create_task(fire())
    with pytest.raises(AbortError, match="halt"):
        await token.guard(slow())
    await firing
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_guard_on_cancelled_token_raises_immediately():
    token = CancellationToken()
    token.cancel()

    async def never():
        raise AssertionError("should not run")

    coro = never()
    with pytest.raises(AbortError):
        await token.guard(coro)
    coro.close()


def test_detached_child_no_longer_follows_parent():
    parent = CancellationToken()
    child = CancellationToken.linked(parent)
    child.detach()
    child.detach()

    parent.cancel("stop")
    assert not child.cancelled
    assert parent._callbacks == []


def test_remove_callback_ignores_unknown_callbacks():
    token = CancellationToken()
    fired = []
    token.add_callback(fired.append)
    token.remove_callback(print)
    token.remove_callback(fired.append)
    token.cancel("x")
    assert fired == []
