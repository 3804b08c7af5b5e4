import asyncio

import pytest

from llm_extract.core.cancellation import CancellationToken
from llm_extract.core.events import (
    CompleteEvent,
    ErrorEvent,
    StartEvent,
    TurnStartEvent,
)
from llm_extract.core.exceptions import AbortError, ExtractError
from llm_extract.core.stream import EventStream, ExtractStream
from llm_extract.core.types import Usage

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_result_resolves_without_consuming_events():
    stream = EventStream()
    stream.push(StartEvent(max_turns=3))
    stream.push(CompleteEvent(result={"a": 1}, turns=1, usage=Usage(total_tokens=4)))

    result = await stream.result()
    assert result is not None
    assert result.data == {"a": 1}
    assert result.turns == 1
    assert result.usage.total_tokens == 4


@pytest.mark.asyncio
async def test_error_terminal_resolves_result_to_none():
    stream = EventStream()
    stream.push(ErrorEvent(error=ExtractError("boom"), turns=1))
    assert await stream.result() is None
    assert stream.closed


@pytest.mark.asyncio
async def test_events_after_terminal_are_dropped():
    stream = EventStream()
    stream.push(ErrorEvent(error=ExtractError("boom"), turns=0))
    stream.push(TurnStartEvent(turn=1))
    assert [e.type for e in stream.events] == ["error"]


@pytest.mark.asyncio
async def test_iteration_is_lazy_and_replays_for_late_subscribers():
    stream = EventStream()

    async def consume():
        return [event.type async for event in stream]

    early = asyncio.create_task(consume())
    await asyncio.sleep(0)
    stream.push(StartEvent(max_turns=1))
    await asyncio.sleep(0)
    stream.push(TurnStartEvent(turn=1))
    stream.push(CompleteEvent(result=None, turns=1, usage=Usage()))

    expected = ["start", "turn_start", "complete"]
    assert await early == expected
    assert await consume() == expected


@pytest.mark.asyncio
async def test_abort_fires_the_bound_token():
    token = CancellationToken()
    stream = ExtractStream(token)
    stream.abort()
    assert token.cancelled
    assert isinstance(token.reason, AbortError)
