"""Layer ordering and event reporting of the validation pipeline."""

import httpx
import pytest

from llm_extract.core.types import ExtractionRequest
from llm_extract.validators.pipeline import (
    ValidationEmitter,
    ValidatorSettings,
    run_validators,
)

pytestmark = pytest.mark.unit


def _request(**validators):
    return ExtractionRequest(input="x", schema={}, prompt="p", model=None, **validators)


def _collect():
    events = []
    return events, ValidationEmitter(events.append)


@pytest.mark.asyncio
async def test_layers_run_in_order():
    calls = []

    async def check_async(data):
        calls.append("async")

    def handler(request):
        calls.append("http")
        return httpx.Response(200)

    settings = ValidatorSettings(
        http_client_factory=lambda timeout: httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        )
    )
    request = _request(
        validate=lambda data: calls.append("sync"),
        validate_async=check_async,
        validate_command="cat > /dev/null",
        validate_url="http://validator.test/",
    )
    events, emitter = _collect()
    await run_validators({"a": 1}, request, emitter, settings=settings)

    assert calls == ["sync", "async", "http"]
    assert [(e.type, e.layer) for e in events] == [
        ("validation_start", "sync"),
        ("validation_pass", "sync"),
        ("validation_start", "async"),
        ("validation_pass", "async"),
        ("validation_start", "command"),
        ("validation_pass", "command"),
        ("validation_start", "http"),
        ("validation_pass", "http"),
    ]


@pytest.mark.asyncio
async def test_first_failure_stops_the_pipeline():
    reached = []

    def reject(data):
        raise ValueError(f"score {data['score']} below 0.8")

    async def check_async(data):
        reached.append("async")

    events, emitter = _collect()
    with pytest.raises(ValueError, match="below 0.8"):
        await run_validators(
            {"score": 0.5},
            _request(validate=reject, validate_async=check_async),
            emitter,
        )
    assert reached == []
    assert events[-1].type == "validation_error"
    assert events[-1].layer == "sync"
    assert events[-1].error == "score 0.5 below 0.8"


@pytest.mark.asyncio
async def test_no_validators_emits_nothing():
    events, emitter = _collect()
    await run_validators({}, _request(), emitter)
    assert events == []
