import pytest

from llm_extract.config import resolve_config
from llm_extract.core.types import ExtractionRequest
from llm_extract.pipeline.loop import ExtractionLoop
from llm_extract.telemetry import InMemoryReporter, TelemetryContext
from tests.helpers import MODEL, ScriptedStream, text_reply, tool_reply

pytestmark = pytest.mark.unit


def test_disabled_context_is_a_shared_no_op():
    reporter = InMemoryReporter()
    ctx = TelemetryContext(reporter)
    assert ctx is TelemetryContext()
    with ctx("scope"):
        ctx.count("things")
    assert reporter.timings == {}
    assert reporter.metrics == {}


def test_enabled_context_nests_scopes(monkeypatch):
    monkeypatch.setenv("LLM_EXTRACT_TELEMETRY", "1")
    reporter = InMemoryReporter()
    ctx = TelemetryContext(reporter)
    with ctx("outer"), ctx("inner"):
        ctx.count("hits")
    assert set(reporter.timings) == {"outer", "outer.inner"}
    assert reporter.metrics == {"outer.inner.hits": [1]}


@pytest.mark.asyncio
async def test_loop_reports_turn_timings(monkeypatch):
    monkeypatch.setenv("LLM_EXTRACT_TELEMETRY", "1")
    reporter = InMemoryReporter()
    loop = ExtractionLoop(resolve_config(), reporters=[reporter])
    fn = ScriptedStream.of(text_reply("thinking..."), tool_reply({"a": 1}))
    request = ExtractionRequest(
        input="x",
        schema={"type": "object"},
        prompt="p",
        model=MODEL,
        stream_fn=fn,
    )
    await loop.run(request)
    assert len(reporter.timings["extract.turn"]) == 2
    assert len(reporter.timings["extract"]) == 1
