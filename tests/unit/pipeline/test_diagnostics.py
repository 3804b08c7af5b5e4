"""Generation failure messages."""

import pytest

from llm_extract.core.types import AssistantMessage, ModelInfo, TextContent, Usage
from llm_extract.pipeline.diagnostics import generation_error, is_context_overflow

pytestmark = pytest.mark.unit

MODEL = ModelInfo(provider="acme", id="acme-1", api="acme-chat", context_window=1000)


def test_message_carries_provider_metadata_and_details():
    failed = AssistantMessage(stop_reason="error", error_message="rate limited")
    error = generation_error(failed, MODEL)
    assert str(error) == (
        "LLM request failed (provider=acme, model=acme-1, api=acme-chat,"
        " stopReason=error). Provider message: rate limited."
    )


def test_reply_metadata_overrides_model_and_base_url_is_listed():
    model = ModelInfo(provider="acme", id="acme-1", base_url="https://llm.test")
    failed = AssistantMessage(
        stop_reason="error", provider="router", model="acme-2", api="proxy"
    )
    assert str(generation_error(failed, model)) == (
        "LLM request failed (provider=router, model=acme-2, api=proxy,"
        " stopReason=error, baseUrl=https://llm.test)."
    )


def test_generic_errors_get_an_access_hint():
    failed = AssistantMessage(stop_reason="error", error_message="An unknown error occurred")
    assert "API key lacks access" in str(generation_error(failed, MODEL))


def test_context_overflow_hint_from_phrasing_and_usage():
    phrased = AssistantMessage(
        stop_reason="error", error_message="This model's maximum context length is 1000"
    )
    counted = AssistantMessage(stop_reason="error", usage=Usage(input_tokens=5000))
    assert is_context_overflow(phrased, MODEL.context_window)
    assert is_context_overflow(counted, MODEL.context_window)
    assert "Input exceeds the model context window (1000 tokens)" in str(
        generation_error(phrased, MODEL)
    )


def test_distinct_content_is_appended():
    failed = AssistantMessage(
        content=(TextContent(text="quota page"),),
        stop_reason="error",
        error_message="forbidden",
    )
    assert str(generation_error(failed, MODEL)).endswith(" Provider content: quota page")
