from pydantic import BaseModel
import pytest

from llm_extract.core.types import (
    ExtractionRequest,
    ImageContent,
    ModelInfo,
    ToolCall,
    Usage,
    UserMessage,
    to_jsonable,
)

pytestmark = pytest.mark.unit


def test_usage_adds_fieldwise():
    total = Usage(1, 2, 3, 0.5) + Usage(10, 20, 30, 0.25)
    assert total == Usage(11, 22, 33, 0.75)
    assert Usage.from_dict(total.to_dict()) == total
    assert Usage.from_dict(None) == Usage()


def test_request_rejects_bad_max_turns():
    with pytest.raises(ValueError, match="max_turns"):
        ExtractionRequest(input="x", schema={}, prompt="p", model=None, max_turns=0)


def test_request_rejects_unknown_thinking_level():
    with pytest.raises(ValueError, match="thinking"):
        ExtractionRequest(
            input="x", schema={}, prompt="p", model=None, thinking="extreme"
        )


def test_request_rejects_blank_command():
    with pytest.raises(ValueError, match="validate_command"):
        ExtractionRequest(
            input="x", schema={}, prompt="p", model=None, validate_command="  "
        )


def test_function_validator_detection():
    request = ExtractionRequest(input="x", schema={}, prompt="p", model=None)
    assert not request.has_function_validators
    assert request.replace(validate=lambda data: None).has_function_validators


def test_image_requires_image_mime_type():
    with pytest.raises(ValueError, match="mime_type"):
        ImageContent(data="aGk=", mime_type="text/plain")


def test_model_display_name_prefers_name():
    assert ModelInfo(provider="p", id="m-1").display_name == "m-1"
    assert ModelInfo(provider="p", id="m-1", name="Model One").display_name == "Model One"


def test_to_jsonable_handles_models_and_dataclasses():
    class Point(BaseModel):
        x: int

    value = {"point": Point(x=1), "history": (UserMessage(content="hi"),)}
    assert to_jsonable(value) == {
        "point": {"x": 1},
        "history": [{"content": "hi", "role": "user"}],
    }
    assert to_jsonable(ToolCall(id="1", name="respond", arguments={"a": 1}))["type"] == "tool_call"
