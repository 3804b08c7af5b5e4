"""Shape validation against JSON Schema and pydantic models."""

from pydantic import BaseModel
import pytest

from llm_extract.core.exceptions import SchemaValidationError
from llm_extract.schema.validation import (
    json_schema_of,
    model_class_of,
    parse_model,
    validate_arguments,
    validation_schema,
)

pytestmark = pytest.mark.unit

PERSON = {
    "type": "object",
    "properties": {"name": {"type": "string"}, "age": {"type": "integer"}},
    "required": ["name", "age"],
}


class Person(BaseModel):
    name: str
    age: int


def test_valid_arguments_are_returned_unchanged():
    data = {"name": "Ada", "age": 36}
    assert validate_arguments(data, PERSON, tool_name="respond") is data


def test_violations_are_listed_with_paths():
    with pytest.raises(SchemaValidationError) as excinfo:
        validate_arguments({"name": 1}, PERSON, tool_name="respond")
    error = excinfo.value
    paths = [detail.path for detail in error.errors]
    assert "/name" in paths
    assert "/" in paths  # missing "age" is reported at the root
    assert str(error).startswith('Validation failed for tool "respond":')
    assert "Received arguments:" in str(error)


def test_pydantic_model_schema_and_parsing():
    assert model_class_of(Person) is Person
    assert model_class_of(PERSON) is None
    assert json_schema_of(Person)["properties"]["age"]["type"] == "integer"
    assert parse_model({"name": "Ada", "age": 36}, Person, tool_name="respond") == Person(
        name="Ada", age=36
    )


def test_parse_model_failures_become_schema_errors():
    with pytest.raises(SchemaValidationError) as excinfo:
        parse_model({"name": "Ada", "age": "old"}, Person, tool_name="respond")
    assert excinfo.value.errors[0].path == "/age"


def test_validation_schema_reattaches_defs_for_cycle_edges():
    original = {"$defs": {"Node": {"type": "object"}}, "$ref": "#/$defs/Node"}
    normalized = {"type": "object", "properties": {"next": {"$ref": "#/$defs/Node"}}}
    merged = validation_schema(normalized, original)
    assert merged["$defs"] == original["$defs"]
    assert validation_schema({"type": "object"}, original) == {"type": "object"}
