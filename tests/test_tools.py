"""Tests for tool specs, argument validation and results."""

from typing import Any

import pytest

from converge.errors import ExecutionTimeout, ToolRuntimeFailure, ValidationFailure
from converge.tools.base import ToolExecutor, ToolParameter, ToolResult, ToolSpec

SPEC = ToolSpec(
    name="convert",
    description="Convert units",
    parameters=(
        ToolParameter(name="value", type="number", description="Amount"),
        ToolParameter(name="unit", type="string", description="Target unit", enum=("km", "mi")),
        ToolParameter(name="precision", type="integer", description="Digits", required=False),
    ),
)


def test_to_json_schema():
    schema = SPEC.to_json_schema()

    assert schema["type"] == "object"
    assert schema["required"] == ["value", "unit"]
    assert schema["properties"]["unit"] == {
        "type": "string",
        "description": "Target unit",
        "enum": ["km", "mi"],
    }
    assert "enum" not in schema["properties"]["value"]


def test_validate_accepts_good_arguments():
    assert SPEC.validate({"value": 3.5, "unit": "km"}) == {"value": 3.5, "unit": "km"}


def test_validate_keeps_optional_when_given():
    validated = SPEC.validate({"value": 1, "unit": "mi", "precision": 2})
    assert validated["precision"] == 2


@pytest.mark.parametrize(
    "arguments, field",
    [
        ({"unit": "km"}, "value"),
        ({"value": 1, "unit": "parsec"}, "unit"),
        ({"value": "lots", "unit": "km"}, "value"),
        ({"value": 1, "unit": "km", "colour": "red"}, "colour"),
    ],
)
def test_validate_rejects_bad_arguments(arguments, field):
    with pytest.raises(ValidationFailure) as exc_info:
        SPEC.validate(arguments)

    assert field in exc_info.value.message
    assert exc_info.value.kind == "validation"


FLAGS_SPEC = ToolSpec(
    name="flags",
    description="Typed flags",
    parameters=(
        ToolParameter(name="count", type="integer", description="How many"),
        ToolParameter(name="verbose", type="boolean", description="Chatty output"),
        ToolParameter(name="label", type="string", description="Name", required=False),
    ),
)


@pytest.mark.parametrize(
    "arguments, field",
    [
        ({"count": "5", "verbose": True}, "count"),
        ({"count": 5.5, "verbose": True}, "count"),
        ({"count": True, "verbose": True}, "count"),
        ({"count": 5, "verbose": "yes"}, "verbose"),
        ({"count": 5, "verbose": 1}, "verbose"),
        ({"count": 5, "verbose": False, "label": 7}, "label"),
    ],
)
def test_validate_does_not_coerce_json_types(arguments, field):
    with pytest.raises(ValidationFailure) as exc_info:
        FLAGS_SPEC.validate(arguments)

    assert field in exc_info.value.message


def test_validate_number_accepts_integer():
    assert SPEC.validate({"value": 2, "unit": "km"})["value"] == 2


def test_validate_rejects_non_object():
    with pytest.raises(ValidationFailure, match="must be an object"):
        SPEC.validate(["value", 1])


def test_tool_result_to_dict():
    assert ToolResult.success("a", {"x": 1}).to_dict() == {"status": "ok", "payload": {"x": 1}}

    failure = ToolResult.failure("b", "broken", kind="timeout", details={"timeout": 2})
    assert failure.to_dict() == {
        "status": "error",
        "error_kind": "timeout",
        "payload": {"error": "broken", "timeout": 2},
    }
    assert not failure.ok


class Recorder(ToolExecutor):
    spec = SPEC

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def run(self, **arguments: Any) -> dict[str, Any]:
        self.calls.append(arguments)
        if self.error:
            raise self.error
        return {"converted": arguments["value"] * 2}


@pytest.mark.asyncio
async def test_execute_success():
    tool = Recorder()

    result = await tool.execute({"value": 2, "unit": "km"}, tool_call_id="t1")

    assert result == ToolResult.success("t1", {"converted": 4.0})


@pytest.mark.asyncio
async def test_execute_does_not_run_on_invalid_arguments():
    tool = Recorder()

    result = await tool.execute({"value": 2}, tool_call_id="t1")

    assert result.error_kind == "validation"
    assert result.tool_call_id == "t1"
    assert tool.calls == []


@pytest.mark.asyncio
async def test_execute_classified_failure_keeps_details():
    tool = Recorder(ToolRuntimeFailure("sensor offline", details={"sensor": 4}))

    result = await tool.execute({"value": 1, "unit": "mi"})

    assert result.error_kind == "runtime"
    assert result.payload == {"error": "sensor offline", "sensor": 4}


@pytest.mark.asyncio
async def test_execute_timeout_kind():
    tool = Recorder(ExecutionTimeout("too slow"))

    result = await tool.execute({"value": 1, "unit": "mi"})

    assert result.error_kind == "timeout"


@pytest.mark.asyncio
async def test_execute_unexpected_exception_is_runtime():
    tool = Recorder(ZeroDivisionError("division by zero"))

    result = await tool.execute({"value": 1, "unit": "mi"})

    assert result.error_kind == "runtime"
    assert result.payload["error"] == "ZeroDivisionError: division by zero"
