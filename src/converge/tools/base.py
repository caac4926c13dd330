"""Base types for the tool system."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from converge.errors import ToolRuntimeFailure, ValidationFailure

logger = logging.getLogger(__name__)

# JSON Schema type -> Python type used for argument validation
_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}


@dataclass(frozen=True)
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # JSON Schema type
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ToolSpec:
    """Declarative description of a tool, shared with every provider."""

    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()

    def to_json_schema(self) -> dict[str, Any]:
        """Build the JSON Schema object describing the tool's arguments."""
        properties: dict[str, Any] = {}
        required = []

        for param in self.parameters:
            param_schema: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = list(param.enum)

            properties[param.name] = param_schema

            if param.required:
                required.append(param.name)

        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    @cached_property
    def _arguments_model(self) -> type[BaseModel]:
        fields: dict[str, Any] = {}
        for param in self.parameters:
            py_type: Any = _JSON_TYPES.get(param.type, Any)
            if param.enum:
                py_type = Literal[param.enum]
            if param.required:
                fields[param.name] = (py_type, ...)
            else:
                fields[param.name] = (Optional[py_type], None)

        return create_model(
            f"{self.name}_arguments",
            __config__=ConfigDict(extra="forbid", strict=True),
            **fields,
        )

    def validate(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        """Validate call arguments against the parameter shape.

        Args:
            arguments: Arguments supplied by the model

        Returns:
            Validated arguments, with only the fields the caller set

        Raises:
            ValidationFailure: Describing every missing or invalid field
        """
        if not isinstance(arguments, Mapping):
            raise ValidationFailure(
                f"Arguments for '{self.name}' must be an object, got {type(arguments).__name__}"
            )

        try:
            model = self._arguments_model.model_validate(dict(arguments))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationFailure(f"Invalid arguments for '{self.name}': {problems}") from e

        return model.model_dump(exclude_unset=True)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call. Never mutated after creation."""

    tool_call_id: str
    status: Literal["ok", "error"]
    payload: dict[str, Any] = field(default_factory=dict)
    error_kind: str | None = None  # validation, runtime, timeout, not_found

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def success(cls, tool_call_id: str, payload: dict[str, Any]) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, status="ok", payload=payload)

    @classmethod
    def failure(
        cls,
        tool_call_id: str,
        message: str,
        kind: str = "runtime",
        details: dict[str, Any] | None = None,
    ) -> "ToolResult":
        payload = {"error": message, **(details or {})}
        return cls(tool_call_id=tool_call_id, status="error", payload=payload, error_kind=kind)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status}
        if self.error_kind:
            data["error_kind"] = self.error_kind
        data["payload"] = self.payload
        return data


class ToolExecutor(ABC):
    """A tool the agent can call.

    Subclasses set ``spec`` and implement :meth:`run`. Callers go through
    :meth:`execute`, which validates arguments first and turns every failure
    into an error :class:`ToolResult`.
    """

    spec: ToolSpec

    @property
    def name(self) -> str:
        return self.spec.name

    @abstractmethod
    async def run(self, **arguments: Any) -> dict[str, Any]:
        """Perform the tool's side effect with validated arguments.

        Returns:
            Result payload

        Raises:
            ToolRuntimeFailure: For classified failures (e.g. timeouts)
        """

    async def execute(self, arguments: Mapping[str, Any], tool_call_id: str = "") -> ToolResult:
        """Validate arguments and run the tool.

        Args:
            arguments: Raw arguments from the model
            tool_call_id: ID of the call this result answers

        Returns:
            ToolResult with status ok or error
        """
        try:
            validated = self.spec.validate(arguments)
        except ValidationFailure as e:
            return ToolResult.failure(tool_call_id, e.message, kind=e.kind)

        try:
            payload = await self.run(**validated)
        except asyncio.CancelledError:
            raise
        except ToolRuntimeFailure as e:
            logger.warning("Tool %s failed (%s): %s", self.name, e.kind, e.message)
            return ToolResult.failure(tool_call_id, e.message, kind=e.kind, details=e.details)
        except Exception as e:
            logger.exception("Tool %s raised", self.name)
            return ToolResult.failure(tool_call_id, f"{type(e).__name__}: {e}", kind="runtime")

        return ToolResult.success(tool_call_id, payload)


# Tool function signature: async function returning text or a payload dict
ToolFunction = Callable[..., Awaitable[str | dict[str, Any]]]


class FunctionTool(ToolExecutor):
    """Executor backed by a plain async function."""

    def __init__(self, spec: ToolSpec, fn: ToolFunction):
        self.spec = spec
        self.fn = fn

    async def run(self, **arguments: Any) -> dict[str, Any]:
        result = await self.fn(**arguments)
        if isinstance(result, dict):
            return result
        return {"output": result}
