"""Provider adapter protocol and the normalized conversation types."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from converge.tools.base import ToolResult, ToolSpec

Role = Literal["system", "user", "assistant", "tool_result"]


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class Message:
    """A message in the conversation."""

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()  # assistant only
    tool_call_id: str | None = None  # tool_result only
    name: str | None = None  # Tool name for tool_result messages
    is_error: bool = False

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def assistant(cls, turn: NormalizedTurn) -> Message:
        """Build the assistant message that records a model turn."""
        return cls(role="assistant", content=turn.text, tool_calls=turn.tool_calls)

    @classmethod
    def tool_result(cls, result: ToolResult, name: str) -> Message:
        """Build the message that answers one tool call."""
        return cls(
            role="tool_result",
            content=json.dumps(result.to_dict(), default=str),
            tool_call_id=result.tool_call_id,
            name=name,
            is_error=not result.ok,
        )


@dataclass(frozen=True)
class NormalizedTurn:
    """Provider-agnostic model turn: final text and/or tool-call requests."""

    text: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()
    finish_reason: str = "stop"

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


@dataclass
class ProviderRequest:
    """Wire request produced by an adapter's ``build_request``."""

    path: str
    payload: dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(Protocol):
    """Protocol for model backend adapters."""

    name: str

    def build_request(
        self, messages: list[Message] | tuple[Message, ...], tool_specs: tuple[ToolSpec, ...]
    ) -> ProviderRequest:
        """Translate the conversation and tool specs into a wire request."""
        ...

    def parse_response(self, data: dict[str, Any]) -> NormalizedTurn:
        """Translate a decoded wire response into a normalized turn."""
        ...

    async def converse(
        self, messages: list[Message] | tuple[Message, ...], tool_specs: tuple[ToolSpec, ...]
    ) -> NormalizedTurn:
        """Request one model turn.

        Args:
            messages: Full conversation log
            tool_specs: Tools the model may call

        Returns:
            NormalizedTurn with text and/or tool calls

        Raises:
            AuthFailure: Credentials missing or rejected
            TransportFailure: Network failure after the bounded retry
            ValidationFailure: Request rejected or response unparsable
        """
        ...

    async def close(self) -> None: ...
