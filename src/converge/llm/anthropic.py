"""Anthropic Claude adapter using httpx.

Implements the provider adapter contract for the Anthropic Messages API.
"""

import logging
from typing import Any

from converge.llm.base import EMPTY_TURN_TEXT, HTTPProviderAdapter, malformed
from converge.llm.client import Message, NormalizedTurn, ProviderRequest, ToolCallRequest
from converge.tools.base import ToolSpec

logger = logging.getLogger(__name__)

ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicAdapter(HTTPProviderAdapter):
    """Provider adapter for the Anthropic Messages API."""

    name = "anthropic"
    default_base_url = "https://api.anthropic.com"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
        }

    def serialize_message(self, message: Message) -> dict[str, Any]:
        """Convert an internal message to Anthropic format.

        Tool results become ``tool_result`` content blocks inside a user
        message; tool calls become ``tool_use`` blocks.
        """
        if message.role == "tool_result":
            block: dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": message.tool_call_id,
                "content": message.content or "",
            }
            if message.is_error:
                block["is_error"] = True
            return {"role": "user", "content": [block]}

        if message.role == "assistant":
            content_blocks: list[dict[str, Any]] = []
            if message.content or not message.tool_calls:
                content_blocks.append({"type": "text", "text": message.content or EMPTY_TURN_TEXT})
            for tc in message.tool_calls:
                content_blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments,
                    }
                )
            return {"role": "assistant", "content": content_blocks}

        return {"role": message.role, "content": message.content or EMPTY_TURN_TEXT}

    def _convert_messages(self, messages) -> tuple[str | None, list[dict[str, Any]]]:
        """Split out the system prompt and merge consecutive tool results.

        Anthropic expects every result for one assistant turn in a single
        user message, and the system prompt outside the messages array.
        """
        system_prompt = None
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content
                continue

            converted = self.serialize_message(msg)
            previous = anthropic_messages[-1] if anthropic_messages else None
            if (
                msg.role == "tool_result"
                and previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].extend(converted["content"])
            else:
                anthropic_messages.append(converted)

        return system_prompt, anthropic_messages

    def build_request(self, messages, tool_specs: tuple[ToolSpec, ...]) -> ProviderRequest:
        system_prompt, anthropic_messages = self._convert_messages(messages)

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": anthropic_messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        if system_prompt:
            payload["system"] = system_prompt

        if tool_specs:
            payload["tools"] = [
                {
                    "name": spec.name,
                    "description": spec.description,
                    "input_schema": spec.to_json_schema(),
                }
                for spec in tool_specs
            ]

        return ProviderRequest(path="/v1/messages", payload=payload)

    def parse_response(self, data: dict[str, Any]) -> NormalizedTurn:
        """Parse Anthropic content blocks into text + tool calls."""
        content_blocks = data.get("content")
        if not isinstance(content_blocks, list):
            raise malformed(self.name, "missing content blocks", data)

        text_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []

        for index, block in enumerate(content_blocks):
            block_type = block.get("type") if isinstance(block, dict) else None
            if block_type == "text":
                text = block.get("text", "")
                if not isinstance(text, str):
                    raise malformed(self.name, "text block without a string", block)
                text_parts.append(text)
            elif block_type == "tool_use":
                try:
                    name = block["name"]
                    arguments = block.get("input") or {}
                except KeyError as e:
                    raise malformed(self.name, "tool_use block without a name", block) from e
                if not isinstance(arguments, dict):
                    raise malformed(self.name, f"input for '{name}' is not an object", block)
                tool_calls.append(
                    ToolCallRequest(
                        id=block.get("id") or f"call_{index}_{name}",
                        name=name,
                        arguments=arguments,
                    )
                )
            else:
                logger.debug("Ignoring %s content block", block_type)

        stop_reason = data.get("stop_reason", "end_turn")
        finish_reason = "tool_calls" if stop_reason == "tool_use" else "stop"

        return NormalizedTurn(
            text="\n".join(text_parts) or None,
            tool_calls=tuple(tool_calls),
            finish_reason=finish_reason,
        )
