"""Adapter for the OpenAI Chat Completions API.

Also works against any OpenAI-compatible server (vLLM, Ollama, llama.cpp,
SGLang) by pointing ``base_url`` at it.
"""

import json
from typing import Any

from converge.llm.base import EMPTY_TURN_TEXT, HTTPProviderAdapter, malformed
from converge.llm.client import Message, NormalizedTurn, ProviderRequest, ToolCallRequest
from converge.tools.base import ToolSpec


class OpenAIAdapter(HTTPProviderAdapter):
    """Provider adapter for ``/v1/chat/completions``."""

    name = "openai"
    default_base_url = "https://api.openai.com"

    def __init__(self, api_key: str | None, model: str, base_url: str | None = None, **kwargs: Any):
        super().__init__(api_key, model, base_url=base_url, **kwargs)
        # Self-hosted compatible servers usually run without keys
        self.requires_api_key = base_url is None

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def serialize_message(self, message: Message) -> dict[str, Any]:
        """Convert an internal message to OpenAI format."""
        if message.role == "tool_result":
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content or "",
            }

        message_dict: dict[str, Any] = {
            "role": message.role,
            "content": message.content,
        }
        if not message.content and not message.tool_calls:
            message_dict["content"] = EMPTY_TURN_TEXT

        if message.tool_calls:
            message_dict["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments),
                    },
                }
                for tc in message.tool_calls
            ]

        return message_dict

    def build_request(self, messages, tool_specs: tuple[ToolSpec, ...]) -> ProviderRequest:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [self.serialize_message(msg) for msg in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        if tool_specs:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": spec.name,
                        "description": spec.description,
                        "parameters": spec.to_json_schema(),
                    },
                }
                for spec in tool_specs
            ]
            payload["tool_choice"] = "auto"

        return ProviderRequest(path="/v1/chat/completions", payload=payload)

    def _parse_tool_calls(self, raw_calls: Any) -> tuple[ToolCallRequest, ...]:
        if not raw_calls:
            return ()

        parsed: list[ToolCallRequest] = []
        for index, tc in enumerate(raw_calls):
            try:
                function = tc["function"]
                name = function["name"]
                raw_arguments = function.get("arguments") or "{}"
            except (KeyError, TypeError) as e:
                raise malformed(self.name, "tool call without a function", tc) from e

            if isinstance(raw_arguments, str):
                try:
                    arguments = json.loads(raw_arguments)
                except json.JSONDecodeError as e:
                    raise malformed(self.name, f"arguments for '{name}' are not JSON", tc) from e
            else:
                arguments = raw_arguments

            if not isinstance(arguments, dict):
                raise malformed(self.name, f"arguments for '{name}' are not an object", tc)

            parsed.append(
                ToolCallRequest(
                    id=tc.get("id") or f"call_{index}_{name}",
                    name=name,
                    arguments=arguments,
                )
            )
        return tuple(parsed)

    def parse_response(self, data: dict[str, Any]) -> NormalizedTurn:
        try:
            choice = data["choices"][0]
            message = choice["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise malformed(self.name, "missing choices[0].message", data) from e

        if not isinstance(choice, dict) or not isinstance(message, dict):
            raise malformed(self.name, "choices[0].message is not an object", data)

        tool_calls = self._parse_tool_calls(message.get("tool_calls"))

        return NormalizedTurn(
            text=message.get("content") or None,
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason") or "stop",
        )
