"""Google Gemini adapter for the ``generateContent`` REST API."""

import json
from typing import Any

from converge.llm.base import EMPTY_TURN_TEXT, HTTPProviderAdapter, malformed
from converge.llm.client import Message, NormalizedTurn, ProviderRequest, ToolCallRequest
from converge.tools.base import ToolSpec


def generated_call_id(index: int, name: str) -> str:
    """Stable ID for a function call that arrived without one.

    Derived from the call's position in the turn so that re-parsing the same
    turn yields the same IDs.
    """
    return f"call_{index}_{name}"


class GeminiAdapter(HTTPProviderAdapter):
    """Provider adapter for Gemini.

    Gemini correlates function responses by tool name and does not always
    issue call IDs, so IDs are generated when missing.
    """

    name = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key}

    def serialize_message(self, message: Message) -> dict[str, Any]:
        if message.role == "tool_result":
            try:
                response = json.loads(message.content or "{}")
            except json.JSONDecodeError:
                response = {"content": message.content}
            if not isinstance(response, dict):
                response = {"content": response}
            return {
                "role": "user",
                "parts": [{"functionResponse": {"name": message.name, "response": response}}],
            }

        parts: list[dict[str, Any]] = []
        if message.content:
            parts.append({"text": message.content})
        for tc in message.tool_calls:
            parts.append({"functionCall": {"name": tc.name, "args": tc.arguments}})
        if not parts:
            parts.append({"text": EMPTY_TURN_TEXT})

        role = "model" if message.role == "assistant" else "user"
        return {"role": role, "parts": parts}

    def _convert_messages(self, messages) -> tuple[str | None, list[dict[str, Any]]]:
        system_prompt = None
        contents: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content
                continue

            converted = self.serialize_message(msg)
            previous = contents[-1] if contents else None
            # All function responses for one turn go in a single content entry
            if (
                msg.role == "tool_result"
                and previous is not None
                and previous["role"] == "user"
                and all("functionResponse" in part for part in previous["parts"])
            ):
                previous["parts"].extend(converted["parts"])
            else:
                contents.append(converted)

        return system_prompt, contents

    def build_request(self, messages, tool_specs: tuple[ToolSpec, ...]) -> ProviderRequest:
        system_prompt, contents = self._convert_messages(messages)

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        if tool_specs:
            payload["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": spec.name,
                            "description": spec.description,
                            "parameters": spec.to_json_schema(),
                        }
                        for spec in tool_specs
                    ]
                }
            ]

        return ProviderRequest(path=f"/v1beta/models/{self.model}:generateContent", payload=payload)

    def parse_response(self, data: dict[str, Any]) -> NormalizedTurn:
        try:
            candidate = data["candidates"][0]
        except (KeyError, IndexError, TypeError) as e:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            detail = f"prompt blocked ({block_reason})" if block_reason else "no candidates"
            raise malformed(self.name, detail, data) from e

        if not isinstance(candidate, dict):
            raise malformed(self.name, "candidates[0] is not an object", data)

        parts = (candidate.get("content") or {}).get("parts") or []

        text_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []

        for part in parts:
            if "text" in part:
                text_parts.append(part["text"])
            elif "functionCall" in part:
                call = part["functionCall"]
                name = call.get("name")
                if not name:
                    raise malformed(self.name, "functionCall without a name", part)
                arguments = call.get("args") or {}
                if not isinstance(arguments, dict):
                    raise malformed(self.name, f"args for '{name}' are not an object", part)
                tool_calls.append(
                    ToolCallRequest(
                        id=call.get("id") or generated_call_id(len(tool_calls), name),
                        name=name,
                        arguments=arguments,
                    )
                )

        finish_reason = "tool_calls" if tool_calls else (candidate.get("finishReason") or "STOP").lower()

        return NormalizedTurn(
            text="".join(text_parts) or None,
            tool_calls=tuple(tool_calls),
            finish_reason=finish_reason,
        )
