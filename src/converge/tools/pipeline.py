"""Analysis pipeline tool.

Forwards text to an external summarize/translate/analyze service. When no
service endpoint is configured the tool runs in degraded mode and returns a
deterministic placeholder per operation, labeled ``"source": "placeholder"``,
so agents can be wired up before a real backend exists.
"""

import logging
import re
from typing import Any

import httpx

from converge.errors import ToolRuntimeFailure, excerpt
from converge.tools.base import ToolExecutor, ToolParameter, ToolSpec

logger = logging.getLogger(__name__)

OPERATIONS = ("summarize", "translate", "analyze")

PIPELINE_SPEC = ToolSpec(
    name="pipeline",
    description="Run text through the analysis pipeline: summarize, translate or analyze it",
    parameters=(
        ToolParameter(
            name="operation",
            type="string",
            description="Operation to perform",
            enum=OPERATIONS,
        ),
        ToolParameter(name="text", type="string", description="Input text"),
        ToolParameter(
            name="target_language",
            type="string",
            description="Target language for translate (e.g. 'fr')",
            required=False,
        ),
    ),
)

PLACEHOLDER_NOTE = "No pipeline service is configured; this is a placeholder response."

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def _placeholder_summarize(text: str, options: dict[str, Any]) -> dict[str, Any]:
    sentences = [s for s in _SENTENCE_END.split(text.strip()) if s]
    return {"summary": " ".join(sentences[:2])}


def _placeholder_translate(text: str, options: dict[str, Any]) -> dict[str, Any]:
    language = options.get("target_language") or "en"
    return {"target_language": language, "translation": f"[{language}] {text}"}


def _placeholder_analyze(text: str, options: dict[str, Any]) -> dict[str, Any]:
    words = text.split()
    sentences = [s for s in _SENTENCE_END.split(text.strip()) if s]
    return {
        "analysis": {
            "characters": len(text),
            "words": len(words),
            "sentences": len(sentences),
        }
    }


PLACEHOLDERS = {
    "summarize": _placeholder_summarize,
    "translate": _placeholder_translate,
    "analyze": _placeholder_analyze,
}


class PipelineExecutor(ToolExecutor):
    """Executor for the ``pipeline`` tool."""

    spec = PIPELINE_SPEC

    def __init__(
        self,
        endpoint: str | None = None,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def run(
        self, operation: str, text: str, target_language: str | None = None
    ) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if target_language:
            options["target_language"] = target_language

        if not self.endpoint:
            logger.debug("Pipeline %s answered with a placeholder", operation)
            result = PLACEHOLDERS[operation](text, options)
            return {"source": "placeholder", "operation": operation, "note": PLACEHOLDER_NOTE, **result}

        data = await self._call(operation, text, options)
        return {**data, "source": "live", "operation": operation}

    async def _call(self, operation: str, text: str, options: dict[str, Any]) -> dict[str, Any]:
        headers = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {"operation": operation, "input": text, "options": options}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ToolRuntimeFailure(f"Pipeline request failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise ToolRuntimeFailure(
                f"Pipeline returned status {response.status_code}",
                details={"body": excerpt(response.text)},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ToolRuntimeFailure(
                "Pipeline returned a malformed body", details={"body": excerpt(response.text)}
            ) from e

        if not isinstance(data, dict):
            data = {"result": data}
        return data
