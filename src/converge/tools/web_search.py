"""Web search tool backed by Google Programmable Search.

Without an API key and engine ID the tool never touches the network and
answers from a fixed fallback result set. The same fallback is used when the
live request fails. Every payload carries ``source`` (``live`` or
``fallback``) so the model can tell real results from synthetic ones.
"""

import logging
from typing import Any

import httpx

from converge.tools.base import ToolExecutor, ToolParameter, ToolSpec

logger = logging.getLogger(__name__)

SEARCH_SPEC = ToolSpec(
    name="web_search",
    description="Search the web and return titles, URLs and snippets",
    parameters=(
        ToolParameter(name="query", type="string", description="Search query string"),
        ToolParameter(
            name="max_results",
            type="integer",
            description="Maximum number of results to return (1-10)",
            required=False,
        ),
    ),
)


def fallback_results(query: str, max_results: int) -> list[dict[str, str]]:
    """Deterministic substitute results for a query."""
    results = [
        {
            "title": f"{query} - overview",
            "url": "https://example.com/overview",
            "snippet": f"General background information about {query}.",
        },
        {
            "title": f"{query} - recent developments",
            "url": "https://example.com/news",
            "snippet": f"Summary of recent news and changes related to {query}.",
        },
        {
            "title": f"{query} - frequently asked questions",
            "url": "https://example.com/faq",
            "snippet": f"Common questions and short answers about {query}.",
        },
    ]
    return results[:max_results]


class SearchExecutor(ToolExecutor):
    """Executor for the ``web_search`` tool."""

    spec = SEARCH_SPEC

    def __init__(
        self,
        api_key: str | None = None,
        engine_id: str | None = None,
        endpoint: str = "https://www.googleapis.com/customsearch/v1",
        timeout: float = 15.0,
        max_results: int = 5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the search executor.

        Args:
            api_key: Search API key
            engine_id: Search engine (scope) identifier
            endpoint: Search API endpoint
            timeout: Request timeout in seconds
            max_results: Default number of results
            transport: Optional httpx transport (used by tests)
        """
        self._api_key = api_key
        self.engine_id = engine_id
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_results = max_results
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self.engine_id)

    async def run(self, query: str, max_results: int | None = None) -> dict[str, Any]:
        # Clamp max_results
        count = min(max(1, max_results or self.max_results), 10)

        if not self.configured:
            return self._fallback(query, count, "search credentials not configured")

        try:
            results = await self._search(query, count)
        except httpx.HTTPStatusError as e:
            logger.warning("Search returned status %d", e.response.status_code)
            return self._fallback(query, count, f"search backend returned {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning("Search request failed: %s", e)
            return self._fallback(query, count, f"search request failed: {type(e).__name__}")
        except (ValueError, AttributeError):
            logger.warning("Search returned an unreadable body")
            return self._fallback(query, count, "search backend returned a malformed body")

        return {"source": "live", "query": query, "results": results}

    async def _search(self, query: str, count: int) -> list[dict[str, str]]:
        params = {"key": self._api_key, "cx": self.engine_id, "q": query, "num": count}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.endpoint, params=params)
            response.raise_for_status()
            data = response.json()

        return [
            {
                "title": item.get("title", "No title"),
                "url": item.get("link", ""),
                "snippet": item.get("snippet", "No description"),
            }
            for item in data.get("items", [])[:count]
        ]

    def _fallback(self, query: str, count: int, reason: str) -> dict[str, Any]:
        return {
            "source": "fallback",
            "reason": reason,
            "query": query,
            "results": fallback_results(query, count),
        }
