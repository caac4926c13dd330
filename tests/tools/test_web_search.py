"""Tests for web search tool."""

import httpx
import pytest
import respx
from httpx import Response

from converge.tools.web_search import SearchExecutor, fallback_results

ENDPOINT = "https://www.googleapis.com/customsearch/v1"

LIVE_BODY = {
    "items": [
        {"title": "Python Docs", "link": "https://python.org", "snippet": "Python programming"},
        {"title": "Learn Python", "link": "https://learn.python.org", "snippet": "Free tutorials"},
    ]
}


@pytest.fixture
def live_search() -> SearchExecutor:
    return SearchExecutor(api_key="search-key", engine_id="engine-1")


class TestFallback:
    @pytest.mark.asyncio
    async def test_unconfigured_uses_fallback_without_network(self):
        search = SearchExecutor()

        with respx.mock(assert_all_called=False) as router:
            route = router.get(ENDPOINT)
            result = await search.execute({"query": "rust"}, tool_call_id="s1")

        assert not route.called
        assert result.ok
        assert result.tool_call_id == "s1"
        assert result.payload["source"] == "fallback"
        assert result.payload["reason"] == "search credentials not configured"
        assert result.payload["results"] == fallback_results("rust", 5)

    @pytest.mark.asyncio
    async def test_engine_id_alone_is_not_enough(self):
        search = SearchExecutor(engine_id="engine-1")
        payload = await search.run("rust")
        assert payload["source"] == "fallback"

    def test_fallback_is_deterministic(self):
        assert fallback_results("go", 3) == fallback_results("go", 3)
        assert len(fallback_results("go", 2)) == 2
        assert all("go" in item["title"] for item in fallback_results("go", 3))


class TestLiveSearch:
    @pytest.mark.asyncio
    @respx.mock
    async def test_successful_search(self, live_search):
        """Test web search returns mapped results."""
        route = respx.get(ENDPOINT).mock(return_value=Response(200, json=LIVE_BODY))

        result = await live_search.execute({"query": "python tutorials", "max_results": 2})

        assert result.ok
        assert result.payload["source"] == "live"
        assert result.payload["results"][0] == {
            "title": "Python Docs",
            "url": "https://python.org",
            "snippet": "Python programming",
        }
        params = route.calls[0].request.url.params
        assert params["q"] == "python tutorials"
        assert params["cx"] == "engine-1"
        assert params["key"] == "search-key"
        assert params["num"] == "2"

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_results(self, live_search):
        respx.get(ENDPOINT).mock(return_value=Response(200, json={}))

        payload = await live_search.run("xyznonexistentquery12345")

        assert payload["source"] == "live"
        assert payload["results"] == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_max_results_clamped_high(self, live_search):
        """Test that max_results is clamped to 10."""
        route = respx.get(ENDPOINT).mock(return_value=Response(200, json={}))

        await live_search.run("test", max_results=100)

        assert route.calls[0].request.url.params["num"] == "10"

    @pytest.mark.asyncio
    @respx.mock
    async def test_max_results_clamped_low(self, live_search):
        """Test that max_results minimum is 1."""
        route = respx.get(ENDPOINT).mock(return_value=Response(200, json={}))

        await live_search.run("test", max_results=-3)

        assert route.calls[0].request.url.params["num"] == "1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_falls_back(self, live_search):
        respx.get(ENDPOINT).mock(return_value=Response(403, json={"error": "quota"}))

        result = await live_search.execute({"query": "python"})

        assert result.ok
        assert result.payload["source"] == "fallback"
        assert "403" in result.payload["reason"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error_falls_back(self, live_search):
        respx.get(ENDPOINT).mock(side_effect=httpx.ConnectError("unreachable"))

        payload = await live_search.run("python")

        assert payload["source"] == "fallback"
        assert "ConnectError" in payload["reason"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body_falls_back(self, live_search):
        respx.get(ENDPOINT).mock(return_value=Response(200, text="not json"))

        payload = await live_search.run("python")

        assert payload["source"] == "fallback"


class TestValidation:
    @pytest.mark.asyncio
    async def test_missing_query(self):
        result = await SearchExecutor().execute({})

        assert not result.ok
        assert result.error_kind == "validation"
        assert "query" in result.payload["error"]

    @pytest.mark.asyncio
    async def test_wrong_type(self):
        result = await SearchExecutor().execute({"query": "x", "max_results": "many"})

        assert result.error_kind == "validation"
        assert "max_results" in result.payload["error"]

    @pytest.mark.asyncio
    async def test_unknown_field(self):
        result = await SearchExecutor().execute({"query": "x", "safe": True})

        assert result.error_kind == "validation"
