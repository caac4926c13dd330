"""Shared HTTP plumbing for provider adapters.

Every adapter talks to its backend with one ``POST`` per turn. This base
class owns the transport, the retry policy and the mapping of HTTP failures
onto the converge error taxonomy, so subclasses only supply headers, the
request payload and the response parser.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

from converge.errors import AuthFailure, TransportFailure, ValidationFailure, excerpt
from converge.llm.client import Message, NormalizedTurn, ProviderRequest

if TYPE_CHECKING:
    from converge.tools.base import ToolSpec

logger = logging.getLogger(__name__)

AUTH_STATUSES = {401, 403}
RATE_LIMIT_STATUS = 429
MAX_RETRY_AFTER = 10.0
# Stands in for a turn that produced no text; backends reject empty messages
EMPTY_TURN_TEXT = "(no response)"


class HTTPProviderAdapter(ABC):
    """Base adapter for JSON-over-HTTP model backends.

    Retry policy: one retry for timeouts, connection errors and 5xx
    responses; one retry after a backoff for 429; none for anything else.
    """

    name = "http"
    default_base_url = ""
    requires_api_key = True

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str | None = None,
        timeout: float = 120,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        retry_backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the adapter.

        Args:
            api_key: Provider API key (never logged)
            model: Model name
            base_url: Override for the provider endpoint
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
            max_tokens: Default max tokens for responses
            retry_backoff: Delay before retrying a transient failure
            transport: Optional httpx transport (used by tests)
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry_backoff = retry_backoff
        self._has_key = bool(api_key)

        headers = {"content-type": "application/json"}
        if api_key:
            headers.update(self.auth_headers(api_key))

        self.client = httpx.AsyncClient(
            base_url=base_url or self.default_base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @abstractmethod
    def auth_headers(self, api_key: str) -> dict[str, str]:
        """Headers that authenticate a request."""

    @abstractmethod
    def serialize_message(self, message: Message) -> dict[str, Any]:
        """Encode one internal message in the provider's outgoing format."""

    @abstractmethod
    def build_request(
        self, messages: list[Message] | tuple[Message, ...], tool_specs: tuple[ToolSpec, ...]
    ) -> ProviderRequest:
        """Translate the conversation and tool specs into a wire request."""

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> NormalizedTurn:
        """Translate a decoded response body into a normalized turn.

        Raises:
            ValidationFailure: If the body does not have the expected shape
        """

    async def converse(
        self, messages: list[Message] | tuple[Message, ...], tool_specs: tuple[ToolSpec, ...]
    ) -> NormalizedTurn:
        """Request one model turn.

        Args:
            messages: Full conversation log
            tool_specs: Tools the model may call

        Returns:
            NormalizedTurn with text and/or tool calls
        """
        if self.requires_api_key and not self._has_key:
            raise AuthFailure(f"No API key configured for {self.name}")

        request = self.build_request(messages, tool_specs)
        response = await self._send(request)

        try:
            data = response.json()
        except ValueError as e:
            raise ValidationFailure(
                f"{self.name} returned a malformed response body",
                status=response.status_code,
                body_excerpt=excerpt(response.text),
            ) from e

        if not isinstance(data, dict):
            raise ValidationFailure(
                f"{self.name} returned an unexpected response body",
                status=response.status_code,
                body_excerpt=excerpt(response.text),
            )

        try:
            turn = self.parse_response(data)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise malformed(self.name, f"unexpected shape ({type(e).__name__}: {e})", data) from e
        logger.debug(
            "%s turn: %d tool call(s), finish_reason=%s",
            self.name,
            len(turn.tool_calls),
            turn.finish_reason,
        )
        return turn

    async def _send(self, request: ProviderRequest) -> httpx.Response:
        """POST the request, retrying a transient failure at most once."""
        attempts = 2
        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1

            try:
                response = await self.client.post(request.path, json=request.payload)
            except httpx.TimeoutException as e:
                if last_attempt:
                    raise TransportFailure(f"{self.name} request timed out") from e
                logger.warning("%s request timed out, retrying in %ss", self.name, self.retry_backoff)
                await asyncio.sleep(self.retry_backoff)
                continue
            except httpx.TransportError as e:
                if last_attempt:
                    raise TransportFailure(f"{self.name} request failed: {e}") from e
                logger.warning("%s request failed (%s), retrying in %ss", self.name, e, self.retry_backoff)
                await asyncio.sleep(self.retry_backoff)
                continue

            status = response.status_code
            if status < 400:
                return response

            if status in AUTH_STATUSES:
                logger.error("%s rejected credentials (status %d)", self.name, status)
                raise AuthFailure(
                    f"{self.name} rejected the credentials",
                    status=status,
                    body_excerpt=excerpt(response.text),
                )

            if status == RATE_LIMIT_STATUS or status >= 500:
                if last_attempt:
                    logger.error("%s failed with status %d after retry", self.name, status)
                    raise TransportFailure(
                        f"{self.name} request failed",
                        status=status,
                        body_excerpt=excerpt(response.text),
                    )
                delay = self._retry_delay(response)
                logger.warning("%s returned %d, retrying in %ss", self.name, status, delay)
                await asyncio.sleep(delay)
                continue

            logger.error("%s rejected the request (status %d)", self.name, status)
            raise ValidationFailure(
                f"{self.name} rejected the request",
                status=status,
                body_excerpt=excerpt(response.text),
            )

        raise AssertionError("unreachable")

    def _retry_delay(self, response: httpx.Response) -> float:
        """Backoff before a retry, honouring Retry-After on rate limits."""
        if response.status_code != RATE_LIMIT_STATUS:
            return self.retry_backoff
        retry_after = response.headers.get("retry-after")
        try:
            delay = float(retry_after) if retry_after else self.retry_backoff * 2
        except ValueError:
            delay = self.retry_backoff * 2
        return min(max(delay, 0.0), MAX_RETRY_AFTER)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def malformed(provider: str, detail: str, data: Any) -> ValidationFailure:
    """Build the error raised when a response body has an unexpected shape."""
    return ValidationFailure(
        f"{provider} returned a malformed response: {detail}",
        body_excerpt=excerpt(repr(data)),
    )
