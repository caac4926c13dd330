"""Factory function for creating provider adapters from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from converge.llm.anthropic import AnthropicAdapter
from converge.llm.gemini import GeminiAdapter
from converge.llm.openai import OpenAIAdapter

if TYPE_CHECKING:
    from converge.config.schema import ProviderConfig
    from converge.llm.base import HTTPProviderAdapter

ADAPTERS: dict[str, type[HTTPProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "gemini": GeminiAdapter,
}


def create_adapter(config: ProviderConfig, api_key: str | None = None) -> HTTPProviderAdapter:
    """Create a provider adapter based on configuration.

    Args:
        config: Provider section of the configuration
        api_key: Credential override (takes precedence over ``config.api_key``)

    Returns:
        An adapter for the configured provider

    Raises:
        ValueError: If the provider is not recognised
    """
    try:
        adapter_cls = ADAPTERS[config.name]
    except KeyError:
        raise ValueError(f"Unknown provider: {config.name}") from None

    return adapter_cls(
        api_key=api_key or config.api_key,
        model=config.resolved_model,
        base_url=config.base_url,
        timeout=config.timeout,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        retry_backoff=config.retry_backoff,
    )
