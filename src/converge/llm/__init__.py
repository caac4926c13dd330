"""Provider adapters.

Every adapter turns the conversation into one provider-specific request and
the provider's reply into a :class:`NormalizedTurn`, so the agent loop never
sees wire formats.
"""

from .anthropic import AnthropicAdapter
from .base import HTTPProviderAdapter
from .client import Message, NormalizedTurn, ProviderAdapter, ProviderRequest, ToolCallRequest
from .factory import create_adapter
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter

__all__ = [
    "AnthropicAdapter",
    "GeminiAdapter",
    "HTTPProviderAdapter",
    "Message",
    "NormalizedTurn",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderRequest",
    "ToolCallRequest",
    "create_adapter",
]
