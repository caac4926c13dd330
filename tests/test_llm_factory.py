"""Tests for the provider adapter factory."""

import pytest

from converge.config.schema import DEFAULT_MODELS, ProviderConfig
from converge.llm.anthropic import AnthropicAdapter
from converge.llm.factory import create_adapter
from converge.llm.gemini import GeminiAdapter
from converge.llm.openai import OpenAIAdapter


def test_create_openai_adapter_by_default():
    adapter = create_adapter(ProviderConfig(api_key="sk-test"))

    assert isinstance(adapter, OpenAIAdapter)
    assert adapter.model == DEFAULT_MODELS["openai"]
    assert str(adapter.client.base_url).startswith("https://api.openai.com")


@pytest.mark.parametrize(
    "name, adapter_cls",
    [("openai", OpenAIAdapter), ("anthropic", AnthropicAdapter), ("gemini", GeminiAdapter)],
)
def test_create_adapter_per_provider(name, adapter_cls):
    adapter = create_adapter(ProviderConfig(name=name, model="some-model"), api_key="k")

    assert isinstance(adapter, adapter_cls)
    assert adapter.model == "some-model"


def test_config_settings_are_passed_through():
    config = ProviderConfig(
        name="anthropic",
        api_key="sk-ant",
        base_url="http://proxy:9000",
        timeout=30,
        temperature=0.1,
        max_tokens=256,
        retry_backoff=0.25,
    )

    adapter = create_adapter(config)

    assert adapter.temperature == 0.1
    assert adapter.max_tokens == 256
    assert adapter.retry_backoff == 0.25
    assert str(adapter.client.base_url).startswith("http://proxy:9000")
    assert adapter.client.timeout.read == 30


def test_explicit_api_key_overrides_config():
    adapter = create_adapter(ProviderConfig(name="anthropic", api_key="from-config"), api_key="from-env")
    assert adapter.client.headers["x-api-key"] == "from-env"


def test_adapter_without_key_is_created():
    # Missing credentials surface on the first model call, not at construction
    adapter = create_adapter(ProviderConfig(name="gemini"))
    assert "x-goog-api-key" not in adapter.client.headers


def test_unknown_provider_rejected():
    config = ProviderConfig.model_construct(name="mistral")
    with pytest.raises(ValueError, match="Unknown provider"):
        create_adapter(config)
