"""
Builds the configured LLM provider.
"""

from mcp_lite.config import LLMSettings
from mcp_lite.exceptions import ConfigurationError
from mcp_lite.llm.anthropic import AnthropicProvider
from mcp_lite.llm.base import LLMProvider
from mcp_lite.llm.mock import MockProvider
from mcp_lite.llm.openai import OpenAIProvider


def create_llm_provider(llm_settings: LLMSettings) -> LLMProvider:
    """
    Create an LLM provider instance from configuration.

    Args:
        llm_settings: LLM configuration object.

    Returns:
        LLM provider instance.

    Raises:
        ConfigurationError: If the provider is not supported or has no API key.
    """
    provider = llm_settings.provider.lower()

    if provider == "mock":
        return MockProvider(model=llm_settings.resolved_model())

    if provider == "google":
        raise ConfigurationError("Google provider not implemented yet")

    provider_classes = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
    }
    provider_class = provider_classes.get(provider)
    if not provider_class:
        raise ConfigurationError(f"Unknown LLM provider: {llm_settings.provider}")

    api_key = llm_settings.resolved_api_key()
    if not api_key:
        raise ConfigurationError(f"API key is required for LLM provider: {provider}")

    return provider_class(
        api_key=api_key,
        model=llm_settings.resolved_model(),
        api_base=llm_settings.api_base,
    )
