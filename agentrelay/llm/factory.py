"""
LLM client factory - pick a backend from a provider name
"""

from typing import Optional

from ..exceptions import ConfigurationError
from .base import BaseLLMClient, LLMConfig
from .gemini_client import GeminiClient
from .litellm_client import LiteLLMClient

GEMINI_PROVIDERS = ("gemini", "google")


def create_llm_client(config: LLMConfig, provider: Optional[str] = None) -> BaseLLMClient:
    """
    Create an LLM client.

    Args:
        config: LLMConfig for the client
        provider: "gemini" (native SDK, default) or any litellm provider name
            ("openai", "anthropic", "azure", "ollama"); "litellm/<name>" is
            accepted too
    """
    provider = (provider or "gemini").lower()
    if provider in GEMINI_PROVIDERS:
        return GeminiClient(config=config)
    if provider.startswith("litellm"):
        _, _, provider = provider.partition("/")
        if not provider:
            raise ConfigurationError("litellm providers are given as 'litellm/<provider>'")
    return LiteLLMClient(config=config, provider_name=provider)
