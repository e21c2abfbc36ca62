"""
AgentRelay LLM - LLM client contract and backends
"""

from .base import BaseLLMClient, LLMConfig, LLMResponse
from .gemini_client import GeminiClient
from .litellm_client import LiteLLMClient
from .factory import create_llm_client

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "GeminiClient",
    "LiteLLMClient",
    "create_llm_client",
]
