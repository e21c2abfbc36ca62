"""
AgentRelay LLM Client Base - Base class and common types for LLM clients

This module provides:
- BaseLLMClient: Abstract base class for all LLM clients
- LLMConfig: Configuration dataclass
- LLMResponse: Standardized response format
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..constants import LLM_ERROR_TEMPLATE, LLM_MODES
from ..tools.models import FunctionCall

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """
    Configuration for LLM clients.

    Attributes:
        api_key: API key for the provider
        model: Model name (e.g., "gemini-2.0-flash-001")
        mode: "oneshot" (single request, history ignored) or "chat"
            (prior turns replayed before the prompt)
        base_url: Optional base URL override for API
        temperature: Sampling temperature
        max_tokens: Maximum tokens in response
        top_p: Nucleus sampling parameter
        timeout: Per-call timeout in seconds
        max_retries: Provider-level retries (passed to SDKs that support it)
        safety_settings: Provider safety settings (Gemini)
        extra: Extra provider-specific options
    """
    api_key: Optional[str] = None
    model: str = "gemini-2.0-flash-001"
    mode: str = "chat"
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 1.0
    timeout: float = 60
    max_retries: int = 2
    safety_settings: Optional[List[Dict[str, Any]]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.mode not in LLM_MODES:
            raise ValueError(f"Invalid LLM mode '{self.mode}'. Use one of: {', '.join(LLM_MODES)}")

    def generation_config(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "max_output_tokens": self.max_tokens,
            "top_p": self.top_p,
        }


@dataclass
class LLMResponse:
    """
    Standardized LLM response format.

    ``function_call`` is set when the model asks for a tool; ``text`` may
    still carry accompanying prose.
    """
    text: str = ""
    function_call: Optional[FunctionCall] = None
    model: Optional[str] = None

    # Raw response for debugging
    raw_response: Optional[Any] = None

    @property
    def has_function_call(self) -> bool:
        return self.function_call is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "function_call": self.function_call.to_dict() if self.function_call else None,
            "model": self.model,
        }


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Subclasses implement ``_call_api``. ``generate_content`` adds the call
    timeout and converts any backend failure into a text response, so a
    broken provider never aborts a conversation turn.

    Example:
        class MyClient(BaseLLMClient):
            provider = "mine"

            async def _call_api(self, prompt, tools, context, history):
                ...
                return LLMResponse(text="hi")
    """

    # Provider name (override in subclasses)
    provider: str = "unknown"

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        """
        Initialize the client.

        Args:
            config: LLMConfig instance
            **kwargs: Override config values
        """
        if config is None:
            config = LLMConfig(**kwargs)
        else:
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)

        self.config = config
        self._client = None  # Lazy-initialized SDK client

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def mode(self) -> str:
        return self.config.mode

    @abstractmethod
    async def _call_api(
        self,
        prompt: str,
        tools: Optional[List[Dict[str, Any]]],
        context: Optional[str],
        history: List[Dict[str, Any]],
    ) -> LLMResponse:
        """Make the actual API call (provider-specific)"""

    async def generate_content(
        self,
        prompt: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        context: Optional[str] = None,
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> LLMResponse:
        """
        Generate the next model turn.

        Implements LLMClientProtocol.

        Returns:
            LLMResponse. On failure or timeout the response text describes
            the error and no function call is set.
        """
        try:
            return await asyncio.wait_for(
                self._call_api(prompt, tools, context, list(history or [])),
                timeout=self.config.timeout,
            )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            error = f"timed out after {self.config.timeout}s"
            logger.error(f"{self.provider} call {error} (model={self.config.model})")
        except Exception as e:
            error = str(e)
            logger.error(
                f"{self.provider} call failed (model={self.config.model}, mode={self.config.mode}): {e}",
                exc_info=True,
            )
        return LLMResponse(
            text=LLM_ERROR_TEMPLATE.format(
                provider=self.provider,
                model=self.config.model,
                mode=self.config.mode,
                error=error,
            ),
            model=self.config.model,
        )

    async def close(self):
        """Close the client and release resources"""
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def select_history(self, history: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """History sent to the provider: replayed in chat mode, ignored in oneshot mode"""
        if self.config.mode == "chat":
            return history
        return []
