"""
AgentRelay Gemini Client - Google Gemini backend via google-generativeai

Supports:
- oneshot mode (single request) and chat mode (history replayed)
- function declarations and Google Search grounding tools
- safety settings, blocked/empty response handling
"""

import logging
import os
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from ..constants import BLOCKED_RESPONSE_MESSAGE, EMPTY_RESPONSE_MESSAGE
from ..tools.models import FunctionCall
from .base import BaseLLMClient, LLMConfig, LLMResponse

logger = logging.getLogger(__name__)


DEFAULT_SAFETY_SETTINGS: List[Dict[str, str]] = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]


def _to_plain(value: Any) -> Any:
    """Convert proto map/repeated values from function call args to dicts/lists"""
    if isinstance(value, Mapping):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (str, bytes)):
        return value
    if hasattr(value, "__iter__"):
        return [_to_plain(v) for v in value]
    return value


class GeminiClient(BaseLLMClient):
    """
    Google Gemini API client.

    The client keeps no conversation state: in chat mode the caller's history
    is sent on every call, so one instance can be shared by many sessions.

    Example:
        client = GeminiClient(model="gemini-2.0-flash-001", mode="chat")
        response = await client.generate_content(
            "What's the weather in Lisbon?",
            tools=[{"function_declarations": [...]}],
            context="You are a helpful assistant.",
        )
    """

    provider = "Gemini"

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        """
        Initialize Gemini client.

        Args:
            config: LLMConfig instance
            api_key: Google API key (or set GOOGLE_API_KEY env var)
            **kwargs: Additional config options
        """
        if config is None and "api_key" not in kwargs:
            kwargs["api_key"] = os.environ.get("GOOGLE_API_KEY")
        super().__init__(config, **kwargs)

    def _get_client(self):
        """Get or create the configured google.generativeai module"""
        if self._client is None:
            import google.generativeai as genai

            genai.configure(api_key=self.config.api_key)
            self._client = genai
        return self._client

    def _build_contents(self, prompt: str, history: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        contents = [
            {"role": entry["role"], "parts": list(entry.get("parts", []))}
            for entry in self.select_history(history)
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        return contents

    async def _call_api(
        self,
        prompt: str,
        tools: Optional[List[Dict[str, Any]]],
        context: Optional[str],
        history: List[Dict[str, Any]],
    ) -> LLMResponse:
        genai = self._get_client()

        model_kwargs: Dict[str, Any] = {
            "model_name": self.config.model,
            "generation_config": self.config.generation_config(),
            "safety_settings": self.config.safety_settings or DEFAULT_SAFETY_SETTINGS,
        }
        if context:
            model_kwargs["system_instruction"] = context
        if tools:
            model_kwargs["tools"] = tools

        model = genai.GenerativeModel(**model_kwargs)
        response = await model.generate_content_async(self._build_contents(prompt, history))
        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        candidates = list(getattr(response, "candidates", None) or [])
        if not candidates:
            feedback = getattr(response, "prompt_feedback", None)
            block_reason = getattr(feedback, "block_reason", None) if feedback else None
            if block_reason:
                return LLMResponse(
                    text=BLOCKED_RESPONSE_MESSAGE.format(reason=getattr(block_reason, "name", block_reason)),
                    model=self.config.model,
                    raw_response=response,
                )
            return LLMResponse(text=EMPTY_RESPONSE_MESSAGE, model=self.config.model, raw_response=response)

        content = getattr(candidates[0], "content", None)
        parts = list(getattr(content, "parts", None) or [])

        texts: List[str] = []
        function_call: Optional[FunctionCall] = None
        for part in parts:
            fc = getattr(part, "function_call", None)
            if fc is not None and getattr(fc, "name", ""):
                if function_call is None:
                    function_call = FunctionCall(
                        name=fc.name,
                        args=_to_plain(fc.args) if fc.args else {},
                    )
                else:
                    logger.warning(f"Ignoring additional function call '{fc.name}' in the same turn")
                continue
            text = getattr(part, "text", "")
            if text:
                texts.append(text)

        text = "\n".join(texts)
        if not text and function_call is None:
            text = EMPTY_RESPONSE_MESSAGE

        return LLMResponse(
            text=text,
            function_call=function_call,
            model=self.config.model,
            raw_response=response,
        )
