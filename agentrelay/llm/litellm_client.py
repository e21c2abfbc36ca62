"""
AgentRelay LiteLLM Client - Any-provider backend powered by litellm

Translates the Gemini-shaped request used by agents (function declarations,
"user"/"model" history with parts) into OpenAI-format chat messages and
tools, so OpenAI, Anthropic, Azure, Ollama and friends can drive the same
function-call loop.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from ..constants import EMPTY_RESPONSE_MESSAGE
from ..tools.models import FunctionCall
from ..tools.schema import to_json_schema
from .base import BaseLLMClient, LLMConfig, LLMResponse

logger = logging.getLogger(__name__)

# Provider -> default environment variable for API key
_PROVIDER_ENV_VARS: Dict[str, Optional[str]] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "ollama": None,
}


def build_litellm_model_string(provider: str, model: str) -> str:
    """Map provider + model to the litellm model string.

    See https://docs.litellm.ai/docs/providers
    """
    provider = provider.lower()
    if provider == "openai" or "/" in model:
        return model
    return f"{provider}/{model}"


def to_openai_tools(tools: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    """Convert [{"function_declarations": [...]}] into OpenAI tool specs.

    Google Search grounding has no litellm equivalent and is skipped.
    """
    converted: List[Dict[str, Any]] = []
    for entry in tools or []:
        for declaration in entry.get("function_declarations", []):
            converted.append({
                "type": "function",
                "function": {
                    "name": declaration["name"],
                    "description": declaration.get("description", ""),
                    "parameters": to_json_schema(declaration.get("parameters")),
                },
            })
        if "google_search" in entry:
            logger.warning("google_search is not supported through litellm; ignoring")
    return converted or None


def to_openai_messages(
    prompt: str,
    context: Optional[str],
    history: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    if context:
        messages.append({"role": "system", "content": context})
    for entry in history:
        text = "".join(part.get("text", "") for part in entry.get("parts", []))
        role = "assistant" if entry.get("role") == "model" else "user"
        messages.append({"role": role, "content": text})
    messages.append({"role": "user", "content": prompt})
    return messages


class LiteLLMClient(BaseLLMClient):
    """
    Unified LLM client powered by litellm.

    Example:
        config = LLMConfig(model="gpt-4o-mini", api_key="sk-xxx")
        client = LiteLLMClient(config=config, provider_name="openai")
        response = await client.generate_content("Hello!")
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        provider_name: str = "openai",
        **kwargs,
    ):
        super().__init__(config, **kwargs)

        self.provider = provider_name.lower()
        self._litellm_model = build_litellm_model_string(self.provider, self.config.model)

        # Resolve API key: explicit config > env var
        api_key = self.config.api_key
        if not api_key:
            env_var = _PROVIDER_ENV_VARS.get(self.provider)
            if env_var:
                api_key = os.environ.get(env_var)

        self._base_kwargs: Dict[str, Any] = {"num_retries": self.config.max_retries}
        if self.config.base_url:
            self._base_kwargs["api_base"] = self.config.base_url
        if api_key:
            self._base_kwargs["api_key"] = api_key
        self._base_kwargs.update(self.config.extra)

        logger.debug(
            f"LiteLLMClient initialized: provider={self.provider}, "
            f"litellm_model={self._litellm_model}"
        )

    async def _call_api(
        self,
        prompt: str,
        tools: Optional[List[Dict[str, Any]]],
        context: Optional[str],
        history: List[Dict[str, Any]],
    ) -> LLMResponse:
        """Make a call via litellm.acompletion."""
        import litellm

        messages = to_openai_messages(prompt, context, self.select_history(history))
        params: Dict[str, Any] = {
            "model": self._litellm_model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "top_p": self.config.top_p,
            **self._base_kwargs,
        }

        openai_tools = to_openai_tools(tools)
        if openai_tools:
            params["tools"] = openai_tools
            params["tool_choice"] = "auto"

        logger.debug(
            f"[LiteLLM] model={self._litellm_model}, "
            f"tools={len(openai_tools) if openai_tools else 0}, messages={len(messages)}"
        )

        response = await litellm.acompletion(**params)
        message = response.choices[0].message

        function_call = None
        if message.tool_calls:
            tc = message.tool_calls[0]
            arguments = tc.function.arguments
            if isinstance(arguments, str):
                arguments = json.loads(arguments) if arguments.strip() else {}
            function_call = FunctionCall(name=tc.function.name, args=arguments or {})
            if len(message.tool_calls) > 1:
                logger.warning(
                    f"Model requested {len(message.tool_calls)} tool calls; only '{tc.function.name}' is executed"
                )

        text = message.content or ""
        if not text and function_call is None:
            text = EMPTY_RESPONSE_MESSAGE

        return LLMResponse(
            text=text,
            function_call=function_call,
            model=self._litellm_model,
            raw_response=response,
        )
