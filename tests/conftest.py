"""Shared fixtures: a scripted LLM client that records every request."""

import copy
from typing import Any, Dict, List, Optional

import pytest

from agentrelay.llm.base import LLMResponse
from agentrelay.tools.models import FunctionCall


class ScriptedLLM:
    """
    LLM stub that replays a script.

    Script items:
        str            -> text response
        FunctionCall   -> function call response (empty text)
        LLMResponse    -> returned as is
        Exception      -> raised
        callable       -> called with the request dict, its return is used

    When the script runs out ``default`` is returned as text.
    """

    def __init__(self, *script: Any, default: str = "ok"):
        self.script: List[Any] = list(script)
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def generate_content(
        self,
        prompt: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        context: Optional[str] = None,
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> LLMResponse:
        request = {
            "prompt": prompt,
            "tools": tools,
            "context": context,
            "history": copy.deepcopy(history),
        }
        self.calls.append(request)
        if not self.script:
            return LLMResponse(text=self.default)

        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item) and not isinstance(item, FunctionCall):
            item = item(request)
        if isinstance(item, FunctionCall):
            return LLMResponse(text="", function_call=item)
        if isinstance(item, LLMResponse):
            return item
        return LLMResponse(text=item)

    @property
    def prompts(self) -> List[str]:
        return [call["prompt"] for call in self.calls]


@pytest.fixture
def make_llm():
    """Factory fixture: make_llm("hi", FunctionCall("tool", {...}), ...)"""
    return ScriptedLLM
