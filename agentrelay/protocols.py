"""
AgentRelay Protocols - Abstract interfaces for dependency injection

Agents only depend on these contracts, so any LLM backend (or a test stub)
can be plugged in.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Abstract interface for LLM clients

    Example:
        class EchoLLM:
            async def generate_content(self, prompt, tools=None, context=None, history=None):
                return LLMResponse(text=prompt)
    """

    async def generate_content(
        self,
        prompt: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        context: Optional[str] = None,
        history: Optional[List[Dict[str, Any]]] = None,
    ) -> Any:
        """
        Generate the next model turn.

        Args:
            prompt: The new user-side message
            tools: Tool declarations shaped by the agent
                ([{"function_declarations": [...]}] or [{"google_search": {}}])
            context: System instructions
            history: Prior turns as [{"role": "user"|"model", "parts": [{"text": ...}]}]

        Returns:
            LLMResponse with ``text`` and an optional ``function_call``
        """
        ...


@runtime_checkable
class OrchestratorProtocol(Protocol):
    """
    Anything that turns one task into one answer by running several agents
    (SequentialAgentChain, HierarchicalAgentOrchestrator).
    """

    async def run(self, task: str) -> Any:
        ...
