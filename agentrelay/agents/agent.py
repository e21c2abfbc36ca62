"""
AgentRelay Agent - Single agent driven by the function-call resolution loop

The loop is a small state machine::

    AWAITING_MODEL --function_call--> EXECUTING_TOOL --result--> AWAITING_MODEL
    AWAITING_MODEL --text only------> DONE
    EXECUTING_TOOL --routing signal-> DONE (signal handed to the caller)
    any state      --fuel exhausted-> ABORTED

Unknown tools, tool exceptions and tool timeouts never escape the loop: they
are turned into text and shown to the model so it can recover.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..constants import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOOL_TIMEOUT,
    LOOP_EXHAUSTED_MESSAGE,
    TASK_ERROR_TEMPLATE,
    TOOL_ERROR_TEMPLATE,
    TOOL_NOT_FOUND_TEMPLATE,
)
from ..log import get_logger
from ..models import AgentResponse, LoopState
from ..protocols import LLMClientProtocol
from ..tools.decorator import as_tool_definition
from ..tools.models import FunctionCall, ToolDefinition
from ..tools.registry import ToolRegistry
from ..tools.signals import RoutingSignal, is_routing_signal


@dataclass
class LoopConfig:
    """Function-call loop limits."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    """Maximum LLM calls per task or message."""
    tool_timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT
    """Per-tool execution timeout in seconds (None disables it)."""

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")


@dataclass
class ToolOutcome:
    """Result of executing one function call"""
    name: str
    found: bool = True
    result: Any = None
    error: Optional[str] = None

    @property
    def signal(self) -> Optional[RoutingSignal]:
        return self.result if is_routing_signal(self.result) else None

    @property
    def payload(self) -> str:
        """JSON text fed back to the model"""
        value = self.error if self.error is not None else self.result
        return json.dumps(value, ensure_ascii=False, default=str)


class Agent:
    """
    An LLM-backed agent with a role, instructions and tools.

    Example:
        agent = Agent(
            role="Researcher",
            objective="Answer questions about cities",
            context="You are a concise assistant.",
            llm=GeminiClient(model="gemini-2.0-flash-001"),
            tools=[weather_tool],
        )
        answer = await agent.execute_task("What's the weather in Lisbon?")

    Not safe for concurrent use: callers serialize calls on one instance.
    """

    def __init__(
        self,
        role: str,
        llm: LLMClientProtocol,
        objective: str = "",
        context: str = "",
        task: str = "",
        tools: Optional[Iterable[Any]] = None,
        enable_google_search: bool = False,
        loop_config: Optional[LoopConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not role:
            raise ValueError("Agent role is required")
        if llm is None:
            raise ValueError("llm is required")

        self.role = role
        self.objective = objective
        self.context = context or ""
        self.task = task
        self.llm = llm
        self.tools = ToolRegistry(as_tool_definition(t) for t in (tools or []))
        self.enable_google_search = enable_google_search
        self.loop_config = loop_config or LoopConfig()
        self.logger = logger or get_logger(f"agent.{role}")
        self.loop_state: Optional[LoopState] = None
        self._prompt = ""

        if self.tools and self.enable_google_search:
            self.logger.warning(
                f"{self.log_tag} Google Search disabled: function calling and search "
                "cannot be combined in one request"
            )

    @property
    def log_tag(self) -> str:
        """Prefix for this agent's log lines"""
        return f"[{self.role}]"

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def add_tool(self, tool: Any) -> None:
        self.tools.register(as_tool_definition(tool))

    def prepare_tools_for_llm(self) -> Optional[List[Dict[str, Any]]]:
        """
        Shape the tools parameter of the LLM request.

        Function declarations win over Google Search when both are present.
        """
        if len(self.tools):
            return [{"function_declarations": self.tools.get_declarations()}]
        if self.enable_google_search:
            return [{"google_search": {}}]
        return None

    def find_tool(self, name: str) -> Optional[ToolDefinition]:
        return self.tools.get_tool(name)

    async def execute_function_call(self, function_call: FunctionCall) -> ToolOutcome:
        """Run one requested tool. Never raises."""
        tool = self.find_tool(function_call.name)
        if tool is None:
            error = TOOL_NOT_FOUND_TEMPLATE.format(name=function_call.name)
            self.logger.warning(f"{self.log_tag} {error}")
            return ToolOutcome(name=function_call.name, found=False, error=error)

        args = function_call.args or {}
        self.logger.info(f"{self.log_tag} Executing tool '{tool.name}' with args: {args}")
        try:
            if self.loop_config.tool_timeout:
                result = await asyncio.wait_for(tool.execute(args), timeout=self.loop_config.tool_timeout)
            else:
                result = await tool.execute(args)
        except asyncio.TimeoutError:
            message = f"timed out after {self.loop_config.tool_timeout}s"
            self.logger.error(f"{self.log_tag} Tool '{tool.name}' {message}")
            return ToolOutcome(name=tool.name, error=TOOL_ERROR_TEMPLATE.format(name=tool.name, error=message))
        except Exception as e:
            self.logger.error(f"{self.log_tag} Tool '{tool.name}' failed: {e}", exc_info=True)
            return ToolOutcome(name=tool.name, error=TOOL_ERROR_TEMPLATE.format(name=tool.name, error=e))

        if is_routing_signal(result):
            self.logger.info(f"{self.log_tag} Tool '{tool.name}' emitted signal {result.signal_type.value}")
        return ToolOutcome(name=tool.name, result=result)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def extend_context(self, extra: str) -> None:
        """Append instructions to the agent's context"""
        if extra:
            self.context = f"{self.context}\n\n{extra}" if self.context else extra

    async def _run_loop(self, context: str) -> AgentResponse:
        tools = self.prepare_tools_for_llm()
        self.loop_state = LoopState.AWAITING_MODEL
        turns = 0

        for _ in range(self.loop_config.max_iterations):
            prompt, history = self._current_request()
            response = await self.llm.generate_content(
                prompt=prompt, tools=tools, context=context, history=history
            )
            turns += 1

            function_call = getattr(response, "function_call", None)
            text = getattr(response, "text", "") or ""
            if function_call is None:
                self.loop_state = LoopState.DONE
                await self._record_final(text)
                return AgentResponse(text=text, role=self.role, turns=turns, state=self.loop_state)

            self.loop_state = LoopState.EXECUTING_TOOL
            self.logger.debug(f"{self.log_tag} Model requested '{function_call.name}' (turn {turns})")
            outcome = await self.execute_function_call(function_call)

            if outcome.signal is not None:
                self.loop_state = LoopState.DONE
                await self._record_signal(text, function_call)
                return AgentResponse(
                    text=text, role=self.role, signal=outcome.signal, turns=turns, state=LoopState.DONE
                )

            await self._record_tool_step(text, function_call, outcome)
            self.loop_state = LoopState.AWAITING_MODEL

        self.loop_state = LoopState.ABORTED
        self.logger.error(
            f"{self.log_tag} Function-call loop exceeded {self.loop_config.max_iterations} iterations"
        )
        await self._record_final(LOOP_EXHAUSTED_MESSAGE)
        return AgentResponse(text=LOOP_EXHAUSTED_MESSAGE, role=self.role, turns=turns, state=LoopState.ABORTED)

    # Hooks: the task agent keeps a growing prompt; ChatAgent overrides them
    # to keep a turn-by-turn history instead.

    def _current_request(self) -> Tuple[str, Optional[List[Dict[str, Any]]]]:
        return self._prompt, None

    async def _record_tool_step(self, text: str, function_call: FunctionCall, outcome: ToolOutcome) -> None:
        if not outcome.found:
            self._prompt += f"\n\n**Function Call Error:**\nError: {outcome.error}"
        else:
            self._prompt += (
                f"\n\n**Function Call Result:**\nFunction '{outcome.name}' result: {outcome.payload}"
            )

    async def _record_signal(self, text: str, function_call: FunctionCall) -> None:
        pass

    async def _record_final(self, text: str) -> None:
        pass

    async def run(self, task: Optional[str] = None) -> AgentResponse:
        """Execute a task and return the full AgentResponse"""
        if task is not None:
            self.task = task
        self.logger.info(f"{self.log_tag} Executing task: {self.task}")
        self._prompt = f"**System Instructions:**\n{self.context}\n\n**User Task:**\n{self.task}"
        try:
            return await self._run_loop(self.context)
        except Exception as e:
            self.logger.error(f"{self.log_tag} Task failed: {e}", exc_info=True)
            return AgentResponse(text=TASK_ERROR_TEMPLATE.format(error=e), role=self.role, state=LoopState.ABORTED)

    async def execute_task(self, task: Optional[str] = None) -> str:
        """Execute a task (or the current ``task``) and return the final text"""
        response = await self.run(task)
        return response.text

    def __repr__(self) -> str:
        return f"{type(self).__name__}(role={self.role!r}, tools={self.tools.get_tool_names()})"
