"""
AgentRelay ChatAgent - Conversational agent with history, memory and delegation

On top of the function-call loop a ChatAgent keeps:

- the ordered conversation history (replayed to the LLM every call)
- optional persistence tracks: conversation, facts and summaries
- optional specialist delegation through ``delegate_task_to_specialist``
- optional automatic fact/summary extraction after each turn

Memory is best-effort: without an adapter every memory call returns its
empty sentinel, and adapter failures are logged instead of raised.
"""

import json
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..constants import (
    FUNCTION_CALL_PLACEHOLDER,
    ROLE_MODEL,
    ROLE_USER,
    TASK_ERROR_TEMPLATE,
)
from ..memory.base import (
    ConversationMemoryAdapter,
    FactMemoryAdapter,
    MemoryAdapter,
    SummaryMemoryAdapter,
)
from ..memory.curator import MemoryCurator
from ..models import AgentResponse, ConversationMessage, LoopState, SummaryRecord
from ..protocols import LLMClientProtocol
from ..tools.models import FunctionCall
from .agent import Agent, LoopConfig, ToolOutcome
from .delegation import create_delegation_tool
from .registry import AgentRegistry, SpecialistConfigLike


def _summary_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return SummaryRecord.coerce(value).content


def _summary_records(values: Any) -> List[SummaryRecord]:
    return [SummaryRecord.coerce(value) for value in values or []]


class ChatAgent(Agent):
    """
    Conversational agent.

    Example:
        agent = ChatAgent(
            role="Assistant",
            objective="Help the user plan trips",
            context="You are a friendly travel assistant.",
            llm=GeminiClient(model="gemini-2.0-flash-001", mode="chat"),
            conversation_memory=SQLiteConversationMemoryAdapter("chat.db"),
            fact_memory=SQLiteFactMemoryAdapter("chat.db"),
        )
        response = await agent.process_user_message("Hi, I'm Ana")
        print(response.text)
    """

    def __init__(
        self,
        role: str,
        llm: LLMClientProtocol,
        objective: str = "",
        context: str = "",
        tools: Optional[Iterable[Any]] = None,
        enable_google_search: bool = False,
        conversation_memory: Optional[ConversationMemoryAdapter] = None,
        fact_memory: Optional[FactMemoryAdapter] = None,
        summary_memory: Optional[SummaryMemoryAdapter] = None,
        chat_id: Optional[str] = None,
        auto_manage_fact_memory: bool = False,
        auto_manage_summary_memory: bool = False,
        memory_llm: Optional[LLMClientProtocol] = None,
        enable_specialist_delegation: bool = False,
        specialist_agents_config: Optional[Mapping[str, SpecialistConfigLike]] = None,
        agent_registry: Optional[AgentRegistry] = None,
        loop_config: Optional[LoopConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(
            role=role,
            llm=llm,
            objective=objective,
            context=context,
            tools=tools,
            enable_google_search=enable_google_search,
            loop_config=loop_config,
            logger=logger,
        )
        self.conversation_memory = conversation_memory
        self.fact_memory = fact_memory
        self.summary_memory = summary_memory

        has_memory = any(m is not None for m in (conversation_memory, fact_memory, summary_memory))
        self.chat_id: Optional[str] = chat_id or (str(uuid.uuid4()) if has_memory else None)

        self.conversation_history: List[ConversationMessage] = []
        self._history_loaded = conversation_memory is None

        self.auto_manage_fact_memory = auto_manage_fact_memory
        self.auto_manage_summary_memory = auto_manage_summary_memory
        self._curator = MemoryCurator(memory_llm or llm, logger=self.logger)

        self.agent_registry = agent_registry
        self.delegation_enabled = False
        if enable_specialist_delegation:
            self.enable_delegation(specialist_agents_config, agent_registry)

    @property
    def log_tag(self) -> str:
        # Set after Agent.__init__, which may already log
        chat_id = getattr(self, "chat_id", None)
        return f"[{self.role} chat={chat_id}]" if chat_id else f"[{self.role}]"

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def process_user_message(self, message: str) -> AgentResponse:
        """
        Handle one user message and return the agent's reply.

        A reply whose ``signal`` is set stopped on a routing tool; its text
        may be empty and is meant for the routing layer, not the user.
        """
        await self.load_history()
        await self._append(ROLE_USER, message)

        try:
            context = await self._build_turn_context()
            response = await self._run_loop(context)
        except Exception as e:
            self.logger.error(f"{self.log_tag} Failed to process message: {e}", exc_info=True)
            return AgentResponse(text=TASK_ERROR_TEMPLATE.format(error=e), role=self.role, state=LoopState.ABORTED)

        if response.signal is None:
            await self._auto_manage_memory()
        return response

    async def load_history(self) -> List[ConversationMessage]:
        """Load persisted history once, on first use"""
        if self._history_loaded:
            return self.conversation_history
        self._history_loaded = True
        try:
            stored = await self.conversation_memory.load_history(self.chat_id)
        except Exception as e:
            self.logger.error(f"{self.log_tag} Failed to load history: {e}", exc_info=True)
            return self.conversation_history
        # Messages appended before the load stay after the stored ones
        self.conversation_history = list(stored) + self.conversation_history
        self.logger.debug(f"{self.log_tag} Loaded {len(stored)} stored messages")
        return self.conversation_history

    def get_history_for_llm(self) -> List[Dict[str, Any]]:
        return [message.to_llm_format() for message in self.conversation_history]

    async def clear_history(self) -> None:
        """Clear the in-memory history and, if configured, the persisted one"""
        self.conversation_history = []
        self._history_loaded = True
        if self.conversation_memory is not None:
            await self._memory_write(self.conversation_memory, "clear_history")

    async def _append(self, role: str, content: str) -> None:
        self.conversation_history.append(ConversationMessage(role=role, content=content))
        if self.conversation_memory is not None:
            await self._memory_write(self.conversation_memory, "append_message", role, content)

    async def _build_turn_context(self) -> str:
        sections = [self.context] if self.context else []
        if self.fact_memory is not None:
            facts = await self.get_all_facts()
            if facts:
                lines = "\n".join(
                    f"- {key}: {json.dumps(value, ensure_ascii=False, default=str)}"
                    for key, value in facts.items()
                )
                sections.append(f"**Known facts about the user:**\n{lines}")
        if self.summary_memory is not None:
            summary = await self.get_latest_summary()
            if summary:
                sections.append(f"**Summary of the conversation so far:**\n{summary}")
        return "\n\n".join(sections)

    # Loop hooks: every step becomes a history turn; the newest user turn is
    # the prompt and everything before it is replayed as history.

    def _current_request(self) -> Tuple[str, Optional[List[Dict[str, Any]]]]:
        *earlier, latest = self.conversation_history
        return latest.content, [message.to_llm_format() for message in earlier]

    async def _record_tool_step(self, text: str, function_call: FunctionCall, outcome: ToolOutcome) -> None:
        await self._append(ROLE_MODEL, text or FUNCTION_CALL_PLACEHOLDER.format(name=function_call.name))
        if not outcome.found:
            await self._append(ROLE_USER, f"Erro: {outcome.error}")
        else:
            await self._append(ROLE_USER, f"Resultado da função {outcome.name}: {outcome.payload}")

    async def _record_signal(self, text: str, function_call: FunctionCall) -> None:
        await self._append(ROLE_MODEL, text or FUNCTION_CALL_PLACEHOLDER.format(name=function_call.name))

    async def _record_final(self, text: str) -> None:
        await self._append(ROLE_MODEL, text)

    # ------------------------------------------------------------------
    # Memory (best-effort)
    # ------------------------------------------------------------------

    async def _memory_read(
        self,
        adapter: Optional[MemoryAdapter],
        operation: str,
        default: Any,
        *args,
        convert: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        if adapter is None or self.chat_id is None:
            return default
        try:
            value = await getattr(adapter, operation)(self.chat_id, *args)
            return convert(value) if convert is not None else value
        except Exception as e:
            self.logger.error(f"{self.log_tag} Memory {operation} failed: {e}", exc_info=True)
            return default

    async def _memory_write(self, adapter: Optional[MemoryAdapter], operation: str, *args) -> bool:
        if adapter is None or self.chat_id is None:
            return False
        try:
            await getattr(adapter, operation)(self.chat_id, *args)
        except Exception as e:
            self.logger.error(f"{self.log_tag} Memory {operation} failed: {e}", exc_info=True)
            return False
        return True

    async def set_fact(self, key: str, value: Any) -> bool:
        return await self._memory_write(self.fact_memory, "set_fact", key, value)

    async def get_fact(self, key: str) -> Optional[Any]:
        return await self._memory_read(self.fact_memory, "get_fact", None, key)

    async def get_all_facts(self) -> Dict[str, Any]:
        facts = await self._memory_read(self.fact_memory, "get_all_facts", None)
        return dict(facts) if facts else {}

    async def delete_fact(self, key: str) -> bool:
        if self.fact_memory is None or self.chat_id is None:
            return False
        try:
            return bool(await self.fact_memory.delete_fact(self.chat_id, key))
        except Exception as e:
            self.logger.error(f"{self.log_tag} Memory delete_fact failed: {e}", exc_info=True)
            return False

    async def add_summary(self, content: str) -> bool:
        return await self._memory_write(self.summary_memory, "add_summary", content)

    async def get_latest_summary(self) -> Optional[str]:
        return await self._memory_read(
            self.summary_memory, "get_latest_summary", None, convert=_summary_text
        )

    async def get_all_summaries(self, limit: Optional[int] = None) -> List[SummaryRecord]:
        return await self._memory_read(
            self.summary_memory, "get_all_summaries", [], limit, convert=_summary_records
        )

    async def clear_facts(self) -> bool:
        return await self._memory_write(self.fact_memory, "delete_all_facts")

    async def clear_summaries(self) -> bool:
        return await self._memory_write(self.summary_memory, "delete_all_summaries")

    async def _auto_manage_memory(self) -> None:
        manage_facts = self.auto_manage_fact_memory and self.fact_memory is not None
        manage_summary = self.auto_manage_summary_memory and self.summary_memory is not None
        if not (manage_facts or manage_summary):
            return

        known_facts = await self.get_all_facts() if manage_facts else {}
        latest_summary = await self.get_latest_summary() if manage_summary else None
        try:
            result = await self._curator.curate(self.conversation_history, known_facts, latest_summary)
        except Exception as e:
            self.logger.error(f"{self.log_tag} Automatic memory management failed: {e}", exc_info=True)
            return
        if result is None:
            return

        if manage_facts:
            for key, value in result.facts.items():
                if known_facts.get(key) != value:
                    await self.set_fact(key, value)
        if manage_summary and result.summary and result.summary != latest_summary:
            await self.add_summary(result.summary)

    async def close(self) -> None:
        """Close this agent's memory adapters"""
        for adapter in (self.conversation_memory, self.fact_memory, self.summary_memory):
            if adapter is not None:
                try:
                    await adapter.close()
                except Exception as e:
                    self.logger.error(f"{self.log_tag} Failed to close {type(adapter).__name__}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Delegation
    # ------------------------------------------------------------------

    def enable_delegation(
        self,
        specialist_agents_config: Optional[Mapping[str, SpecialistConfigLike]] = None,
        agent_registry: Optional[AgentRegistry] = None,
    ) -> None:
        """Install (or refresh) the delegate_task_to_specialist tool"""
        if agent_registry is not None:
            self.agent_registry = agent_registry
        if self.agent_registry is None:
            self.agent_registry = AgentRegistry(
                specialist_agents_config,
                default_llm=self.llm,
                loop_config=self.loop_config,
                logger=self.logger,
            )
        elif specialist_agents_config:
            self.agent_registry.set_specialist_agents_config(specialist_agents_config)

        self.delegation_enabled = True
        self._refresh_delegation_tool()
        self.logger.info(
            f"{self.log_tag} Delegation enabled for: {self.get_available_specialist_roles()}"
        )

    def register_specialist(self, role: str, config: SpecialistConfigLike) -> None:
        if self.agent_registry is None:
            self.enable_delegation()
        self.agent_registry.register_specialist(role, config)
        if self.delegation_enabled:
            self._refresh_delegation_tool()

    def get_available_specialist_roles(self) -> List[str]:
        if self.agent_registry is None:
            return []
        return self.agent_registry.get_available_specialist_roles()

    def _refresh_delegation_tool(self) -> None:
        self.tools.replace(create_delegation_tool(self.agent_registry))
