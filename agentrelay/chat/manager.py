"""
AgentRelay ChatManager - One ChatAgent per external session

The manager owns the LLM client, the memory adapters and the mapping from
session ids to agents:

- the session id doubles as the agent's ``chat_id``, so persisted history
  survives ``end_session`` and is reloaded when the session comes back
- with ``share_memory_instances=True`` every session uses the same adapter
  objects; otherwise each session gets its own, closed on ``end_session``
- turns of one session are serialized with a per-session asyncio.Lock;
  different sessions run concurrently
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from ..agents.agent import LoopConfig
from ..agents.chat_agent import ChatAgent
from ..constants import SESSION_ERROR_MESSAGE
from ..exceptions import ConfigurationError
from ..llm.base import LLMConfig
from ..llm.factory import create_llm_client
from ..log import get_logger
from ..memory.base import MemoryAdapter
from ..memory.factory import (
    MEMORY_TRACKS,
    MemoryTrackConfig,
    create_memory_adapter,
    get_adapter_class,
)
from ..models import AgentResponse, LoopState
from ..protocols import LLMClientProtocol
from ..tools.models import ToolDefinition

if TYPE_CHECKING:
    from ..config.loader import RelaySettings

# Options accepted in agent_config and session_options
AGENT_OPTIONS = (
    "role",
    "objective",
    "context",
    "tools",
    "enable_google_search",
    "auto_manage_fact_memory",
    "auto_manage_summary_memory",
    "memory_llm",
)

_TRACK_ADAPTER_ARGS = {
    "conversation": "conversation_memory",
    "fact": "fact_memory",
    "summary": "summary_memory",
}


@dataclass
class _SessionLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


def _to_track_config(track: str, value: Any) -> MemoryTrackConfig:
    if isinstance(value, MemoryTrackConfig):
        return value
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    if isinstance(value, str):
        return MemoryTrackConfig(type=value)
    if not isinstance(value, Mapping) or not value.get("type"):
        raise ConfigurationError(f"Memory config for '{track}' needs a 'type'")
    return MemoryTrackConfig(type=value["type"], db_config=dict(value.get("db_config") or {}))


class ChatManager:
    """
    Routes messages from many sessions to their ChatAgents.

    Example:
        manager = ChatManager(
            llm_config=LLMConfig(model="gemini-2.0-flash-001"),
            agent_config={"role": "Assistant", "context": "You are helpful."},
            memory_config={
                "conversation": {"type": "sqlite", "db_config": {"db_path": "chat.db"}},
            },
        )
        response = await manager.process_message("user-42", "Hello!")
        print(response.text)
        await manager.shutdown()
    """

    def __init__(
        self,
        llm: Optional[LLMClientProtocol] = None,
        llm_config: Optional[LLMConfig] = None,
        llm_provider: Optional[str] = None,
        agent_config: Optional[Mapping[str, Any]] = None,
        memory_config: Optional[Mapping[str, Any]] = None,
        delegation_config: Optional[Mapping[str, Any]] = None,
        share_memory_instances: bool = True,
        loop_config: Optional[LoopConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            llm: LLM client shared by every session
            llm_config: Used to build the client when ``llm`` is not given
            llm_provider: Provider for ``llm_config`` ("gemini", "openai", ...)
            agent_config: Defaults for every session's agent (see AGENT_OPTIONS)
            memory_config: track ("conversation", "fact", "summary") ->
                {"type": ..., "db_config": {...}}
            delegation_config: {"enabled": bool, "specialists": {role: config}}
            share_memory_instances: Share adapter instances across sessions
            loop_config: Function-call loop limits for every agent

        Raises:
            ConfigurationError: Missing LLM or invalid memory/agent config
        """
        self.logger = logger or get_logger("chat_manager")
        # One logger for all sessions; agents tag their lines with the chat id
        self._session_logger = get_logger("session", parent=self.logger)

        if llm is None:
            if llm_config is None:
                raise ConfigurationError("ChatManager needs either llm or llm_config")
            llm = create_llm_client(llm_config, llm_provider)
        self.llm = llm

        self.agent_config = self._check_agent_options(agent_config or {})
        self.delegation_config = dict(delegation_config or {})
        self.loop_config = loop_config
        self.share_memory_instances = share_memory_instances

        self.memory_config: Dict[str, MemoryTrackConfig] = {}
        for track, value in (memory_config or {}).items():
            if track not in MEMORY_TRACKS:
                raise ConfigurationError(
                    f"Unknown memory track '{track}'. Use one of: {', '.join(MEMORY_TRACKS)}"
                )
            self.memory_config[track] = _to_track_config(track, value)

        # Fail fast on bad adapter types
        self._shared_adapters: Dict[str, MemoryAdapter] = {}
        if share_memory_instances:
            self._shared_adapters = self._build_adapters()
        else:
            for track, cfg in self.memory_config.items():
                get_adapter_class(cfg.type, track)

        self.sessions: Dict[str, ChatAgent] = {}
        self._session_adapters: Dict[str, Dict[str, MemoryAdapter]] = {}
        self._locks: Dict[str, _SessionLock] = {}

    # ==========================================================================
    # Construction helpers
    # ==========================================================================

    @classmethod
    def from_settings(
        cls,
        settings: "RelaySettings",
        llm: Optional[LLMClientProtocol] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "ChatManager":
        """Build a manager from loaded RelaySettings"""
        return cls(llm=llm, logger=logger, **cls._settings_kwargs(settings))

    @classmethod
    def _settings_kwargs(cls, settings: "RelaySettings") -> Dict[str, Any]:
        from ..config.loader import resolve_specialists

        agent_config = settings.agent.model_dump(exclude={"tools"})
        agent_config["tools"] = settings.agent.resolve_tools()
        delegation_config = {
            "enabled": settings.delegation.enabled,
            "specialists": resolve_specialists(settings.delegation.specialists),
        }
        return {
            "llm_config": settings.llm.to_llm_config(),
            "llm_provider": settings.llm.provider,
            "agent_config": agent_config,
            "memory_config": {track: cfg.model_dump() for track, cfg in settings.memory.tracks().items()},
            "delegation_config": delegation_config,
            "share_memory_instances": settings.share_memory_instances,
            "loop_config": LoopConfig(**settings.loop.model_dump()),
        }

    @staticmethod
    def _check_agent_options(options: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = sorted(set(options) - set(AGENT_OPTIONS))
        if unknown:
            raise ConfigurationError(f"Unknown agent options: {', '.join(unknown)}")
        return dict(options)

    def _build_adapters(self) -> Dict[str, MemoryAdapter]:
        return {
            track: create_memory_adapter(cfg.type, cfg.db_config, track=track)
            for track, cfg in self.memory_config.items()
        }

    def _adapters_for(self, session_id: str) -> Dict[str, MemoryAdapter]:
        if self.share_memory_instances:
            return self._shared_adapters
        if session_id not in self._session_adapters:
            self._session_adapters[session_id] = self._build_adapters()
        return self._session_adapters[session_id]

    def _extra_tools(self) -> List[ToolDefinition]:
        """Tools added to every session agent on top of agent_config['tools']"""
        return []

    def _create_agent(self, session_id: str, session_options: Optional[Mapping[str, Any]]) -> ChatAgent:
        options = {**self.agent_config, **self._check_agent_options(session_options or {})}
        role = options.pop("role", None) or "Assistant"
        tools = list(options.pop("tools", None) or []) + self._extra_tools()
        adapters = self._adapters_for(session_id)

        return ChatAgent(
            role=role,
            llm=self.llm,
            tools=tools,
            chat_id=session_id,
            enable_specialist_delegation=bool(self.delegation_config.get("enabled")),
            specialist_agents_config=self.delegation_config.get("specialists"),
            loop_config=self.loop_config,
            logger=self._session_logger,
            **{_TRACK_ADAPTER_ARGS[track]: adapter for track, adapter in adapters.items()},
            **options,
        )

    # ==========================================================================
    # Sessions
    # ==========================================================================

    @staticmethod
    def _normalize_session_id(session_id: Any) -> str:
        if not isinstance(session_id, str) or not session_id.strip():
            raise ValueError("session_id must be a non-empty string")
        return session_id.strip()

    @contextlib.asynccontextmanager
    async def _session_lock(self, session_id: str):
        """Serialize work on one session. The lock is dropped once nobody holds or waits for it."""
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _SessionLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(session_id) is entry:
                del self._locks[session_id]

    def get_or_create_session(
        self,
        session_id: str,
        session_options: Optional[Mapping[str, Any]] = None,
    ) -> ChatAgent:
        """
        Return the session's agent, creating it on first use.

        ``session_options`` override agent_config for a new session and are
        ignored for an existing one.

        Raises:
            ValueError: If session_id is empty
        """
        session_id = self._normalize_session_id(session_id)
        agent = self.sessions.get(session_id)
        if agent is None:
            agent = self._create_agent(session_id, session_options)
            self.sessions[session_id] = agent
            self.logger.info(f"Session created: {session_id}")
        return agent

    def get_active_session_ids(self) -> List[str]:
        return list(self.sessions)

    def has_session(self, session_id: str) -> bool:
        return session_id in self.sessions

    async def process_message(
        self,
        session_id: str,
        message: str,
        session_options: Optional[Mapping[str, Any]] = None,
    ) -> AgentResponse:
        """
        Process one user message for a session.

        Unexpected failures are logged and answered with a generic apology.

        Raises:
            ValueError: If session_id is empty
        """
        session_id = self._normalize_session_id(session_id)
        async with self._session_lock(session_id):
            try:
                return await self._handle_message(session_id, message, session_options)
            except Exception as e:
                self.logger.error(f"Session {session_id}: failed to process message: {e}", exc_info=True)
                return AgentResponse(text=SESSION_ERROR_MESSAGE, state=LoopState.ABORTED)

    async def _handle_message(
        self,
        session_id: str,
        message: str,
        session_options: Optional[Mapping[str, Any]],
    ) -> AgentResponse:
        agent = self.get_or_create_session(session_id, session_options)
        return await agent.process_user_message(message)

    def _forget_session(self, session_id: str) -> Optional[ChatAgent]:
        return self.sessions.pop(session_id, None)

    async def end_session(self, session_id: str) -> bool:
        """
        Forget the in-process session. Persisted memory is kept.

        A turn already running for the session finishes first.

        Returns:
            True if the session was active
        """
        session_id = self._normalize_session_id(session_id)
        async with self._session_lock(session_id):
            agent = self._forget_session(session_id)
            for adapter in self._session_adapters.pop(session_id, {}).values():
                try:
                    await adapter.close()
                except Exception as e:
                    self.logger.error(f"Session {session_id}: failed to close {type(adapter).__name__}: {e}", exc_info=True)

        if agent is None:
            return False
        self.logger.info(f"Session ended: {session_id}")
        return True

    # ==========================================================================
    # History
    # ==========================================================================

    def _session_agents(self, session_id: str) -> List[ChatAgent]:
        agent = self.sessions.get(session_id)
        return [agent] if agent is not None else []

    def _conversation_ids(self, session_id: str) -> List[str]:
        return [session_id]

    async def clear_session_history(self, session_id: str) -> bool:
        """
        Clear a session's history, facts and summaries.

        Works for inactive sessions too, through the configured adapters.

        Returns:
            False if clearing failed
        """
        session_id = self._normalize_session_id(session_id)
        agents = self._session_agents(session_id)
        if agents:
            async with self._session_lock(session_id):
                primary = agents[0]
                ok = await primary.clear_facts() if primary.fact_memory else True
                ok = (await primary.clear_summaries() if primary.summary_memory else True) and ok
                for agent in agents:
                    await agent.clear_history()
            self.logger.info(f"Session {session_id}: history cleared")
            return ok

        owned = not self.share_memory_instances
        adapters = self._build_adapters() if owned else self._shared_adapters
        try:
            conversation = adapters.get("conversation")
            if conversation is not None:
                for chat_id in self._conversation_ids(session_id):
                    await conversation.clear_history(chat_id)
            if "fact" in adapters:
                await adapters["fact"].delete_all_facts(session_id)
            if "summary" in adapters:
                await adapters["summary"].delete_all_summaries(session_id)
        except Exception as e:
            self.logger.error(f"Session {session_id}: failed to clear history: {e}", exc_info=True)
            return False
        finally:
            if owned:
                for adapter in adapters.values():
                    await adapter.close()

        self.logger.info(f"Session {session_id}: stored history cleared")
        return True

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def shutdown(self) -> None:
        """End every session and close shared adapters. Running turns are not cancelled."""
        for session_id in list(self.sessions):
            await self.end_session(session_id)
        for adapter in self._shared_adapters.values():
            try:
                await adapter.close()
            except Exception as e:
                self.logger.error(f"Failed to close {type(adapter).__name__}: {e}", exc_info=True)
        self.logger.info("ChatManager shutdown")

