"""
AgentRelay RoutingChatManager - Sub-conversation handoff between agents

Each session has a coordinator (the primary agent) and lazily created
specialists. Control moves between them through routing signals::

    COORDINATOR_ACTIVE --RequestSubConversation--> SPECIALIST_ACTIVE(role)
    SPECIALIST_ACTIVE  --EndSubConversation------> COORDINATOR_ACTIVE

The user's message is delivered exactly once to the agent that answers it:

- on a request the coordinator's text is dropped and the same message is
  re-dispatched to the specialist
- on an end the message that made the specialist finish is re-dispatched to
  the coordinator, prefixed with a note describing the outcome
- an end emitted by the coordinator itself is kept as a pending result and
  prepended to the next user message
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..agents.chat_agent import ChatAgent
from ..agents.registry import AgentRegistry, SpecialistConfigLike
from ..constants import MAX_ROUTING_HOPS, SESSION_ERROR_MESSAGE
from ..exceptions import UnknownSpecialistError
from ..log import get_logger
from ..models import AgentResponse, LoopState
from ..tools.models import ToolDefinition
from ..tools.signals import (
    EndSubConversation,
    RequestSubConversation,
    SignalError,
    create_end_sub_conversation_tool,
    create_request_sub_conversation_tool,
)
from .manager import ChatManager

PENDING_RESULT_NOTE = (
    "[SYSTEM_NOTE: Sub-conversa anterior com especialista '{role}' concluída.\n"
    "Status: {status}\n"
    "Resultado do Especialista: {final_result}\n"
    'Última Mensagem do Usuário para Especialista: "{last_user_message}"\n'
    "Mensagem do Especialista para Você: {message_to_coordinator}]\n\n"
    "---\n\n"
    "Agora, processe a NOVA mensagem do usuário abaixo, levando em conta TODAS as "
    "informações da nota acima:\n"
    "{message}\n"
)

END_REROUTE_NOTE = (
    "[SYSTEM_NOTE: Sub-conversa com especialista '{role}' finalizada pelo especialista.\n"
    "Status: {status}\n"
    "Resultado do Especialista: {final_result}\n"
    'Última Mensagem do Usuário (causou o fim, não respondida pelo especialista): "{last_user_message}"\n'
    "Mensagem do Especialista para Você: {message_to_coordinator}]\n\n"
    "---\n\n"
    "Agora, processe a mensagem original do usuário acima, que não foi respondida "
    "pelo especialista:\n"
    "{message}\n"
)

INITIAL_CONTEXT_HEADER = "**Context from the coordinator:**"


class RoutingMode(str, Enum):
    COORDINATOR_ACTIVE = "COORDINATOR_ACTIVE"
    SPECIALIST_ACTIVE = "SPECIALIST_ACTIVE"


@dataclass
class PendingSpecialistResult:
    """Outcome of a finished sub-conversation, waiting for the coordinator"""
    ended_specialist_role: str
    status: str
    final_result: Dict[str, Any]
    last_user_message: str
    message_to_coordinator: Optional[str] = None

    @classmethod
    def from_signal(cls, role: str, signal: EndSubConversation) -> "PendingSpecialistResult":
        return cls(
            ended_specialist_role=role,
            status=signal.status,
            final_result=dict(signal.final_result),
            last_user_message=signal.last_user_message,
            message_to_coordinator=signal.message_to_coordinator,
        )

    def format_note(self, template: str, message: str) -> str:
        return template.format(
            role=self.ended_specialist_role,
            status=self.status,
            final_result=json.dumps(self.final_result, ensure_ascii=False, default=str),
            last_user_message=self.last_user_message,
            message_to_coordinator=self.message_to_coordinator or "Nenhuma",
            message=message,
        )


@dataclass
class SessionState:
    """Routing state of one session"""
    session_id: str
    primary_agent: ChatAgent
    active_agent: Optional[ChatAgent] = None
    active_specialist_role: Optional[str] = None
    specialist_instances: Dict[str, ChatAgent] = field(default_factory=dict)
    pending_specialist_result: Optional[PendingSpecialistResult] = None

    def __post_init__(self):
        if self.active_agent is None:
            self.active_agent = self.primary_agent

    @property
    def mode(self) -> RoutingMode:
        if self.active_specialist_role is None:
            return RoutingMode.COORDINATOR_ACTIVE
        return RoutingMode.SPECIALIST_ACTIVE

    def take_pending_result(self) -> Optional[PendingSpecialistResult]:
        pending, self.pending_specialist_result = self.pending_specialist_result, None
        return pending

    def activate_specialist(self, role: str, agent: ChatAgent) -> None:
        self.specialist_instances[role] = agent
        self.active_specialist_role = role
        self.active_agent = agent

    def activate_coordinator(self) -> None:
        self.active_specialist_role = None
        self.active_agent = self.primary_agent


class RoutingChatManager(ChatManager):
    """
    ChatManager whose coordinator can hand whole sub-conversations to
    specialist agents.

    Example:
        manager = RoutingChatManager(
            llm=llm,
            agent_config={"role": "Coordinator", "context": "Route requests."},
            specialist_agents_config={
                "Booking": {"objective": "Book tables", "context": "You book tables."},
            },
        )
        response = await manager.process_message("user-1", "I want to book a table")
        # response.role == "Booking" once the coordinator handed over

    Specialists share the manager's LLM unless their config names a model,
    and persist their history under ``"<session_id>::<role>"``.
    """

    def __init__(
        self,
        *,
        specialist_agents_config: Optional[Mapping[str, SpecialistConfigLike]] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.agent_registry = AgentRegistry(
            specialist_agents_config,
            default_llm=self.llm,
            default_mode="chat",
            loop_config=self.loop_config,
            logger=get_logger("registry", parent=self.logger),
        )
        self._specialist_logger = get_logger("specialist", parent=self.logger)
        self.session_states: Dict[str, SessionState] = {}

    @classmethod
    def _settings_kwargs(cls, settings) -> Dict[str, Any]:
        from ..config.loader import resolve_specialists

        kwargs = super()._settings_kwargs(settings)
        kwargs["specialist_agents_config"] = resolve_specialists(settings.routing.specialists)
        return kwargs

    def _extra_tools(self) -> List[ToolDefinition]:
        return [create_request_sub_conversation_tool(self.agent_registry.get_available_specialist_roles)]

    # ==========================================================================
    # Specialists
    # ==========================================================================

    def register_specialist(self, role: str, config: SpecialistConfigLike) -> None:
        self.agent_registry.register_specialist(role, config)

    def unregister_specialist(self, role: str) -> bool:
        return self.agent_registry.unregister_specialist(role)

    def get_available_specialist_roles(self) -> List[str]:
        return self.agent_registry.get_available_specialist_roles()

    def _get_or_create_specialist(self, state: SessionState, role: str) -> ChatAgent:
        specialist = state.specialist_instances.get(role)
        if specialist is not None:
            return specialist

        config = self.agent_registry.get_specialist_config(role)
        if config is None:
            raise UnknownSpecialistError(role, self.get_available_specialist_roles())

        primary = state.primary_agent
        specialist = ChatAgent(
            role=role,
            llm=self.agent_registry.get_specialist_llm(role),
            objective=config.objective,
            context=config.context,
            tools=[*config.tools, create_end_sub_conversation_tool()],
            enable_google_search=config.enable_google_search,
            conversation_memory=primary.conversation_memory,
            chat_id=f"{primary.chat_id}::{role}",
            loop_config=self.loop_config,
            logger=self._specialist_logger,
        )
        state.specialist_instances[role] = specialist
        self.logger.info(f"Session {state.session_id}: specialist '{role}' created")
        return specialist

    # ==========================================================================
    # Sessions
    # ==========================================================================

    def get_session_state(self, session_id: str) -> Optional[SessionState]:
        return self.session_states.get(session_id)

    def _get_or_create_state(
        self,
        session_id: str,
        session_options: Optional[Mapping[str, Any]] = None,
    ) -> SessionState:
        state = self.session_states.get(session_id)
        if state is None:
            primary = self.get_or_create_session(session_id, session_options)
            state = self.session_states[session_id] = SessionState(session_id, primary)
        return state

    def _forget_session(self, session_id: str) -> Optional[ChatAgent]:
        self.session_states.pop(session_id, None)
        return super()._forget_session(session_id)

    def _session_agents(self, session_id: str) -> List[ChatAgent]:
        state = self.session_states.get(session_id)
        if state is None:
            return super()._session_agents(session_id)
        return [state.primary_agent, *state.specialist_instances.values()]

    def _conversation_ids(self, session_id: str) -> List[str]:
        return [session_id] + [f"{session_id}::{role}" for role in self.get_available_specialist_roles()]

    async def clear_session_history(self, session_id: str) -> bool:
        ok = await super().clear_session_history(session_id)
        state = self.session_states.get(self._normalize_session_id(session_id))
        if state is not None:
            state.pending_specialist_result = None
            state.activate_coordinator()
        return ok

    # ==========================================================================
    # Routing
    # ==========================================================================

    async def _handle_message(
        self,
        session_id: str,
        message: str,
        session_options: Optional[Mapping[str, Any]],
    ) -> AgentResponse:
        state = self._get_or_create_state(session_id, session_options)

        text = message
        if state.mode is RoutingMode.COORDINATOR_ACTIVE:
            pending = state.take_pending_result()
            if pending is not None:
                self.logger.info(
                    f"Session {session_id}: delivering pending result of '{pending.ended_specialist_role}'"
                )
                text = pending.format_note(PENDING_RESULT_NOTE, message)

        response = await state.active_agent.process_user_message(text)
        return await self._follow_signals(state, message, response)

    async def _follow_signals(self, state: SessionState, message: str, response: AgentResponse) -> AgentResponse:
        hops = 0
        while response.signal is not None:
            signal = response.signal
            self.logger.info(
                f"Session {state.session_id}: {response.role} emitted {signal.signal_type.value}"
            )

            if isinstance(signal, SignalError):
                self.logger.warning(
                    f"Session {state.session_id}: routing tool error from {response.role}: {signal.error}"
                )
                return response

            if hops >= MAX_ROUTING_HOPS:
                self.logger.error(
                    f"Session {state.session_id}: stopped after {MAX_ROUTING_HOPS} routing hops"
                )
                return response
            hops += 1

            if isinstance(signal, RequestSubConversation):
                response = await self._start_sub_conversation(state, signal, message)
            elif isinstance(signal, EndSubConversation):
                if state.mode is RoutingMode.COORDINATOR_ACTIVE:
                    state.pending_specialist_result = PendingSpecialistResult.from_signal(
                        state.primary_agent.role, signal
                    )
                    return response
                response = await self._end_sub_conversation(state, signal, message)
            else:
                raise TypeError(f"Unknown routing signal: {signal!r}")
        return response

    async def _start_sub_conversation(
        self,
        state: SessionState,
        signal: RequestSubConversation,
        message: str,
    ) -> AgentResponse:
        role = signal.specialist_role
        try:
            specialist = self._get_or_create_specialist(state, role)
        except Exception as e:
            self.logger.error(
                f"Session {state.session_id}: failed to start specialist '{role}': {e}", exc_info=True
            )
            state.activate_coordinator()
            return AgentResponse(text=SESSION_ERROR_MESSAGE, role=state.primary_agent.role, state=LoopState.ABORTED)

        config = self.agent_registry.get_specialist_config(role)
        base_context = config.context if config is not None else ""
        specialist.context = base_context
        if signal.initial_context:
            specialist.extend_context(f"{INITIAL_CONTEXT_HEADER}\n{signal.initial_context}")

        state.activate_specialist(role, specialist)
        self.logger.info(f"Session {state.session_id}: handed over to specialist '{role}'")
        return await specialist.process_user_message(message)

    async def _end_sub_conversation(
        self,
        state: SessionState,
        signal: EndSubConversation,
        message: str,
    ) -> AgentResponse:
        role = state.active_specialist_role
        state.pending_specialist_result = PendingSpecialistResult.from_signal(role, signal)
        state.activate_coordinator()
        pending = state.take_pending_result()
        self.logger.info(
            f"Session {state.session_id}: specialist '{role}' finished with status {signal.status}"
        )
        return await state.primary_agent.process_user_message(pending.format_note(END_REROUTE_NOTE, message))
