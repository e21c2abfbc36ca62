"""
AgentRelay Routing Signals - Control messages returned by routing tools

A routing tool does not compute anything: it returns one of the signal
objects below. The function-call loop recognises a signal as a tool result,
stops iterating and hands the signal to the caller, which decides where the
conversation goes next.

Signals form a closed union:
- RequestSubConversation: coordinator hands the conversation to a specialist
- EndSubConversation: specialist hands the conversation back
- SignalError: a routing tool was called with invalid arguments
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..constants import END_SUB_CONVERSATION_TOOL_NAME, REQUEST_SUB_CONVERSATION_TOOL_NAME
from ..exceptions import UnknownSpecialistError
from .models import ToolDefinition

logger = logging.getLogger(__name__)


class SignalType(str, Enum):
    REQUEST_SUB_CONVERSATION = "REQUEST_SUB_CONVERSATION"
    END_SUB_CONVERSATION = "END_SUB_CONVERSATION"
    SIGNAL_ERROR = "SIGNAL_ERROR"


@dataclass(frozen=True)
class RequestSubConversation:
    specialist_role: str
    initial_context: str

    signal_type = SignalType.REQUEST_SUB_CONVERSATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal_type": self.signal_type.value,
            "specialist_role": self.specialist_role,
            "initial_context": self.initial_context,
        }


@dataclass(frozen=True)
class EndSubConversation:
    status: str
    final_result: Dict[str, Any]
    last_user_message: str
    message_to_coordinator: Optional[str] = None

    signal_type = SignalType.END_SUB_CONVERSATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal_type": self.signal_type.value,
            "status": self.status,
            "final_result": self.final_result,
            "last_user_message": self.last_user_message,
            "message_to_coordinator": self.message_to_coordinator,
        }


@dataclass(frozen=True)
class SignalError:
    error: str
    original_args: Dict[str, Any] = field(default_factory=dict)

    signal_type = SignalType.SIGNAL_ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal_type": self.signal_type.value,
            "error": self.error,
            "original_args": self.original_args,
        }


RoutingSignal = Union[RequestSubConversation, EndSubConversation, SignalError]

SIGNAL_CLASSES = (RequestSubConversation, EndSubConversation, SignalError)


def is_routing_signal(value: Any) -> bool:
    return isinstance(value, SIGNAL_CLASSES)


def _missing(
    args: Dict[str, Any],
    names: List[str],
    allow_empty: Tuple[str, ...] = (),
) -> List[str]:
    """Names that are absent or None, or empty strings unless listed in allow_empty"""
    return [
        name for name in names
        if args.get(name) is None or (args[name] == "" and name not in allow_empty)
    ]


def create_request_sub_conversation_tool(
    available_roles: Optional[Callable[[], List[str]]] = None,
) -> ToolDefinition:
    """
    Tool a coordinator calls to hand the conversation to a specialist.

    Args:
        available_roles: Returns the roles that may be requested. When given,
            an unknown role raises UnknownSpecialistError inside the tool, so
            the coordinator sees the error text and can pick another role.
    """
    roles_hint = ""
    if available_roles is not None:
        roles = available_roles()
        if roles:
            roles_hint = f" Available specialists: {', '.join(roles)}."

    def request_sub_conversation(args: Dict[str, Any]) -> RoutingSignal:
        missing = _missing(args, ["specialist_role", "initial_context"])
        if missing:
            logger.warning(f"{REQUEST_SUB_CONVERSATION_TOOL_NAME} called without {missing}")
            return SignalError(
                error=f"Missing required arguments: {', '.join(missing)}",
                original_args=dict(args),
            )

        role = args["specialist_role"]
        if available_roles is not None:
            roles = available_roles()
            if role not in roles:
                raise UnknownSpecialistError(role, roles)

        return RequestSubConversation(
            specialist_role=role,
            initial_context=str(args["initial_context"]),
        )

    return ToolDefinition(
        name=REQUEST_SUB_CONVERSATION_TOOL_NAME,
        description=(
            "Hand the conversation over to a specialist agent that will talk to "
            "the user directly until its task is finished." + roles_hint
        ),
        parameters={
            "type": "object",
            "properties": {
                "specialist_role": {
                    "type": "string",
                    "description": "Role of the specialist that should take over",
                },
                "initial_context": {
                    "type": "string",
                    "description": "Everything the specialist needs to know to start",
                },
            },
            "required": ["specialist_role", "initial_context"],
        },
        function=request_sub_conversation,
    )


def create_end_sub_conversation_tool() -> ToolDefinition:
    """Tool a specialist calls to return control to the coordinator"""

    def end_sub_conversation(args: Dict[str, Any]) -> RoutingSignal:
        missing = _missing(
            args,
            ["status", "final_result", "last_user_message"],
            allow_empty=("final_result", "last_user_message"),
        )
        if missing:
            logger.warning(f"{END_SUB_CONVERSATION_TOOL_NAME} called without {missing}")
            return SignalError(
                error=f"Missing required arguments: {', '.join(missing)}",
                original_args=dict(args),
            )

        final_result = args["final_result"]
        if not isinstance(final_result, dict):
            final_result = {"value": final_result}

        return EndSubConversation(
            status=str(args["status"]),
            final_result=dict(final_result),
            last_user_message=str(args["last_user_message"]),
            message_to_coordinator=args.get("message_to_coordinator") or None,
        )

    return ToolDefinition(
        name=END_SUB_CONVERSATION_TOOL_NAME,
        description=(
            "Finish the specialist conversation and return control to the "
            "coordinator, reporting the outcome."
        ),
        parameters={
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "description": "Outcome of the sub-conversation, e.g. SUCCESS, FAILED, CANCELLED",
                },
                "final_result": {
                    "type": "object",
                    "description": "Structured result produced by the specialist",
                },
                "last_user_message": {
                    "type": "string",
                    "description": "The user's message that triggered the end of the sub-conversation",
                },
                "message_to_coordinator": {
                    "type": "string",
                    "description": "Optional note for the coordinator",
                },
            },
            "required": ["status", "final_result", "last_user_message"],
        },
        function=end_sub_conversation,
    )
