"""
AgentRelay Chat - Session managers
"""

from .manager import ChatManager, AGENT_OPTIONS
from .routing import (
    RoutingChatManager,
    RoutingMode,
    SessionState,
    PendingSpecialistResult,
)

__all__ = [
    "ChatManager",
    "AGENT_OPTIONS",
    "RoutingChatManager",
    "RoutingMode",
    "SessionState",
    "PendingSpecialistResult",
]
