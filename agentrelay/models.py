"""
AgentRelay Models - Data structures shared by agents, memory and managers
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from .constants import ROLE_MODEL, ROLE_USER

if TYPE_CHECKING:
    from .tools.signals import RoutingSignal


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LoopState(str, Enum):
    """States of the function-call resolution loop"""
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOL = "executing_tool"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class ConversationMessage:
    """One turn of conversation history"""
    role: str
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.role not in (ROLE_USER, ROLE_MODEL):
            raise ValueError(f"Invalid message role '{self.role}'")

    def to_llm_format(self) -> Dict[str, Any]:
        """Replay format sent to the LLM"""
        return {"role": self.role, "parts": [{"text": self.content}]}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            timestamp=timestamp or utcnow(),
        )


@dataclass
class SummaryRecord:
    """A stored conversation summary"""
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    summary_id: Optional[int] = None

    @classmethod
    def coerce(cls, value: Any) -> "SummaryRecord":
        """
        Accept what summary adapters return: a SummaryRecord, the plain
        summary text, or a mapping with ``content`` (or ``summaryContent``)
        and an optional ``timestamp``.

        Raises:
            TypeError: For any other shape
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(content=value)
        if isinstance(value, dict):
            content = value.get("content", value.get("summaryContent"))
            if isinstance(content, str):
                timestamp = value.get("timestamp")
                if isinstance(timestamp, str):
                    timestamp = datetime.fromisoformat(timestamp)
                return cls(
                    content=content,
                    timestamp=as_utc(timestamp) if isinstance(timestamp, datetime) else utcnow(),
                    summary_id=value.get("summary_id"),
                )
        raise TypeError(f"Unsupported summary value: {type(value).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary_id": self.summary_id,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class AgentResponse:
    """
    Result of one agent turn.

    Attributes:
        text: Final text produced for the caller
        role: Role of the agent that produced ``text``
        signal: Routing signal emitted by a tool, if the loop stopped on one
        turns: Number of LLM calls made
        state: LoopState.DONE or LoopState.ABORTED (iteration limit hit)
    """
    text: str
    role: Optional[str] = None
    signal: Optional["RoutingSignal"] = None
    turns: int = 0
    state: LoopState = LoopState.DONE

    @property
    def aborted(self) -> bool:
        return self.state == LoopState.ABORTED

    def __str__(self) -> str:
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "role": self.role,
            "signal": self.signal.to_dict() if self.signal else None,
            "turns": self.turns,
            "state": self.state.value,
        }
