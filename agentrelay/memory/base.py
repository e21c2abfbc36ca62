"""
AgentRelay Memory - Adapter contracts for the three persistence tracks

- ConversationMemoryAdapter: ordered chat history per chat_id
- FactMemoryAdapter: key/value facts per context id (upsert semantics)
- SummaryMemoryAdapter: timestamped summaries per context id

Adapters move through an explicit lifecycle::

    UNINITIALIZED --ensure_ready()--> READY --close()--> CLOSED

``ensure_ready`` is idempotent and is awaited by every operation, so callers
never have to initialize adapters themselves. Any use after ``close`` raises
MemoryAdapterError.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import MemoryAdapterError
from ..models import ConversationMessage, SummaryRecord


class Lifecycle(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class MemoryAdapter(ABC):
    """Common lifecycle handling for memory adapters"""

    def __init__(self):
        self.state = Lifecycle.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    async def ensure_ready(self) -> None:
        """Initialize the backend once. Safe to call repeatedly."""
        if self.state == Lifecycle.READY:
            return
        if self.state == Lifecycle.CLOSED:
            raise MemoryAdapterError(f"{type(self).__name__} is closed")
        async with self._init_lock:
            if self.state == Lifecycle.UNINITIALIZED:
                await self._initialize()
                self.state = Lifecycle.READY

    async def _initialize(self) -> None:
        """Backend-specific setup (create tables, open pools)"""

    async def _release(self) -> None:
        """Backend-specific teardown"""

    async def close(self) -> None:
        if self.state == Lifecycle.CLOSED:
            return
        await self._release()
        self.state = Lifecycle.CLOSED

    async def __aenter__(self):
        await self.ensure_ready()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class ConversationMemoryAdapter(MemoryAdapter):
    """Stores the ordered message history of each chat"""

    @abstractmethod
    async def load_history(self, chat_id: str) -> List[ConversationMessage]:
        """Return the full history of ``chat_id`` in order (empty if unknown)"""

    @abstractmethod
    async def append_message(self, chat_id: str, role: str, content: str) -> None:
        """Append one message to the end of the history"""

    @abstractmethod
    async def clear_history(self, chat_id: str) -> None:
        """Remove every message of ``chat_id``"""


class FactMemoryAdapter(MemoryAdapter):
    """Stores JSON-serializable facts keyed by (context_id, key)"""

    @abstractmethod
    async def set_fact(self, context_id: str, key: str, value: Any) -> None:
        """Insert or replace a fact"""

    @abstractmethod
    async def get_fact(self, context_id: str, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def get_all_facts(self, context_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def delete_fact(self, context_id: str, key: str) -> bool:
        """Returns True if a fact was deleted"""

    @abstractmethod
    async def delete_all_facts(self, context_id: str) -> int:
        """Returns the number of deleted facts"""


class SummaryMemoryAdapter(MemoryAdapter):
    """
    Stores conversation summaries, newest first on read.

    The built-in adapters return SummaryRecord. ChatAgent also accepts the
    plain summary text, or a dict with ``content`` (or ``summaryContent``)
    and ``timestamp``, from third-party adapters.
    """

    @abstractmethod
    async def add_summary(
        self, context_id: str, content: str, timestamp: Optional[datetime] = None
    ) -> None:
        pass

    @abstractmethod
    async def get_latest_summary(self, context_id: str) -> Optional[SummaryRecord]:
        """The newest summary, or None"""

    @abstractmethod
    async def get_all_summaries(
        self, context_id: str, limit: Optional[int] = None
    ) -> List[SummaryRecord]:
        """Summaries ordered newest first, at most ``limit`` of them"""

    @abstractmethod
    async def delete_all_summaries(self, context_id: str) -> int:
        """Returns the number of deleted summaries"""
