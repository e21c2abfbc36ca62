"""
Process-local memory adapters, for tests and single-process deployments
"""

import copy
import itertools
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import ConversationMessage, SummaryRecord, as_utc, utcnow
from .base import ConversationMemoryAdapter, FactMemoryAdapter, SummaryMemoryAdapter


class InMemoryConversationMemoryAdapter(ConversationMemoryAdapter):

    def __init__(self):
        super().__init__()
        self._histories: Dict[str, List[ConversationMessage]] = defaultdict(list)

    async def load_history(self, chat_id: str) -> List[ConversationMessage]:
        await self.ensure_ready()
        return list(self._histories.get(chat_id, []))

    async def append_message(self, chat_id: str, role: str, content: str) -> None:
        await self.ensure_ready()
        self._histories[chat_id].append(ConversationMessage(role=role, content=content))

    async def clear_history(self, chat_id: str) -> None:
        await self.ensure_ready()
        self._histories.pop(chat_id, None)

    async def _release(self) -> None:
        self._histories.clear()


class InMemoryFactMemoryAdapter(FactMemoryAdapter):
    """Facts are deep-copied in and out so callers cannot mutate stored values"""

    def __init__(self):
        super().__init__()
        self._facts: Dict[str, Dict[str, Any]] = defaultdict(dict)

    async def set_fact(self, context_id: str, key: str, value: Any) -> None:
        await self.ensure_ready()
        self._facts[context_id][key] = copy.deepcopy(value)

    async def get_fact(self, context_id: str, key: str) -> Optional[Any]:
        await self.ensure_ready()
        return copy.deepcopy(self._facts.get(context_id, {}).get(key))

    async def get_all_facts(self, context_id: str) -> Dict[str, Any]:
        await self.ensure_ready()
        return copy.deepcopy(self._facts.get(context_id, {}))

    async def delete_fact(self, context_id: str, key: str) -> bool:
        await self.ensure_ready()
        facts = self._facts.get(context_id, {})
        if key in facts:
            del facts[key]
            return True
        return False

    async def delete_all_facts(self, context_id: str) -> int:
        await self.ensure_ready()
        return len(self._facts.pop(context_id, {}))

    async def _release(self) -> None:
        self._facts.clear()


class InMemorySummaryMemoryAdapter(SummaryMemoryAdapter):

    def __init__(self):
        super().__init__()
        self._summaries: Dict[str, List[SummaryRecord]] = defaultdict(list)
        self._ids = itertools.count(1)

    async def add_summary(
        self, context_id: str, content: str, timestamp: Optional[datetime] = None
    ) -> None:
        await self.ensure_ready()
        self._summaries[context_id].append(SummaryRecord(
            content=content,
            timestamp=as_utc(timestamp) if timestamp else utcnow(),
            summary_id=next(self._ids),
        ))

    def _ordered(self, context_id: str) -> List[SummaryRecord]:
        # Newest first; insertion order breaks timestamp ties
        return sorted(
            self._summaries.get(context_id, []),
            key=lambda record: (record.timestamp, record.summary_id),
            reverse=True,
        )

    async def get_latest_summary(self, context_id: str) -> Optional[SummaryRecord]:
        await self.ensure_ready()
        ordered = self._ordered(context_id)
        return ordered[0] if ordered else None

    async def get_all_summaries(
        self, context_id: str, limit: Optional[int] = None
    ) -> List[SummaryRecord]:
        await self.ensure_ready()
        ordered = self._ordered(context_id)
        return ordered[:limit] if limit is not None else ordered

    async def delete_all_summaries(self, context_id: str) -> int:
        await self.ensure_ready()
        return len(self._summaries.pop(context_id, []))

    async def _release(self) -> None:
        self._summaries.clear()
