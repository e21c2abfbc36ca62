"""
SQLite memory adapters backed by aiosqlite

Each operation opens its own connection, so several adapters (and several
processes) can share one database file. Tables are created on first use.
An in-memory database (":memory:") does not survive between operations;
use a file path.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiosqlite

from ..models import ConversationMessage, SummaryRecord, as_utc, utcnow
from .base import ConversationMemoryAdapter, FactMemoryAdapter, SummaryMemoryAdapter

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "agentrelay.db"


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return utcnow()
    return as_utc(datetime.fromisoformat(value))


class _SQLiteAdapterMixin:
    """Connection settings shared by the SQLite adapters"""

    db_path: str

    def _connect(self):
        return aiosqlite.connect(self.db_path)


class SQLiteConversationMemoryAdapter(_SQLiteAdapterMixin, ConversationMemoryAdapter):

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        super().__init__()
        self.db_path = db_path

    async def _initialize(self) -> None:
        async with self._connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS chat_history (
                    chat_id TEXT NOT NULL,
                    message_index INTEGER NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    PRIMARY KEY (chat_id, message_index)
                )
            """)
            await db.commit()
        logger.debug(f"chat_history table ready in {self.db_path}")

    async def load_history(self, chat_id: str) -> List[ConversationMessage]:
        await self.ensure_ready()
        async with self._connect() as db:
            async with db.execute(
                "SELECT role, content, timestamp FROM chat_history "
                "WHERE chat_id = ? ORDER BY message_index ASC",
                (chat_id,)
            ) as cursor:
                rows = await cursor.fetchall()
        return [
            ConversationMessage(role=role, content=content, timestamp=_parse_timestamp(ts))
            for role, content, ts in rows
        ]

    async def append_message(self, chat_id: str, role: str, content: str) -> None:
        await self.ensure_ready()
        async with self._connect() as db:
            # Index allocation and insert happen in one statement so concurrent
            # writers on the same file cannot pick the same index.
            await db.execute(
                """
                INSERT INTO chat_history (chat_id, message_index, role, content, timestamp)
                SELECT ?, COALESCE(MAX(message_index), -1) + 1, ?, ?, ?
                FROM chat_history WHERE chat_id = ?
                """,
                (chat_id, role, content, utcnow().isoformat(), chat_id)
            )
            await db.commit()

    async def clear_history(self, chat_id: str) -> None:
        await self.ensure_ready()
        async with self._connect() as db:
            await db.execute("DELETE FROM chat_history WHERE chat_id = ?", (chat_id,))
            await db.commit()


class SQLiteFactMemoryAdapter(_SQLiteAdapterMixin, FactMemoryAdapter):
    """Fact values are stored as JSON text"""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        super().__init__()
        self.db_path = db_path

    async def _initialize(self) -> None:
        async with self._connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS facts (
                    context_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT,
                    timestamp TEXT NOT NULL,
                    PRIMARY KEY (context_id, key)
                )
            """)
            await db.commit()

    async def set_fact(self, context_id: str, key: str, value: Any) -> None:
        await self.ensure_ready()
        async with self._connect() as db:
            await db.execute(
                "REPLACE INTO facts (context_id, key, value, timestamp) VALUES (?, ?, ?, ?)",
                (context_id, key, json.dumps(value, ensure_ascii=False, default=str), utcnow().isoformat())
            )
            await db.commit()

    async def get_fact(self, context_id: str, key: str) -> Optional[Any]:
        await self.ensure_ready()
        async with self._connect() as db:
            async with db.execute(
                "SELECT value FROM facts WHERE context_id = ? AND key = ?",
                (context_id, key)
            ) as cursor:
                row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return json.loads(row[0])

    async def get_all_facts(self, context_id: str) -> Dict[str, Any]:
        await self.ensure_ready()
        async with self._connect() as db:
            async with db.execute(
                "SELECT key, value FROM facts WHERE context_id = ? ORDER BY key",
                (context_id,)
            ) as cursor:
                rows = await cursor.fetchall()
        return {key: json.loads(value) if value is not None else None for key, value in rows}

    async def delete_fact(self, context_id: str, key: str) -> bool:
        await self.ensure_ready()
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM facts WHERE context_id = ? AND key = ?",
                (context_id, key)
            )
            await db.commit()
            return cursor.rowcount > 0

    async def delete_all_facts(self, context_id: str) -> int:
        await self.ensure_ready()
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM facts WHERE context_id = ?", (context_id,))
            await db.commit()
            return cursor.rowcount


class SQLiteSummaryMemoryAdapter(_SQLiteAdapterMixin, SummaryMemoryAdapter):

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        super().__init__()
        self.db_path = db_path

    async def _initialize(self) -> None:
        async with self._connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS summaries (
                    summary_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    context_id TEXT NOT NULL,
                    summary_content TEXT NOT NULL,
                    timestamp TEXT NOT NULL
                )
            """)
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_summaries_context_timestamp "
                "ON summaries (context_id, timestamp DESC)"
            )
            await db.commit()

    async def add_summary(
        self, context_id: str, content: str, timestamp: Optional[datetime] = None
    ) -> None:
        await self.ensure_ready()
        stamp = as_utc(timestamp) if timestamp else utcnow()
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO summaries (context_id, summary_content, timestamp) VALUES (?, ?, ?)",
                (context_id, content, stamp.isoformat())
            )
            await db.commit()

    async def get_latest_summary(self, context_id: str) -> Optional[SummaryRecord]:
        summaries = await self.get_all_summaries(context_id, limit=1)
        return summaries[0] if summaries else None

    async def get_all_summaries(
        self, context_id: str, limit: Optional[int] = None
    ) -> List[SummaryRecord]:
        await self.ensure_ready()
        query = (
            "SELECT summary_id, summary_content, timestamp FROM summaries "
            "WHERE context_id = ? ORDER BY timestamp DESC, summary_id DESC"
        )
        params: tuple = (context_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (context_id, limit)

        async with self._connect() as db:
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        return [
            SummaryRecord(content=content, timestamp=_parse_timestamp(ts), summary_id=summary_id)
            for summary_id, content, ts in rows
        ]

    async def delete_all_summaries(self, context_id: str) -> int:
        await self.ensure_ready()
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM summaries WHERE context_id = ?", (context_id,))
            await db.commit()
            return cursor.rowcount
