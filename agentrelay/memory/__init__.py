"""
AgentRelay Memory - Conversation, fact and summary persistence
"""

from .base import (
    Lifecycle,
    MemoryAdapter,
    ConversationMemoryAdapter,
    FactMemoryAdapter,
    SummaryMemoryAdapter,
)
from .in_memory import (
    InMemoryConversationMemoryAdapter,
    InMemoryFactMemoryAdapter,
    InMemorySummaryMemoryAdapter,
)
from .sqlite import (
    SQLiteConversationMemoryAdapter,
    SQLiteFactMemoryAdapter,
    SQLiteSummaryMemoryAdapter,
)
from .factory import MEMORY_TRACKS, MemoryTrackConfig, create_memory_adapter, get_adapter_class
from .curator import MemoryCurator, CurationResult, parse_curation

__all__ = [
    "Lifecycle",
    "MemoryAdapter",
    "ConversationMemoryAdapter",
    "FactMemoryAdapter",
    "SummaryMemoryAdapter",
    "InMemoryConversationMemoryAdapter",
    "InMemoryFactMemoryAdapter",
    "InMemorySummaryMemoryAdapter",
    "SQLiteConversationMemoryAdapter",
    "SQLiteFactMemoryAdapter",
    "SQLiteSummaryMemoryAdapter",
    "MEMORY_TRACKS",
    "MemoryTrackConfig",
    "create_memory_adapter",
    "get_adapter_class",
    "MemoryCurator",
    "CurationResult",
    "parse_curation",
]
