"""
Memory adapter lookup by type name

Configuration refers to adapters by class name
(e.g. ``SQLiteConversationMemoryAdapter``) or by a short alias
(``sqlite``/``memory``) combined with the track it is used for.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

from ..exceptions import ConfigurationError
from .base import (
    ConversationMemoryAdapter,
    FactMemoryAdapter,
    MemoryAdapter,
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

MEMORY_TRACKS = ("conversation", "fact", "summary")

ADAPTER_CLASSES: Dict[str, Type[MemoryAdapter]] = {
    cls.__name__: cls
    for cls in (
        InMemoryConversationMemoryAdapter,
        InMemoryFactMemoryAdapter,
        InMemorySummaryMemoryAdapter,
        SQLiteConversationMemoryAdapter,
        SQLiteFactMemoryAdapter,
        SQLiteSummaryMemoryAdapter,
    )
}

_ALIASES: Dict[str, Dict[str, Type[MemoryAdapter]]] = {
    "memory": {
        "conversation": InMemoryConversationMemoryAdapter,
        "fact": InMemoryFactMemoryAdapter,
        "summary": InMemorySummaryMemoryAdapter,
    },
    "sqlite": {
        "conversation": SQLiteConversationMemoryAdapter,
        "fact": SQLiteFactMemoryAdapter,
        "summary": SQLiteSummaryMemoryAdapter,
    },
}


@dataclass
class MemoryTrackConfig:
    """Adapter type name plus the keyword arguments used to build it"""
    type: str
    db_config: Dict[str, Any] = field(default_factory=dict)


def get_adapter_class(type_name: str, track: Optional[str] = None) -> Type[MemoryAdapter]:
    if type_name in ADAPTER_CLASSES:
        return ADAPTER_CLASSES[type_name]
    alias = _ALIASES.get(type_name.lower())
    if alias is not None and track in alias:
        return alias[track]
    raise ConfigurationError(f"Unknown memory adapter type: {type_name}")


def create_memory_adapter(
    type_name: str,
    db_config: Optional[Dict[str, Any]] = None,
    track: Optional[str] = None,
) -> MemoryAdapter:
    """
    Build a memory adapter.

    Args:
        type_name: Adapter class name or alias ("sqlite", "memory")
        db_config: Keyword arguments for the adapter (e.g. {"db_path": "chat.db"})
        track: "conversation", "fact" or "summary"; needed for aliases and
            checked against the adapter's kind
    """
    cls = get_adapter_class(type_name, track)
    if track is not None:
        _check_track(cls, track)
    try:
        return cls(**(db_config or {}))
    except TypeError as e:
        raise ConfigurationError(f"Invalid db_config for {cls.__name__}: {e}") from e


def _check_track(cls: Type[MemoryAdapter], track: str) -> None:
    expected = {
        "conversation": ConversationMemoryAdapter,
        "fact": FactMemoryAdapter,
        "summary": SummaryMemoryAdapter,
    }.get(track)
    if expected is None:
        raise ConfigurationError(f"Unknown memory track '{track}'. Use one of: {', '.join(MEMORY_TRACKS)}")
    if not issubclass(cls, expected):
        raise ConfigurationError(f"{cls.__name__} cannot be used as {track} memory")
