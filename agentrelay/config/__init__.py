"""
AgentRelay Config - YAML/pydantic configuration
"""

from .loader import (
    LLMSettings,
    AgentSettings,
    MemoryTrackSettings,
    MemorySettings,
    LoopSettings,
    DelegationSettings,
    RoutingSettings,
    RelaySettings,
    substitute_env,
    import_object,
    resolve_tool,
    resolve_specialists,
    load_settings,
    load_settings_from_dict,
)

__all__ = [
    "LLMSettings",
    "AgentSettings",
    "MemoryTrackSettings",
    "MemorySettings",
    "LoopSettings",
    "DelegationSettings",
    "RoutingSettings",
    "RelaySettings",
    "substitute_env",
    "import_object",
    "resolve_tool",
    "resolve_specialists",
    "load_settings",
    "load_settings_from_dict",
]
