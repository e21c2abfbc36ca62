"""
AgentRelay - Multi-agent dialogue routing for LLM applications

AgentRelay drives LLM agents through the function-call loop and moves the
conversation between a coordinator and specialist agents.

Key Features:
- Function-call resolution loop with iteration and per-tool time limits
- Conversational agents with pluggable history, fact and summary memory
- Same-turn delegation of tasks to specialist agents
- Sequential chains and LLM-led teams of agents, usable as tools
- Sub-conversation handoff between a coordinator and specialists
- Gemini and LiteLLM backends

Quick Start:
    from agentrelay import RoutingChatManager, LLMConfig, tool

    @tool
    async def check_availability(date: str, people: int) -> dict:
        '''Check table availability.

        Args:
            date: Reservation date (YYYY-MM-DD)
            people: Number of guests
        '''
        return {"available": True}

    manager = RoutingChatManager(
        llm_config=LLMConfig(model="gemini-2.0-flash-001"),
        agent_config={"role": "Coordinator", "context": "You route requests."},
        specialist_agents_config={
            "Booking": {
                "objective": "Book restaurant tables",
                "context": "You book tables.",
                "tools": [check_availability],
            },
        },
    )
    response = await manager.process_message("user-1", "Book a table for two")
    print(response.text)

From YAML:
    from agentrelay import RoutingChatManager, load_settings

    manager = RoutingChatManager.from_settings(load_settings("agentrelay.yaml"))
"""

__version__ = "0.1.0"

# Agents
from .agents import (
    Agent,
    LoopConfig,
    ChatAgent,
    AgentRegistry,
    SpecialistConfig,
    SequentialAgentChain,
    HierarchicalAgentOrchestrator,
    OrchestratorRegistry,
    create_delegation_tool,
    create_orchestrator_tool,
)

# Chat managers
from .chat import ChatManager, RoutingChatManager, RoutingMode, SessionState, PendingSpecialistResult

# Configuration
from .config import RelaySettings, load_settings, load_settings_from_dict

# Errors
from .exceptions import (
    AgentRelayError,
    ConfigurationError,
    DuplicateToolError,
    UnknownSpecialistError,
    MemoryAdapterError,
)

# LLM
from .llm import BaseLLMClient, LLMConfig, LLMResponse, GeminiClient, LiteLLMClient, create_llm_client

# Memory
from .memory import (
    InMemoryConversationMemoryAdapter,
    InMemoryFactMemoryAdapter,
    InMemorySummaryMemoryAdapter,
    SQLiteConversationMemoryAdapter,
    SQLiteFactMemoryAdapter,
    SQLiteSummaryMemoryAdapter,
    create_memory_adapter,
)

# Models
from .models import AgentResponse, ConversationMessage, SummaryRecord, LoopState

# Tools
from .tools import (
    FunctionCall,
    ToolDefinition,
    ToolRegistry,
    ToolBuilder,
    tool,
    RequestSubConversation,
    EndSubConversation,
    SignalError,
)

from .log import get_logger, configure_logging

__all__ = [
    "__version__",
    # Agents
    "Agent",
    "LoopConfig",
    "ChatAgent",
    "AgentRegistry",
    "SpecialistConfig",
    "SequentialAgentChain",
    "HierarchicalAgentOrchestrator",
    "OrchestratorRegistry",
    "create_delegation_tool",
    "create_orchestrator_tool",
    # Chat managers
    "ChatManager",
    "RoutingChatManager",
    "RoutingMode",
    "SessionState",
    "PendingSpecialistResult",
    # Configuration
    "RelaySettings",
    "load_settings",
    "load_settings_from_dict",
    # Errors
    "AgentRelayError",
    "ConfigurationError",
    "DuplicateToolError",
    "UnknownSpecialistError",
    "MemoryAdapterError",
    # LLM
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "GeminiClient",
    "LiteLLMClient",
    "create_llm_client",
    # Memory
    "InMemoryConversationMemoryAdapter",
    "InMemoryFactMemoryAdapter",
    "InMemorySummaryMemoryAdapter",
    "SQLiteConversationMemoryAdapter",
    "SQLiteFactMemoryAdapter",
    "SQLiteSummaryMemoryAdapter",
    "create_memory_adapter",
    # Models
    "AgentResponse",
    "ConversationMessage",
    "SummaryRecord",
    "LoopState",
    # Tools
    "FunctionCall",
    "ToolDefinition",
    "ToolRegistry",
    "ToolBuilder",
    "tool",
    "RequestSubConversation",
    "EndSubConversation",
    "SignalError",
    # Logging
    "get_logger",
    "configure_logging",
]
