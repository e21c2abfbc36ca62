"""
AgentRelay Agents - task agents, conversational agents and specialists
"""

from .agent import Agent, LoopConfig, ToolOutcome
from .chat_agent import ChatAgent
from .registry import AgentRegistry, SpecialistConfig
from .delegation import create_delegation_tool
from .chain import SequentialAgentChain, ChainStep
from .orchestrator import HierarchicalAgentOrchestrator, OrchestratorRegistry, create_orchestrator_tool

__all__ = [
    "Agent",
    "LoopConfig",
    "ToolOutcome",
    "ChatAgent",
    "AgentRegistry",
    "SpecialistConfig",
    "create_delegation_tool",
    "SequentialAgentChain",
    "ChainStep",
    "HierarchicalAgentOrchestrator",
    "OrchestratorRegistry",
    "create_orchestrator_tool",
]
