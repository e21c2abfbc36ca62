"""
AgentRelay Tool Registry - Per-agent, ordered collection of tools
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..exceptions import DuplicateToolError
from .models import ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Ordered registry of the tools available to one agent.

    Unlike a process-wide registry, every agent owns its own instance so two
    agents can expose tools with the same name without clashing. Declaration
    order is preserved.

    Usage:
        registry = ToolRegistry([weather_tool])
        registry.register(calculator_tool)
        registry.get_tool("calculator")
        registry.get_declarations()   # Gemini function declarations
    """

    def __init__(self, tools: Optional[Iterable[ToolDefinition]] = None):
        self._tools: Dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool definition

        Raises:
            DuplicateToolError: If a tool with the same name already exists
        """
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def replace(self, tool: ToolDefinition) -> None:
        """Register a tool, overwriting any tool with the same name in place"""
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        """Unregister a tool by name. Returns False if it was not registered."""
        if name in self._tools:
            del self._tools[name]
            logger.debug(f"Unregistered tool: {name}")
            return True
        return False

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tool_names(self) -> List[str]:
        return list(self._tools)

    def get_declarations(self) -> List[Dict[str, Any]]:
        """Gemini function declarations for every registered tool, in order"""
        return [tool.to_declaration() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(list(self._tools.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._tools
