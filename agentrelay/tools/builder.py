"""
AgentRelay Tool Builder - Fluent construction of ToolDefinition objects

Usage:
    restaurant_search = (
        ToolBuilder()
        .create_tool("search_restaurants", "Find restaurants in a city")
        .add_parameter("city", "string", "City to search in", required=True)
        .add_parameter("cuisine", "string", "Type of cuisine")
        .add_enum_to_parameter("cuisine", ["italian", "japanese"])
        .set_function(search_restaurants)
        .build()
    )

    # Factory with default arguments merged into every call
    make_search = (
        ToolBuilder()
        .create_tool("search_restaurants", "Find restaurants")
        .add_parameter("city", "string", "City", required=True)
        .set_function(search_restaurants)
        .create_factory({"limit": 3})
    )
    tool = make_search({"limit": 5})
"""

import copy
import inspect
from typing import Any, Callable, Dict, List, Optional

from .models import PARAMETER_TYPES, ToolDefinition


class ToolBuilder:
    """Step-by-step builder for tools"""

    def __init__(self):
        self._reset()

    def _reset(self) -> None:
        self._name: Optional[str] = None
        self._description: Optional[str] = None
        self._properties: Dict[str, Dict[str, Any]] = {}
        self._required: List[str] = []
        self._function: Optional[Callable] = None

    def create_tool(self, name: str, description: str) -> "ToolBuilder":
        """Start a new tool definition, discarding anything built so far"""
        if not name or not isinstance(name, str):
            raise ValueError("Tool name must be a non-empty string")
        if not description or not isinstance(description, str):
            raise ValueError("Tool description must be a non-empty string")
        self._reset()
        self._name = name
        self._description = description
        return self

    def add_parameter(
        self,
        name: str,
        type: str,
        description: str,
        required: bool = False,
        enum: Optional[List[Any]] = None,
        items: Optional[Dict[str, Any]] = None,
    ) -> "ToolBuilder":
        """
        Add a parameter to the tool.

        Args:
            name: Parameter name
            type: JSON-schema type ("string", "number", "integer", "boolean",
                "object", "array")
            description: What the parameter means (shown to LLM)
            required: Whether the LLM must always supply it
            enum: Allowed values
            items: Item schema for array parameters
        """
        self._require_started()
        type_name = str(type).lower()
        if type_name not in PARAMETER_TYPES:
            raise ValueError(
                f"Unsupported parameter type '{type}'. Use one of: {', '.join(PARAMETER_TYPES)}"
            )

        prop: Dict[str, Any] = {"type": type_name, "description": description}
        if enum:
            prop["enum"] = list(enum)
        if type_name == "array":
            prop["items"] = dict(items) if items else {"type": "string"}
        self._properties[name] = prop

        if required and name not in self._required:
            self._required.append(name)
        return self

    def set_parameter_required(self, name: str, required: bool = True) -> "ToolBuilder":
        self._require_parameter(name)
        if required and name not in self._required:
            self._required.append(name)
        elif not required and name in self._required:
            self._required.remove(name)
        return self

    def add_enum_to_parameter(self, name: str, values: List[Any]) -> "ToolBuilder":
        self._require_parameter(name)
        if not values:
            raise ValueError("Enum values must be a non-empty list")
        self._properties[name]["enum"] = list(values)
        return self

    def set_function(self, function: Callable[[Dict[str, Any]], Any]) -> "ToolBuilder":
        self._require_started()
        if not callable(function):
            raise ValueError("Tool function must be callable")
        self._function = function
        return self

    def build(self) -> ToolDefinition:
        """Return the finished ToolDefinition and reset the builder"""
        tool = self._definition()
        self._reset()
        return tool

    def create_factory(
        self, default_config: Optional[Dict[str, Any]] = None
    ) -> Callable[..., ToolDefinition]:
        """
        Return a factory producing configured copies of the tool.

        Each produced tool calls the function with
        ``{**default_config, **config, **call_args}``: arguments sent by the
        LLM win over factory config, which wins over the defaults.
        """
        template = self._definition()
        defaults = dict(default_config or {})
        original = template.function

        def factory(config: Optional[Dict[str, Any]] = None) -> ToolDefinition:
            merged_config = {**defaults, **(config or {})}

            async def configured(args: Dict[str, Any]) -> Any:
                result = original({**merged_config, **(args or {})})
                if inspect.isawaitable(result):
                    result = await result
                return result

            return ToolDefinition(
                name=template.name,
                description=template.description,
                parameters=copy.deepcopy(template.parameters),
                function=configured,
            )

        return factory

    def _definition(self) -> ToolDefinition:
        self._require_started()
        if self._function is None:
            raise ValueError(
                "Tool function is not defined. Call set_function() to provide the implementation."
            )
        parameters = None
        if self._properties:
            parameters = {
                "type": "object",
                "properties": copy.deepcopy(self._properties),
                "required": list(self._required),
            }
        return ToolDefinition(
            name=self._name,
            description=self._description,
            parameters=parameters,
            function=self._function,
        )

    def _require_started(self) -> None:
        if self._name is None:
            raise ValueError("Call create_tool() before configuring the tool")

    def _require_parameter(self, name: str) -> None:
        self._require_started()
        if name not in self._properties:
            raise ValueError(f"Parameter '{name}' does not exist")
