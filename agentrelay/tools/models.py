"""
AgentRelay Tool Models - Data structures for the tool system
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional


class SchemaType(str, Enum):
    """Parameter types understood by Gemini function declarations"""
    STRING = "STRING"
    NUMBER = "NUMBER"
    INTEGER = "INTEGER"
    BOOLEAN = "BOOLEAN"
    OBJECT = "OBJECT"
    ARRAY = "ARRAY"
    NULL = "NULL"
    ANY = "ANY"


# JSON-schema type names accepted when declaring tool parameters
PARAMETER_TYPES = ("string", "number", "integer", "boolean", "object", "array")


@dataclass
class FunctionCall:
    """A function call requested by the LLM"""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "args": self.args}


@dataclass
class ToolDefinition:
    """
    Definition of a tool that can be called by the LLM

    Attributes:
        name: Unique tool identifier within an agent (exact-match lookup)
        description: What the tool does (shown to LLM)
        parameters: JSON Schema for parameters
            ({"type": "object", "properties": {...}, "required": [...]})
        function: Callable receiving the argument dict. May be sync or async
            and may raise; errors are reported back to the LLM.

    Example:
        async def get_weather(args: dict) -> dict:
            return {"city": args["city"], "temp_c": 21}

        weather = ToolDefinition(
            name="get_weather",
            description="Get the current weather for a city",
            parameters={
                "type": "object",
                "properties": {
                    "city": {"type": "string", "description": "City name"}
                },
                "required": ["city"]
            },
            function=get_weather,
        )
    """
    name: str
    description: str
    parameters: Optional[Dict[str, Any]]
    function: Callable[[Dict[str, Any]], Any]

    def __post_init__(self):
        if not self.name:
            raise ValueError("Tool name is required")
        if not callable(self.function):
            raise ValueError(f"Tool '{self.name}' function must be callable")

    async def execute(self, args: Optional[Dict[str, Any]] = None) -> Any:
        """Run the tool function, awaiting it when it is a coroutine"""
        result = self.function(dict(args or {}))
        if inspect.isawaitable(result):
            result = await result
        return result

    def to_declaration(self) -> Dict[str, Any]:
        """Gemini function declaration for this tool"""
        from .schema import to_gemini_schema

        declaration: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
        }
        if self.parameters:
            declaration["parameters"] = to_gemini_schema(self.parameters)
        return declaration
