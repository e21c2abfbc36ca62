"""
AgentRelay Tools - Tool definitions, registry, builders and routing signals
"""

from .models import FunctionCall, ToolDefinition, SchemaType, PARAMETER_TYPES
from .registry import ToolRegistry
from .schema import to_gemini_schema, to_json_schema, to_schema_type
from .builder import ToolBuilder
from .decorator import tool, get_tool_definition, as_tool_definition
from .signals import (
    SignalType,
    RequestSubConversation,
    EndSubConversation,
    SignalError,
    RoutingSignal,
    is_routing_signal,
    create_request_sub_conversation_tool,
    create_end_sub_conversation_tool,
)

__all__ = [
    "FunctionCall",
    "ToolDefinition",
    "SchemaType",
    "PARAMETER_TYPES",
    "ToolRegistry",
    "to_gemini_schema",
    "to_json_schema",
    "to_schema_type",
    "ToolBuilder",
    "tool",
    "get_tool_definition",
    "as_tool_definition",
    "SignalType",
    "RequestSubConversation",
    "EndSubConversation",
    "SignalError",
    "RoutingSignal",
    "is_routing_signal",
    "create_request_sub_conversation_tool",
    "create_end_sub_conversation_tool",
]
