"""
AgentRelay Tool Decorator - Build tools from plain Python functions

The decorator extracts the tool name, description and parameter schema from
the function signature, its type hints and a Google-style docstring. The
LLM's argument dict is spread into keyword arguments.

Usage:
    from agentrelay.tools import tool

    @tool()
    async def convert_currency(amount: float, target: str = "EUR") -> dict:
        '''
        Convert an amount of USD into another currency

        Args:
            amount: Amount in US dollars
            target: ISO code of the target currency
        '''
        return {"amount": amount * 0.92, "currency": target}

    agent = Agent(..., tools=[convert_currency])
"""

import inspect
import logging
import re
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .models import ToolDefinition

logger = logging.getLogger(__name__)


# Type mapping from Python types to JSON Schema types
TYPE_MAPPING = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def _get_json_schema_for_type(python_type: Type) -> Dict[str, Any]:
    """Generate JSON Schema for a Python type"""
    origin = get_origin(python_type)

    if origin is Union:
        # Optional[X] is Union[X, None]
        non_none = [a for a in get_args(python_type) if a is not type(None)]
        if len(non_none) == 1:
            return _get_json_schema_for_type(non_none[0])
        return {"type": "string"}

    if origin in (list, List):
        args = get_args(python_type)
        if args:
            return {"type": "array", "items": _get_json_schema_for_type(args[0])}
        return {"type": "array", "items": {"type": "string"}}

    if origin in (dict, Dict):
        return {"type": "object"}

    if python_type is list:
        return {"type": "array", "items": {"type": "string"}}

    return {"type": TYPE_MAPPING.get(python_type, "string")}


def _parse_docstring(docstring: str) -> Dict[str, Any]:
    """
    Parse Google-style docstring to extract description and parameter docs.

    Returns:
        {"description": "Main description", "params": {"name": "doc", ...}}
    """
    result: Dict[str, Any] = {"description": "", "params": {}}
    if not docstring:
        return result

    state = "description"
    current_param = None
    description_lines: List[str] = []

    for line in inspect.cleandoc(docstring).split("\n"):
        stripped = line.strip()
        lowered = stripped.lower()

        if lowered in ("args:", "arguments:", "parameters:"):
            state = "args"
            continue
        if lowered in ("returns:", "return:", "raises:", "example:", "examples:", "note:", "notes:"):
            state = "other"
            continue

        if state == "description":
            if stripped:
                description_lines.append(stripped)
            elif description_lines:
                state = "post_description"
        elif state == "args":
            # "name: doc" or "name (type): doc"
            match = re.match(r"^\s*(\w+)(?:\s*\([^)]+\))?\s*:\s*(.*)$", line)
            if match:
                current_param = match.group(1)
                result["params"][current_param] = match.group(2).strip()
            elif current_param and stripped:
                result["params"][current_param] += " " + stripped

    result["description"] = " ".join(description_lines)
    return result


def _generate_parameters_schema(func: Callable, param_docs: Dict[str, str]) -> Dict[str, Any]:
    sig = inspect.signature(func)
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError) as e:
        logger.debug(f"Type hints unavailable for {func.__name__}: {e}")
        hints = {}

    properties: Dict[str, Any] = {}
    required: List[str] = []

    for name, param in sig.parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        param_type = hints.get(name, param.annotation)
        if param_type is inspect.Parameter.empty:
            param_type = str

        prop = _get_json_schema_for_type(param_type)
        if name in param_docs:
            prop["description"] = param_docs[name]

        if param.default is inspect.Parameter.empty:
            required.append(name)
        properties[name] = prop

    return {"type": "object", "properties": properties, "required": required}


def _make_caller(func: Callable) -> Callable[[Dict[str, Any]], Any]:
    """Adapt ``func(**kwargs)`` to the ``function(args)`` tool convention"""
    sig = inspect.signature(func)
    accepts_any = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values())
    accepted = set(sig.parameters)

    def call(args: Dict[str, Any]) -> Any:
        if accepts_any:
            return func(**args)
        return func(**{k: v for k, v in args.items() if k in accepted})

    return call


def tool(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Callable:
    """
    Decorator to turn a function into a tool.

    Supports both bare ``@tool`` and ``@tool(name=...)`` usage.

    Args:
        name: Tool name (default: function name)
        description: Tool description (default: docstring summary)

    The decorated function is returned unchanged apart from a
    ``_tool_definition`` attribute; agents accept it directly in their
    ``tools`` list.
    """

    def decorator(fn: Callable) -> Callable:
        tool_name = name or fn.__name__
        doc = _parse_docstring(fn.__doc__ or "")

        fn._tool_definition = ToolDefinition(
            name=tool_name,
            description=description or doc["description"] or f"Execute {tool_name}",
            parameters=_generate_parameters_schema(fn, doc["params"]),
            function=_make_caller(fn),
        )
        return fn

    if func is not None:
        return decorator(func)
    return decorator


def get_tool_definition(func: Callable) -> Optional[ToolDefinition]:
    """Get the ToolDefinition attached to a decorated function"""
    return getattr(func, "_tool_definition", None)


def as_tool_definition(obj: Any) -> ToolDefinition:
    """Accept a ToolDefinition or a @tool decorated function"""
    if isinstance(obj, ToolDefinition):
        return obj
    definition = get_tool_definition(obj)
    if definition is None:
        raise TypeError(
            f"Expected a ToolDefinition or a @tool decorated function, got {type(obj).__name__}"
        )
    return definition
