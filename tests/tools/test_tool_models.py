"""
Tests for AgentRelay tool definitions, schema conversion and ToolRegistry
"""

import pytest

from agentrelay.exceptions import DuplicateToolError
from agentrelay.tools import (
    FunctionCall,
    SchemaType,
    ToolDefinition,
    ToolRegistry,
    to_gemini_schema,
    to_json_schema,
    to_schema_type,
)


def _tool(name="echo", function=None, parameters=None):
    return ToolDefinition(
        name=name,
        description=f"{name} tool",
        parameters=parameters,
        function=function or (lambda args: args),
    )


# =============================================================================
# ToolDefinition
# =============================================================================


class TestToolDefinition:

    def test_requires_name(self):
        with pytest.raises(ValueError):
            _tool(name="")

    def test_requires_callable(self):
        with pytest.raises(ValueError):
            ToolDefinition(name="x", description="x", parameters=None, function="nope")

    @pytest.mark.asyncio
    async def test_execute_sync_function(self):
        tool = _tool(function=lambda args: args["a"] + args["b"])
        assert await tool.execute({"a": 2, "b": 3}) == 5

    @pytest.mark.asyncio
    async def test_execute_async_function(self):
        async def lookup(args):
            return {"city": args["city"], "temp_c": 21}

        tool = _tool(function=lookup)
        assert await tool.execute({"city": "Lisbon"}) == {"city": "Lisbon", "temp_c": 21}

    @pytest.mark.asyncio
    async def test_execute_defaults_to_empty_args(self):
        tool = _tool(function=lambda args: args)
        assert await tool.execute(None) == {}

    @pytest.mark.asyncio
    async def test_execute_passes_a_copy(self):
        original = {"a": 1}

        def mutate(args):
            args["a"] = 99
            return args

        await _tool(function=mutate).execute(original)
        assert original == {"a": 1}

    def test_declaration_converts_types(self):
        tool = _tool(parameters={
            "type": "object",
            "properties": {"city": {"type": "string", "description": "City"}},
            "required": ["city"],
        })
        declaration = tool.to_declaration()
        assert declaration["name"] == "echo"
        assert declaration["description"] == "echo tool"
        assert declaration["parameters"]["type"] == "OBJECT"
        assert declaration["parameters"]["properties"]["city"]["type"] == "STRING"
        assert declaration["parameters"]["required"] == ["city"]

    def test_declaration_without_parameters(self):
        assert "parameters" not in _tool().to_declaration()

    def test_function_call_to_dict(self):
        assert FunctionCall("f", {"x": 1}).to_dict() == {"name": "f", "args": {"x": 1}}


# =============================================================================
# Schema conversion
# =============================================================================


class TestSchemaConversion:

    @pytest.mark.parametrize("value,expected", [
        ("string", "STRING"),
        ("NUMBER", "NUMBER"),
        ("integer", "INTEGER"),
        ("boolean", "BOOLEAN"),
        ("object", "OBJECT"),
        ("array", "ARRAY"),
        ("date", "ANY"),
        (None, "ANY"),
        (SchemaType.STRING, "STRING"),
    ])
    def test_to_schema_type(self, value, expected):
        assert to_schema_type(value) == expected

    def test_nested_properties_and_items(self):
        schema = {
            "type": "object",
            "properties": {
                "guests": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"name": {"type": "string"}, "age": {"type": "integer"}},
                    },
                },
            },
        }
        converted = to_gemini_schema(schema)
        guests = converted["properties"]["guests"]
        assert guests["type"] == "ARRAY"
        assert guests["items"]["type"] == "OBJECT"
        assert guests["items"]["properties"]["name"]["type"] == "STRING"
        assert guests["items"]["properties"]["age"]["type"] == "INTEGER"

    def test_input_is_not_mutated(self):
        schema = {"type": "object", "properties": {"x": {"type": "string"}}}
        to_gemini_schema(schema)
        assert schema["type"] == "object"
        assert schema["properties"]["x"]["type"] == "string"

    def test_empty_schema(self):
        assert to_gemini_schema(None) is None
        assert to_gemini_schema({}) is None

    def test_enum_is_preserved(self):
        converted = to_gemini_schema({"type": "string", "enum": ["a", "b"]})
        assert converted == {"type": "STRING", "enum": ["a", "b"]}

    def test_json_schema_lowercases_and_drops_any(self):
        converted = to_json_schema({
            "type": "OBJECT",
            "properties": {"x": {"type": "STRING"}, "y": {"type": "ANY"}},
        })
        assert converted["type"] == "object"
        assert converted["properties"]["x"] == {"type": "string"}
        assert converted["properties"]["y"] == {}

    def test_json_schema_default(self):
        assert to_json_schema(None) == {"type": "object", "properties": {}}


# =============================================================================
# ToolRegistry
# =============================================================================


class TestToolRegistry:

    def test_register_and_lookup(self):
        registry = ToolRegistry([_tool("a"), _tool("b")])
        assert registry.get_tool_names() == ["a", "b"]
        assert registry.get_tool("a").name == "a"
        assert registry.get_tool("missing") is None
        assert registry.has_tool("b")
        assert "b" in registry
        assert len(registry) == 2

    def test_lookup_is_exact_match(self):
        registry = ToolRegistry([_tool("get_weather")])
        assert registry.get_tool("Get_Weather") is None
        assert registry.get_tool("get_weather ") is None

    def test_duplicate_name_raises(self):
        registry = ToolRegistry([_tool("a")])
        with pytest.raises(DuplicateToolError) as exc_info:
            registry.register(_tool("a"))
        assert exc_info.value.name == "a"

    def test_duplicate_error_is_value_error(self):
        with pytest.raises(ValueError):
            ToolRegistry([_tool("a"), _tool("a")])

    def test_replace_keeps_position(self):
        registry = ToolRegistry([_tool("a"), _tool("b")])
        replacement = _tool("a", function=lambda args: "new")
        registry.replace(replacement)
        assert registry.get_tool_names() == ["a", "b"]
        assert registry.get_tool("a") is replacement

    def test_unregister(self):
        registry = ToolRegistry([_tool("a")])
        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert len(registry) == 0

    def test_declarations_in_order(self):
        registry = ToolRegistry([_tool("b"), _tool("a")])
        assert [d["name"] for d in registry.get_declarations()] == ["b", "a"]

    def test_iteration(self):
        registry = ToolRegistry([_tool("a"), _tool("b")])
        assert [t.name for t in registry] == ["a", "b"]
