"""
Tests for ToolBuilder
"""

import pytest

from agentrelay.tools import ToolBuilder, ToolDefinition


def search(args):
    return {"query": args}


class TestToolBuilder:

    def test_build_full_tool(self):
        tool = (
            ToolBuilder()
            .create_tool("search_restaurants", "Find restaurants in a city")
            .add_parameter("city", "string", "City to search in", required=True)
            .add_parameter("cuisine", "string", "Type of cuisine")
            .add_enum_to_parameter("cuisine", ["italian", "japanese"])
            .add_parameter("tags", "array", "Tags")
            .set_function(search)
            .build()
        )

        assert isinstance(tool, ToolDefinition)
        assert tool.name == "search_restaurants"
        props = tool.parameters["properties"]
        assert props["city"] == {"type": "string", "description": "City to search in"}
        assert props["cuisine"]["enum"] == ["italian", "japanese"]
        assert props["tags"]["items"] == {"type": "string"}
        assert tool.parameters["required"] == ["city"]

    def test_no_parameters(self):
        tool = ToolBuilder().create_tool("ping", "Ping").set_function(search).build()
        assert tool.parameters is None

    def test_unsupported_type_rejected(self):
        builder = ToolBuilder().create_tool("t", "T")
        with pytest.raises(ValueError, match="Unsupported parameter type"):
            builder.add_parameter("when", "date", "A date")

    def test_parameter_type_case_insensitive(self):
        tool = (
            ToolBuilder().create_tool("t", "T")
            .add_parameter("n", "INTEGER", "A number")
            .set_function(search)
            .build()
        )
        assert tool.parameters["properties"]["n"]["type"] == "integer"

    def test_requires_create_tool_first(self):
        with pytest.raises(ValueError):
            ToolBuilder().add_parameter("x", "string", "x")

    def test_build_requires_function(self):
        with pytest.raises(ValueError, match="set_function"):
            ToolBuilder().create_tool("t", "T").build()

    def test_create_tool_validates_inputs(self):
        with pytest.raises(ValueError):
            ToolBuilder().create_tool("", "desc")
        with pytest.raises(ValueError):
            ToolBuilder().create_tool("name", "")

    def test_set_parameter_required_toggles(self):
        builder = (
            ToolBuilder().create_tool("t", "T")
            .add_parameter("a", "string", "A")
            .set_parameter_required("a")
        )
        assert builder._required == ["a"]
        builder.set_parameter_required("a", False)
        assert builder._required == []

    def test_unknown_parameter_rejected(self):
        builder = ToolBuilder().create_tool("t", "T")
        with pytest.raises(ValueError, match="does not exist"):
            builder.set_parameter_required("missing")
        with pytest.raises(ValueError, match="does not exist"):
            builder.add_enum_to_parameter("missing", ["x"])

    def test_empty_enum_rejected(self):
        builder = ToolBuilder().create_tool("t", "T").add_parameter("a", "string", "A")
        with pytest.raises(ValueError):
            builder.add_enum_to_parameter("a", [])

    def test_build_resets_builder(self):
        builder = ToolBuilder().create_tool("t", "T").set_function(search)
        builder.build()
        with pytest.raises(ValueError):
            builder.build()


class TestToolFactory:

    @pytest.mark.asyncio
    async def test_factory_merges_config(self):
        calls = []

        def record(args):
            calls.append(args)
            return "done"

        factory = (
            ToolBuilder()
            .create_tool("search", "Search")
            .add_parameter("query", "string", "Query", required=True)
            .set_function(record)
            .create_factory({"limit": 3, "lang": "pt"})
        )
        tool = factory({"limit": 5})

        assert await tool.execute({"query": "sushi", "lang": "en"}) == "done"
        assert calls == [{"limit": 5, "lang": "en", "query": "sushi"}]

    @pytest.mark.asyncio
    async def test_factory_supports_async_functions(self):
        async def run(args):
            return args["limit"]

        factory = ToolBuilder().create_tool("s", "S").set_function(run).create_factory({"limit": 1})
        assert await factory().execute({}) == 1

    def test_factory_copies_parameters(self):
        factory = (
            ToolBuilder().create_tool("s", "S")
            .add_parameter("q", "string", "Q")
            .set_function(search)
            .create_factory()
        )
        first, second = factory(), factory()
        first.parameters["properties"]["q"]["description"] = "changed"
        assert second.parameters["properties"]["q"]["description"] == "Q"
