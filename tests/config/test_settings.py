"""
Tests for YAML configuration loading
"""

import textwrap

import pytest

from agentrelay.chat import RoutingChatManager
from agentrelay.config import (
    RelaySettings,
    import_object,
    load_settings,
    load_settings_from_dict,
    resolve_tool,
    substitute_env,
)
from agentrelay.exceptions import ConfigurationError
from agentrelay.tools import ToolDefinition


TOOLS_MODULE = '''
from agentrelay.tools import ToolDefinition, tool


@tool
def get_weather(city: str) -> dict:
    """Get the weather for a city"""
    return {"city": city, "temp_c": 21}


search = ToolDefinition(
    name="search",
    description="Search the web",
    parameters=None,
    function=lambda args: [],
)

not_a_tool = 42
'''


@pytest.fixture
def tools_module(tmp_path, monkeypatch):
    (tmp_path / "relay_test_tools.py").write_text(TOOLS_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    return "relay_test_tools"


def write_yaml(tmp_path, content, name="relay.yaml"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


# =============================================================================
# Environment substitution
# =============================================================================


class TestSubstituteEnv:

    def test_nested_values(self, monkeypatch):
        monkeypatch.setenv("DATA_DIR", "/var/data")
        result = substitute_env({
            "path": "${DATA_DIR}/chat.db",
            "list": ["${DATA_DIR}", 3],
            "flag": True,
        })
        assert result == {"path": "/var/data/chat.db", "list": ["/var/data", 3], "flag": True}

    def test_default_and_missing(self, monkeypatch):
        monkeypatch.delenv("RELAY_UNSET", raising=False)
        assert substitute_env("${RELAY_UNSET:-fallback}") == "fallback"
        assert substitute_env("x${RELAY_UNSET}y") == "xy"

    def test_set_variable_wins_over_default(self, monkeypatch):
        monkeypatch.setenv("RELAY_MODEL", "gemini-1.5-pro")
        assert substitute_env("${RELAY_MODEL:-gemini-2.0-flash-001}") == "gemini-1.5-pro"


# =============================================================================
# Imports and tools
# =============================================================================


class TestToolResolution:

    def test_decorated_function(self, tools_module):
        definition = resolve_tool(f"{tools_module}:get_weather")
        assert isinstance(definition, ToolDefinition)
        assert definition.name == "get_weather"

    def test_dotted_path(self, tools_module):
        assert resolve_tool(f"{tools_module}.search").name == "search"

    def test_objects_pass_through(self, tools_module):
        search = import_object(f"{tools_module}:search")
        assert resolve_tool(search) is search

    @pytest.mark.parametrize("path", [
        "relay_missing_module:thing",
        "relay_test_tools:missing",
        "nomodule",
    ])
    def test_bad_paths(self, tools_module, path):
        with pytest.raises(ConfigurationError):
            import_object(path)

    def test_not_a_tool(self, tools_module):
        with pytest.raises(ConfigurationError):
            resolve_tool(f"{tools_module}:not_a_tool")


# =============================================================================
# Loading
# =============================================================================


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings_from_dict({})
        assert isinstance(settings, RelaySettings)
        assert settings.llm.provider == "gemini"
        assert settings.loop.max_iterations == 10
        assert settings.memory.tracks() == {}
        assert settings.share_memory_instances is True

    def test_full_file(self, tmp_path, monkeypatch, tools_module):
        monkeypatch.setenv("RELAY_TEST_KEY", "secret")
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        path = write_yaml(tmp_path, f"""
            llm:
              provider: openai
              model: gpt-4o-mini
              api_key_env: RELAY_TEST_KEY
              temperature: 0.2
            agent:
              role: Coordinator
              context: Route requests.
              tools: ["{tools_module}:get_weather"]
            memory:
              conversation:
                type: sqlite
                db_config: {{db_path: "${{DATA_DIR}}/chat.db"}}
            share_memory_instances: false
            routing:
              specialists:
                Booking:
                  objective: Book tables
                  context: You book tables.
                  tools: ["{tools_module}:search"]
            loop:
              max_iterations: 5
              tool_timeout: 2.5
        """)

        settings = load_settings(path)

        llm_config = settings.llm.to_llm_config()
        assert llm_config.api_key == "secret"
        assert llm_config.model == "gpt-4o-mini"
        assert llm_config.temperature == 0.2
        assert settings.memory.conversation.db_config == {"db_path": f"{tmp_path}/chat.db"}
        assert settings.share_memory_instances is False
        assert [t.name for t in settings.agent.resolve_tools()] == ["get_weather"]
        assert settings.loop.tool_timeout == 2.5

    def test_routing_manager_from_file(self, tmp_path, make_llm, tools_module):
        path = write_yaml(tmp_path, f"""
            agent:
              role: Coordinator
            memory:
              conversation: {{type: memory}}
            routing:
              specialists:
                Booking:
                  objective: Book tables
                  tools: ["{tools_module}:search"]
        """)

        manager = RoutingChatManager.from_settings(load_settings(path), llm=make_llm())

        assert manager.get_available_specialist_roles() == ["Booking"]
        config = manager.agent_registry.get_specialist_config("Booking")
        assert [t.name for t in config.tools] == ["search"]
        coordinator = manager.get_or_create_session("s1")
        assert coordinator.find_tool("request_specialist_sub_conversation") is not None

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = write_yaml(tmp_path, "llm: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_settings(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = write_yaml(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_validation_error(self):
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_settings_from_dict({"loop": {"max_iterations": "many"}})

    def test_empty_file(self, tmp_path):
        path = write_yaml(tmp_path, "")
        assert load_settings(path).agent.role == "Assistant"
