"""
Tests for AgentRegistry and specialist delegation
"""

import pytest

from agentrelay.agents import Agent, AgentRegistry, ChatAgent, SpecialistConfig, create_delegation_tool
from agentrelay.constants import DELEGATE_TOOL_NAME
from agentrelay.exceptions import UnknownSpecialistError
from agentrelay.llm.base import LLMConfig
from agentrelay.tools import FunctionCall


class RecordingFactory:
    """llm_factory stub that records the configs it was asked for"""

    def __init__(self, make_llm):
        self.make_llm = make_llm
        self.configs = []

    def __call__(self, config: LLMConfig, provider=None):
        self.configs.append((config, provider))
        return self.make_llm(default=f"answer from {config.model}")


SPECIALISTS = {
    "Translator": {"objective": "Translate text", "context": "You translate."},
    "Researcher": {
        "objective": "Research",
        "context": "You research.",
        "llm_model_name": "gemini-1.5-pro",
        "llm_mode": "chat",
        "generation_config": {"temperature": 0.1, "seed": 7},
    },
}


# =============================================================================
# AgentRegistry
# =============================================================================


class TestAgentRegistry:

    def test_roles_and_configs(self):
        registry = AgentRegistry(SPECIALISTS, llm_factory=lambda c, p=None: None)
        assert registry.get_available_specialist_roles() == ["Translator", "Researcher"]
        config = registry.get_specialist_config("Translator")
        assert isinstance(config, SpecialistConfig)
        assert config.context == "You translate."
        assert registry.get_specialist_config("Missing") is None

    def test_llm_cache_key(self, make_llm):
        factory = RecordingFactory(make_llm)
        registry = AgentRegistry(SPECIALISTS, llm_factory=factory, default_model="gemini-2.0-flash-001")

        first = registry.get_specialist_llm("Translator")
        again = registry.get_specialist_llm("Translator")
        researcher = registry.get_specialist_llm("Researcher")

        assert first is again
        assert researcher is not first
        assert len(factory.configs) == 2
        assert set(registry._llm_cache) == {
            "Translator-oneshot-gemini-2.0-flash-001",
            "Researcher-chat-gemini-1.5-pro",
        }

    def test_generation_config_applied(self, make_llm):
        factory = RecordingFactory(make_llm)
        registry = AgentRegistry(SPECIALISTS, llm_factory=factory)
        registry.get_specialist_llm("Researcher")

        config, _ = factory.configs[0]
        assert config.model == "gemini-1.5-pro"
        assert config.temperature == 0.1
        assert config.extra == {"seed": 7}

    def test_default_model_from_env(self, make_llm, monkeypatch):
        monkeypatch.setenv("SPECIALIST_DEFAULT_MODEL", "gemini-custom")
        factory = RecordingFactory(make_llm)
        registry = AgentRegistry(SPECIALISTS, llm_factory=factory)
        registry.get_specialist_llm("Translator")
        assert factory.configs[0][0].model == "gemini-custom"

    def test_default_llm_shared_when_no_model(self, make_llm):
        shared = make_llm()
        factory = RecordingFactory(make_llm)
        registry = AgentRegistry(SPECIALISTS, llm_factory=factory, default_llm=shared)

        assert registry.get_specialist_llm("Translator") is shared
        assert registry.get_specialist_llm("Researcher") is not shared

    def test_agent_cache_and_force_new(self, make_llm):
        registry = AgentRegistry(SPECIALISTS, default_llm=make_llm())
        agent = registry.get_specialist_agent("Translator")
        assert isinstance(agent, Agent)
        assert agent.role == "Translator"
        assert registry.get_specialist_agent("Translator") is agent
        assert registry.get_specialist_agent("Translator", force_new=True) is not agent

    def test_changes_clear_caches(self, make_llm):
        factory = RecordingFactory(make_llm)
        registry = AgentRegistry(SPECIALISTS, llm_factory=factory)
        agent = registry.get_specialist_agent("Translator")

        registry.register_specialist("Writer", {"objective": "Write"})

        assert registry._llm_cache == {}
        assert registry._agent_cache == {}
        assert registry.get_specialist_agent("Translator") is not agent

    def test_unregister(self):
        registry = AgentRegistry(SPECIALISTS)
        assert registry.unregister_specialist("Translator") is True
        assert registry.unregister_specialist("Translator") is False
        assert registry.get_available_specialist_roles() == ["Researcher"]

    def test_unknown_role(self):
        registry = AgentRegistry(SPECIALISTS)
        with pytest.raises(UnknownSpecialistError) as exc_info:
            registry.get_specialist_agent("Chef")
        assert "Chef" in str(exc_info.value)

    def test_custom_agent_class(self, make_llm):
        class LoudAgent(Agent):
            pass

        registry = AgentRegistry(
            {"Loud": {"objective": "Shout", "agent_class": LoudAgent}}, default_llm=make_llm()
        )
        assert isinstance(registry.get_specialist_agent("Loud"), LoudAgent)


# =============================================================================
# Delegation tool
# =============================================================================


class TestDelegationTool:

    def test_schema_lists_roles(self):
        tool = create_delegation_tool(AgentRegistry(SPECIALISTS))
        assert tool.name == DELEGATE_TOOL_NAME
        assert tool.parameters["properties"]["specialist_role"]["enum"] == ["Translator", "Researcher"]
        assert tool.parameters["required"] == ["specialist_role", "task"]
        assert "Translator, Researcher" in tool.description

    @pytest.mark.asyncio
    async def test_runs_specialist(self, make_llm):
        specialist_llm = make_llm("good morning")
        registry = AgentRegistry(SPECIALISTS, default_llm=specialist_llm)
        tool = create_delegation_tool(registry)

        result = await tool.execute({"specialist_role": "Translator", "task": "Translate 'bom dia'"})

        assert result == "good morning"
        assert specialist_llm.prompts[0].endswith("**User Task:**\nTranslate 'bom dia'")
        assert specialist_llm.calls[0]["context"] == "You translate."

    @pytest.mark.asyncio
    async def test_unknown_role_raises(self):
        tool = create_delegation_tool(AgentRegistry(SPECIALISTS))
        with pytest.raises(UnknownSpecialistError):
            await tool.execute({"specialist_role": "Chef", "task": "cook"})

    @pytest.mark.asyncio
    async def test_missing_arguments(self):
        tool = create_delegation_tool(AgentRegistry(SPECIALISTS))
        with pytest.raises(ValueError):
            await tool.execute({"specialist_role": "Translator"})


class TestChatAgentDelegation:

    @pytest.mark.asyncio
    async def test_delegation_within_one_turn(self, make_llm):
        llm = make_llm(
            FunctionCall(DELEGATE_TOOL_NAME, {"specialist_role": "Translator", "task": "Translate 'obrigado'"}),
            "thank you",
            "The translation is 'thank you'.",
        )
        agent = ChatAgent(
            role="Assistant",
            llm=llm,
            enable_specialist_delegation=True,
            specialist_agents_config={"Translator": {"objective": "Translate", "context": "You translate."}},
        )

        response = await agent.process_user_message("How do I say obrigado?")

        assert response.text == "The translation is 'thank you'."
        assert response.signal is None
        assert llm.calls[1]["context"] == "You translate."
        assert llm.calls[2]["prompt"] == 'Resultado da função delegate_task_to_specialist: "thank you"'

    @pytest.mark.asyncio
    async def test_unknown_role_fed_back(self, make_llm):
        llm = make_llm(
            FunctionCall(DELEGATE_TOOL_NAME, {"specialist_role": "Chef", "task": "cook"}),
            "I can't do that.",
        )
        agent = ChatAgent(
            role="Assistant",
            llm=llm,
            enable_specialist_delegation=True,
            specialist_agents_config={"Translator": {"objective": "Translate"}},
        )

        response = await agent.process_user_message("Cook for me")

        assert response.text == "I can't do that."
        assert "Especialista 'Chef' não encontrado" in llm.calls[1]["prompt"]

    def test_register_specialist_refreshes_tool(self, make_llm):
        agent = ChatAgent(role="Assistant", llm=make_llm(), enable_specialist_delegation=True)
        assert agent.get_available_specialist_roles() == []

        agent.register_specialist("Translator", {"objective": "Translate"})

        assert agent.get_available_specialist_roles() == ["Translator"]
        tool = agent.find_tool(DELEGATE_TOOL_NAME)
        assert tool.parameters["properties"]["specialist_role"]["enum"] == ["Translator"]
        assert agent.tools.get_tool_names().count(DELEGATE_TOOL_NAME) == 1

    def test_shared_registry(self, make_llm):
        registry = AgentRegistry(SPECIALISTS)
        agent = ChatAgent(
            role="Assistant", llm=make_llm(), enable_specialist_delegation=True, agent_registry=registry
        )
        assert agent.agent_registry is registry
        assert agent.get_available_specialist_roles() == ["Translator", "Researcher"]
