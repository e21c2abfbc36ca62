"""
Tests for ChatManager: session isolation, memory wiring and lifecycle
"""

import asyncio
import logging

import pytest

from agentrelay.chat import ChatManager
from agentrelay.config import load_settings_from_dict
from agentrelay.constants import SESSION_ERROR_MESSAGE
from agentrelay.exceptions import ConfigurationError
from agentrelay.llm import LLMConfig, LLMResponse
from agentrelay.memory import (
    InMemoryConversationMemoryAdapter,
    Lifecycle,
    SQLiteConversationMemoryAdapter,
)
from agentrelay.models import LoopState
from agentrelay.tools import FunctionCall, tool


IN_MEMORY = {
    "conversation": {"type": "memory"},
    "fact": {"type": "memory"},
    "summary": {"type": "memory"},
}


def sqlite_config(tmp_path):
    db_config = {"db_path": str(tmp_path / "chat.db")}
    return {
        "conversation": {"type": "sqlite", "db_config": db_config},
        "fact": {"type": "sqlite", "db_config": db_config},
        "summary": {"type": "sqlite", "db_config": db_config},
    }


@tool
def lookup_order(order_id: str) -> dict:
    """Look up an order"""
    return {"order_id": order_id, "status": "shipped"}


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:

    def test_requires_llm(self):
        with pytest.raises(ConfigurationError):
            ChatManager()

    def test_builds_client_from_config(self):
        manager = ChatManager(llm_config=LLMConfig(model="gpt-4o-mini", api_key="k"), llm_provider="openai")
        assert manager.llm.provider == "openai"

    def test_unknown_agent_option(self, make_llm):
        with pytest.raises(ConfigurationError, match="temperature"):
            ChatManager(llm=make_llm(), agent_config={"role": "A", "temperature": 0.3})

    def test_unknown_memory_track(self, make_llm):
        with pytest.raises(ConfigurationError):
            ChatManager(llm=make_llm(), memory_config={"episodic": {"type": "memory"}})

    def test_unknown_adapter_type_fails_fast(self, make_llm):
        with pytest.raises(ConfigurationError):
            ChatManager(llm=make_llm(), memory_config={"fact": {"type": "redis"}})
        with pytest.raises(ConfigurationError):
            ChatManager(
                llm=make_llm(),
                memory_config={"fact": {"type": "redis"}},
                share_memory_instances=False,
            )

    def test_memory_type_shorthand(self, make_llm):
        manager = ChatManager(llm=make_llm(), memory_config={"conversation": "memory"})
        assert isinstance(manager._shared_adapters["conversation"], InMemoryConversationMemoryAdapter)


# =============================================================================
# Sessions
# =============================================================================


class TestSessions:

    @pytest.mark.asyncio
    async def test_session_id_is_chat_id(self, make_llm):
        manager = ChatManager(llm=make_llm(), memory_config=IN_MEMORY)
        agent = manager.get_or_create_session("user-1")

        assert agent.chat_id == "user-1"
        assert manager.get_or_create_session("user-1") is agent
        assert manager.get_active_session_ids() == ["user-1"]
        assert manager.has_session("user-1")

    @pytest.mark.asyncio
    async def test_agent_config_and_session_options(self, make_llm):
        manager = ChatManager(
            llm=make_llm(),
            agent_config={"role": "Support", "context": "Be kind.", "tools": [lookup_order]},
        )
        default = manager.get_or_create_session("a")
        custom = manager.get_or_create_session("b", {"context": "Be brief."})

        assert default.role == "Support"
        assert default.context == "Be kind."
        assert custom.context == "Be brief."
        assert custom.find_tool("lookup_order") is not None

    def test_bad_session_option(self, make_llm):
        manager = ChatManager(llm=make_llm())
        with pytest.raises(ConfigurationError):
            manager.get_or_create_session("a", {"model": "x"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("session_id", ["", "   ", None, 42])
    async def test_invalid_session_id(self, make_llm, session_id):
        manager = ChatManager(llm=make_llm())
        with pytest.raises(ValueError):
            await manager.process_message(session_id, "hi")

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, make_llm):
        llm = make_llm("hi alice", "hi bob", "still alice")
        manager = ChatManager(llm=llm, memory_config=IN_MEMORY)

        await manager.process_message("alice", "I'm Alice")
        await manager.process_message("bob", "I'm Bob")
        response = await manager.process_message("alice", "Who am I?")

        assert response.text == "still alice"
        assert llm.calls[2]["history"] == [
            {"role": "user", "parts": [{"text": "I'm Alice"}]},
            {"role": "model", "parts": [{"text": "hi alice"}]},
        ]

    @pytest.mark.asyncio
    async def test_concurrent_sessions(self):
        class EchoLLM:
            async def generate_content(self, prompt, tools=None, context=None, history=None):
                await asyncio.sleep(0)
                return LLMResponse(text=prompt.upper())

        manager = ChatManager(llm=EchoLLM())
        responses = await asyncio.gather(
            *(manager.process_message(f"s{i}", f"message {i}") for i in range(5))
        )

        assert [r.text for r in responses] == [f"MESSAGE {i}" for i in range(5)]
        assert len(manager.get_active_session_ids()) == 5

    @pytest.mark.asyncio
    async def test_turns_of_one_session_are_serialized(self, make_llm):
        active = []
        overlaps = []

        class SlowLLM:
            async def generate_content(self, prompt, tools=None, context=None, history=None):
                if active:
                    overlaps.append(prompt)
                active.append(prompt)
                await asyncio.sleep(0.01)
                active.remove(prompt)
                return LLMResponse(text=f"re: {prompt}")

        manager = ChatManager(llm=SlowLLM())
        await asyncio.gather(
            manager.process_message("s1", "first"),
            manager.process_message("s1", "second"),
        )

        assert overlaps == []
        texts = [m.content for m in manager.get_or_create_session("s1").conversation_history]
        assert texts == ["first", "re: first", "second", "re: second"]

    @pytest.mark.asyncio
    async def test_tool_call_through_manager(self, make_llm):
        llm = make_llm(FunctionCall("lookup_order", {"order_id": "A1"}), "Your order shipped.")
        manager = ChatManager(llm=llm, agent_config={"tools": [lookup_order]})

        response = await manager.process_message("s1", "Where is order A1?")

        assert response.text == "Your order shipped."
        assert response.turns == 2
        assert llm.calls[1]["prompt"] == (
            'Resultado da função lookup_order: {"order_id": "A1", "status": "shipped"}'
        )

    @pytest.mark.asyncio
    async def test_unexpected_failure_returns_apology(self, make_llm, monkeypatch):
        manager = ChatManager(llm=make_llm())
        agent = manager.get_or_create_session("s1")

        async def boom(message):
            raise RuntimeError("disk full")

        monkeypatch.setattr(agent, "process_user_message", boom)
        response = await manager.process_message("s1", "hi")

        assert response.text == SESSION_ERROR_MESSAGE
        assert response.state == LoopState.ABORTED


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_end_session_keeps_persisted_history(self, make_llm, tmp_path):
        llm = make_llm("nice to meet you", "welcome back")
        manager = ChatManager(llm=llm, memory_config=sqlite_config(tmp_path))

        await manager.process_message("s1", "My name is Ana")
        assert await manager.end_session("s1") is True
        assert await manager.end_session("s1") is False
        assert not manager.has_session("s1")

        await manager.process_message("s1", "Remember me?")
        assert [h["parts"][0]["text"] for h in llm.calls[1]["history"]] == [
            "My name is Ana",
            "nice to meet you",
        ]
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_owned_adapters(self, make_llm, tmp_path):
        manager = ChatManager(
            llm=make_llm(),
            memory_config=sqlite_config(tmp_path),
            share_memory_instances=False,
        )
        first = manager.get_or_create_session("a")
        second = manager.get_or_create_session("b")

        assert isinstance(first.conversation_memory, SQLiteConversationMemoryAdapter)
        assert first.conversation_memory is not second.conversation_memory

        await manager.process_message("a", "hi")
        adapter = first.conversation_memory
        await manager.end_session("a")

        assert adapter.state == Lifecycle.CLOSED
        assert second.conversation_memory.state != Lifecycle.CLOSED

    @pytest.mark.asyncio
    async def test_shared_adapters(self, make_llm):
        manager = ChatManager(llm=make_llm(), memory_config=IN_MEMORY)
        first = manager.get_or_create_session("a")
        second = manager.get_or_create_session("b")
        assert first.fact_memory is second.fact_memory

        await manager.end_session("a")
        assert first.fact_memory.state != Lifecycle.CLOSED

        await manager.shutdown()
        assert first.fact_memory.state == Lifecycle.CLOSED
        assert manager.get_active_session_ids() == []

    @pytest.mark.asyncio
    async def test_end_session_waits_for_running_turn(self):
        started = asyncio.Event()
        release = asyncio.Event()

        class BlockingLLM:
            async def generate_content(self, prompt, tools=None, context=None, history=None):
                started.set()
                await release.wait()
                return LLMResponse(text=f"re: {prompt}")

        manager = ChatManager(llm=BlockingLLM(), memory_config=IN_MEMORY)
        turn = asyncio.create_task(manager.process_message("s1", "first"))
        await started.wait()

        ending = asyncio.create_task(manager.end_session("s1"))
        await asyncio.sleep(0.01)
        assert not ending.done()
        assert manager.has_session("s1")

        release.set()
        response = await turn
        assert await ending is True

        assert response.text == "re: first"
        assert not manager.has_session("s1")
        assert manager._locks == {}

    @pytest.mark.asyncio
    async def test_many_sessions_leave_nothing_behind(self, make_llm):
        manager = ChatManager(llm=make_llm())
        for i in range(3):
            await manager.process_message(f"warmup.{i}", "hi")
            await manager.end_session(f"warmup.{i}")
        logger_count = len(logging.Logger.manager.loggerDict)

        for i in range(40):
            await manager.process_message(f"user.{i}", "hi")
            await manager.end_session(f"user.{i}")

        assert len(logging.Logger.manager.loggerDict) == logger_count
        assert manager.get_active_session_ids() == []
        assert manager._locks == {}


# =============================================================================
# Clearing history
# =============================================================================


class TestClearSessionHistory:

    @pytest.mark.asyncio
    async def test_active_session(self, make_llm):
        manager = ChatManager(llm=make_llm(), memory_config=IN_MEMORY)
        await manager.process_message("s1", "hi")
        agent = manager.get_or_create_session("s1")
        await agent.set_fact("name", "Ana")
        await agent.add_summary("Ana said hi")

        assert await manager.clear_session_history("s1") is True

        assert agent.conversation_history == []
        assert await agent.get_all_facts() == {}
        assert await agent.get_latest_summary() is None
        assert await manager._shared_adapters["conversation"].load_history("s1") == []

    @pytest.mark.asyncio
    async def test_inactive_session_with_owned_adapters(self, make_llm, tmp_path):
        llm = make_llm("hello", "fresh start")
        manager = ChatManager(llm=llm, memory_config=sqlite_config(tmp_path), share_memory_instances=False)
        await manager.process_message("s1", "hi")
        await manager.get_or_create_session("s1").set_fact("name", "Ana")
        await manager.end_session("s1")

        assert await manager.clear_session_history("s1") is True

        await manager.process_message("s1", "hi again")
        assert llm.calls[1]["history"] == []
        assert await manager.get_or_create_session("s1").get_all_facts() == {}

    @pytest.mark.asyncio
    async def test_without_memory(self, make_llm):
        manager = ChatManager(llm=make_llm())
        await manager.process_message("s1", "hi")
        assert await manager.clear_session_history("s1") is True
        assert await manager.clear_session_history("never-seen") is True


# =============================================================================
# Settings
# =============================================================================


class TestFromSettings:

    def test_builds_manager(self, make_llm, tmp_path):
        settings = load_settings_from_dict({
            "agent": {
                "role": "Support",
                "context": "Help with orders.",
                "tools": [lookup_order],
            },
            "memory": {"conversation": {"type": "sqlite", "db_config": {"db_path": str(tmp_path / "c.db")}}},
            "loop": {"max_iterations": 4},
            "delegation": {"enabled": True, "specialists": {"Translator": {"objective": "Translate"}}},
        })

        manager = ChatManager.from_settings(settings, llm=make_llm())
        agent = manager.get_or_create_session("s1")

        assert agent.role == "Support"
        assert agent.find_tool("lookup_order") is not None
        assert agent.loop_config.max_iterations == 4
        assert isinstance(agent.conversation_memory, SQLiteConversationMemoryAdapter)
        assert agent.get_available_specialist_roles() == ["Translator"]
