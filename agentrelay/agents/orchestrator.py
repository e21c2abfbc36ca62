"""
Hierarchical orchestration and orchestrators as tools

A HierarchicalAgentOrchestrator answers one task with a team of agents:

1. the orchestrator LLM picks the agents whose expertise the task needs
2. each selected agent works on the task from its own perspective
3. the orchestrator LLM merges the answers into the final response

Orchestrators (this one or a SequentialAgentChain) can be registered by name
in an OrchestratorRegistry and exposed to a ChatAgent as an ordinary tool
with ``create_orchestrator_tool``.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..constants import (
    EXPERT_ERROR_TEMPLATE,
    ORCHESTRATOR_NO_AGENTS_MESSAGE,
    ORCHESTRATOR_SYNTHESIS_ERROR_MESSAGE,
    ORCHESTRATOR_TOOL_INPUT,
)
from ..exceptions import ConfigurationError
from ..log import get_logger
from ..protocols import LLMClientProtocol, OrchestratorProtocol
from ..tools.models import ToolDefinition
from .agent import Agent
from .chain import ChainStep, SequentialAgentChain, TaskFormatter
from .registry import AgentRegistry

logger = logging.getLogger(__name__)

_LIST_MARKER_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s*")

SELECTION_INSTRUCTIONS = """\
You coordinate a team of specialist agents. Read the task and pick the
specialists whose expertise is needed to complete it.

Rules:
- Pick only specialists that contribute something the others do not.
- Prefer the smallest team that covers the central parts of the task.

Answer with the selected roles exactly as written, one per line, and nothing
else. If no specialist is relevant, answer NONE.
"""

SYNTHESIS_INSTRUCTIONS = """\
You combine the answers of several specialist agents into one coherent answer
to the original task. Keep what is relevant and reliable, resolve
contradictions and drop repetition. Open with a short framing of the task,
organise the body by topic and close with a direct answer to the task, plus
next steps when they apply.
"""

EXPERT_TASK_TEMPLATE = """\
As the {role} specialist, whose objective is "{objective}", contribute to the following task:

"{task}"

Work on the parts of the task that fall within your expertise and leave the rest to the other
specialists. Start with a short analysis from your perspective, then give your contribution in a
structured and concise form, with concrete recommendations when they apply. Your answer will be
combined with the answers of other specialists.
"""


class HierarchicalAgentOrchestrator:
    """
    LLM-led team of specialist agents.

    Example:
        orchestrator = HierarchicalAgentOrchestrator(
            [economist, historian, urbanist],
            llm=GeminiClient(model="gemini-2.0-flash-001"),
        )
        answer = await orchestrator.run("Should Lisbon extend its metro?")

    Args:
        agents: Specialists the orchestrator may select
        llm: Client used for selection and synthesis
        task_formatters: Optional role -> formatter(task, agent) building that
            agent's task. Agents with Google Search enabled get the task
            quoted by default; the others get EXPERT_TASK_TEMPLATE.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        llm: LLMClientProtocol,
        task_formatters: Optional[Dict[str, TaskFormatter]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not agents:
            raise ValueError("HierarchicalAgentOrchestrator needs at least one agent")
        if llm is None:
            raise ValueError("llm is required")
        self.agents = list(agents)
        self.llm = llm
        self.task_formatters = dict(task_formatters or {})
        self.logger = logger or get_logger("orchestrator")
        self.selected_roles: List[str] = []
        self.steps: List[ChainStep] = []

    def format_task(self, task: str, agent: Agent) -> str:
        formatter = self.task_formatters.get(agent.role)
        if formatter is not None:
            return formatter(task, agent)
        if agent.enable_google_search:
            return f'"{task}"'
        return EXPERT_TASK_TEMPLATE.format(role=agent.role, objective=agent.objective, task=task)

    def build_selection_prompt(self, task: str) -> str:
        team = "\n".join(f"- {agent.role}: {agent.objective}" for agent in self.agents)
        return f"**Task:**\n{task}\n\n**Available specialists:**\n{team}"

    def parse_selection(self, text: str) -> List[Agent]:
        """Agents named in the answer, in team order. Unknown names are ignored."""
        named = set()
        for line in (text or "").splitlines():
            name = _LIST_MARKER_RE.sub("", line.strip()).strip("`'\" ").rstrip(".")
            if name:
                named.add(name.casefold())
        return [agent for agent in self.agents if agent.role.casefold() in named]

    async def select_agents(self, task: str) -> List[Agent]:
        """Ask the LLM which agents to engage. Falls back to none on failure."""
        try:
            response = await self.llm.generate_content(
                self.build_selection_prompt(task),
                context=SELECTION_INSTRUCTIONS,
            )
        except Exception as e:
            self.logger.warning(f"[Orchestrator] Agent selection failed: {e}")
            return []
        selected = self.parse_selection(getattr(response, "text", "") or "")
        self.logger.info(f"[Orchestrator] Selected agents: {[agent.role for agent in selected]}")
        return selected

    async def synthesize(self, task: str, answers: Mapping[str, str]) -> str:
        answers_text = "\n".join(f"- {role}: {answer}" for role, answer in answers.items())
        try:
            response = await self.llm.generate_content(
                f"**Task:**\n{task}\n\n**Specialist answers:**\n{answers_text}",
                context=SYNTHESIS_INSTRUCTIONS,
            )
        except Exception as e:
            self.logger.error(f"[Orchestrator] Final synthesis failed: {e}", exc_info=True)
            return ORCHESTRATOR_SYNTHESIS_ERROR_MESSAGE
        return getattr(response, "text", "") or ""

    async def run(self, task: str) -> str:
        """
        Orchestrate the team for one task.

        An agent failure becomes that agent's answer, so the other answers
        still reach the synthesis.
        """
        self.steps = []
        selected = await self.select_agents(task)
        self.selected_roles = [agent.role for agent in selected]
        if not selected:
            return ORCHESTRATOR_NO_AGENTS_MESSAGE

        answers: Dict[str, str] = {}
        for agent in selected:
            agent_task = self.format_task(task, agent)
            try:
                answer = await agent.execute_task(agent_task)
            except Exception as e:
                self.logger.error(f"[Orchestrator] Agent {agent.role} failed: {e}", exc_info=True)
                answer = EXPERT_ERROR_TEMPLATE.format(error=e)
            answers[agent.role] = answer
            self.steps.append(ChainStep(role=agent.role, input=agent_task, output=answer))

        return await self.synthesize(task, answers)


OrchestratorConfig = Mapping[str, Any]
OrchestratorLike = Union[OrchestratorProtocol, OrchestratorConfig, Callable[[], OrchestratorProtocol]]

ORCHESTRATOR_TYPES = ("sequential", "hierarchical")


class OrchestratorRegistry:
    """
    Named orchestrators.

    An entry is either a ready orchestrator, a zero-argument factory, or a
    config mapping built on first use::

        {"type": "sequential", "agents": [...], "task_formatters": {...}}
        {"type": "hierarchical", "agents": [...], "llm": client}

    ``agents`` items are Agent instances or specialist roles resolved through
    ``agent_registry``. Hierarchical entries without ``llm`` use
    ``default_llm``.
    """

    def __init__(
        self,
        orchestrators: Optional[Mapping[str, OrchestratorLike]] = None,
        default_llm: Optional[LLMClientProtocol] = None,
        agent_registry: Optional[AgentRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.default_llm = default_llm
        self.agent_registry = agent_registry
        self.logger = logger or get_logger("orchestrators")
        self._entries: Dict[str, OrchestratorLike] = {}
        self._instances: Dict[str, OrchestratorProtocol] = {}
        for name, entry in (orchestrators or {}).items():
            self.register_orchestrator(name, entry)

    def register_orchestrator(self, name: str, orchestrator: OrchestratorLike) -> None:
        if not name:
            raise ValueError("Orchestrator name is required")
        if isinstance(orchestrator, Mapping):
            kind = orchestrator.get("type")
            if kind not in ORCHESTRATOR_TYPES:
                raise ConfigurationError(
                    f"Orchestrator '{name}' needs a type: one of {', '.join(ORCHESTRATOR_TYPES)}"
                )
        self._entries[name] = orchestrator
        self._instances.pop(name, None)
        self.logger.info(f"Orchestrator registered: {name}")

    def unregister_orchestrator(self, name: str) -> bool:
        self._instances.pop(name, None)
        return self._entries.pop(name, None) is not None

    def get_available_orchestrator_names(self) -> List[str]:
        return list(self._entries)

    def has_orchestrator(self, name: str) -> bool:
        return name in self._entries

    def get_orchestrator(self, name: str) -> OrchestratorProtocol:
        """
        Raises:
            ConfigurationError: Unknown name or invalid config
        """
        instance = self._instances.get(name)
        if instance is not None:
            return instance
        if name not in self._entries:
            available = ", ".join(self._entries) or "none"
            raise ConfigurationError(f"Orchestrator '{name}' not found. Available: {available}")

        entry = self._entries[name]
        if isinstance(entry, Mapping):
            instance = self._build(name, entry)
        elif hasattr(entry, "run") and not isinstance(entry, type):
            instance = entry
        elif callable(entry):
            instance = entry()
        else:
            raise ConfigurationError(f"Orchestrator '{name}' has no run() method")
        self._instances[name] = instance
        return instance

    def _resolve_agents(self, name: str, items: Any) -> List[Agent]:
        if not items:
            raise ConfigurationError(f"Orchestrator '{name}' needs a non-empty 'agents' list")
        agents = []
        for item in items:
            if isinstance(item, str):
                if self.agent_registry is None:
                    raise ConfigurationError(
                        f"Orchestrator '{name}' names agent '{item}' but no agent registry is set"
                    )
                agents.append(self.agent_registry.get_specialist_agent(item))
            else:
                agents.append(item)
        return agents

    def _build(self, name: str, config: OrchestratorConfig) -> OrchestratorProtocol:
        agents = self._resolve_agents(name, config.get("agents"))
        formatters = config.get("task_formatters")
        if config["type"] == "sequential":
            return SequentialAgentChain(agents, task_formatters=formatters)

        llm = config.get("llm") or self.default_llm
        if llm is None:
            raise ConfigurationError(f"Orchestrator '{name}' needs an 'llm' or a registry default_llm")
        return HierarchicalAgentOrchestrator(agents, llm, task_formatters=formatters, logger=self.logger)


def create_orchestrator_tool(
    orchestrator_name: str,
    registry: OrchestratorRegistry,
    tool_name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[Dict[str, Any]] = None,
) -> ToolDefinition:
    """
    Expose a registered orchestrator as a tool.

    The orchestrator receives the first property of ``parameters`` (by
    default a single string ``task``). The orchestrator is looked up when the
    tool runs, so it may be registered after the tool is built. Non-string
    results are returned as JSON.
    """
    if registry is None:
        raise ConfigurationError("create_orchestrator_tool needs an OrchestratorRegistry")
    if not registry.has_orchestrator(orchestrator_name):
        logger.warning(
            f"Orchestrator '{orchestrator_name}' is not registered yet; "
            f"tool '{tool_name or orchestrator_name}' will fail until it is"
        )

    if parameters is None:
        parameters = {
            "type": "object",
            "properties": {
                ORCHESTRATOR_TOOL_INPUT: {
                    "type": "string",
                    "description": "Complete description of the task",
                },
            },
            "required": [ORCHESTRATOR_TOOL_INPUT],
        }
    properties = list((parameters.get("properties") or {}).keys())
    if not properties:
        raise ConfigurationError("Orchestrator tool parameters need at least one property")
    input_key = properties[0]

    async def run_orchestrator(args: Dict[str, Any]) -> Any:
        task = args.get(input_key)
        if task is None:
            raise ValueError(f"Argument '{input_key}' is required by orchestrator '{orchestrator_name}'")
        orchestrator = registry.get_orchestrator(orchestrator_name)
        logger.info(f"Running orchestrator '{orchestrator_name}': {task}")
        result = await orchestrator.run(task)
        if isinstance(result, str):
            return result
        return json.dumps(result, indent=2, ensure_ascii=False, default=str)

    return ToolDefinition(
        name=tool_name or orchestrator_name,
        description=description or f"Run the '{orchestrator_name}' team of agents on a task and return its answer.",
        parameters=parameters,
        function=run_orchestrator,
    )
