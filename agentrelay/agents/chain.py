"""
Sequential agent chain - pipe the output of each agent into the next one
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from ..constants import CHAIN_ERROR_TEMPLATE
from .agent import Agent

logger = logging.getLogger(__name__)

TaskFormatter = Callable[[str, Agent], str]


@dataclass
class ChainStep:
    role: str
    input: str
    output: str


class SequentialAgentChain:
    """
    Runs agents one after another; each agent's final text becomes the next
    agent's task.

    Example:
        chain = SequentialAgentChain([researcher, writer, reviewer])
        final_text = await chain.run("Electric cars in Portugal")

    Args:
        agents: Agents in execution order
        task_formatters: Optional role -> formatter(input, agent) used to
            build that agent's task from the previous output. Agents with
            Google Search enabled get the input quoted by default.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        task_formatters: Optional[Dict[str, TaskFormatter]] = None,
    ):
        if not agents:
            raise ValueError("SequentialAgentChain needs at least one agent")
        self.agents = list(agents)
        self.task_formatters = dict(task_formatters or {})
        self.steps: List[ChainStep] = []

    def format_task(self, current_input: str, agent: Agent) -> str:
        formatter = self.task_formatters.get(agent.role)
        if formatter is not None:
            return formatter(current_input, agent)
        if agent.enable_google_search:
            return f'"{current_input}"'
        return current_input

    async def run(self, initial_input: str) -> str:
        """Run the chain. On an agent error the chain stops and returns an error message."""
        self.steps = []
        current_input = initial_input

        for index, agent in enumerate(self.agents, start=1):
            logger.info(f"Chain step {index}/{len(self.agents)}: {agent.role}")
            try:
                output = await agent.execute_task(self.format_task(current_input, agent))
            except Exception as e:
                logger.error(f"Chain failed at agent {index} ({agent.role}): {e}", exc_info=True)
                return CHAIN_ERROR_TEMPLATE.format(index=index, role=agent.role, error=e)

            self.steps.append(ChainStep(role=agent.role, input=current_input, output=output))
            current_input = output

        return current_input
