"""
Agent Registry - Specialist configurations and cached specialist instances

Specialists are declared by role. The registry builds their LLM clients and
agents on demand and caches them:

- LLM clients are cached by ``"<role>-<mode>-<model>"``
- agents are cached by role

Any configuration change (set, register, unregister) clears both caches
entirely, so the next lookup always reflects the current configuration.
"""

import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DEFAULT_GEMINI_MODEL, SPECIALIST_DEFAULT_MODEL_ENV
from ..exceptions import UnknownSpecialistError
from ..llm.base import LLMConfig
from ..llm.factory import create_llm_client
from ..log import get_logger
from ..protocols import LLMClientProtocol
from .agent import Agent, LoopConfig


class SpecialistConfig(BaseModel):
    """How to build one specialist agent"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    objective: str = ""
    context: str = ""
    tools: List[Any] = Field(default_factory=list)
    enable_google_search: bool = False
    llm_mode: Optional[str] = None
    llm_model_name: Optional[str] = None
    llm_provider: Optional[str] = None
    generation_config: Dict[str, Any] = Field(default_factory=dict)
    agent_class: Optional[Any] = None


SpecialistConfigLike = Union[SpecialistConfig, Mapping[str, Any]]
LLMFactory = Callable[[LLMConfig, Optional[str]], LLMClientProtocol]


def to_specialist_config(config: SpecialistConfigLike) -> SpecialistConfig:
    if isinstance(config, SpecialistConfig):
        return config
    return SpecialistConfig.model_validate(dict(config))


class AgentRegistry:
    """
    Registry of specialist agents

    Example:
        registry = AgentRegistry({
            "Translator": {"objective": "Translate text", "context": "You translate."},
        })
        translator = registry.get_specialist_agent("Translator")
        translator.task = "Translate 'bom dia' to English"
        print(await translator.execute_task())
    """

    def __init__(
        self,
        specialist_agents_config: Optional[Mapping[str, SpecialistConfigLike]] = None,
        llm_factory: Optional[LLMFactory] = None,
        default_llm: Optional[LLMClientProtocol] = None,
        default_model: Optional[str] = None,
        default_mode: str = "oneshot",
        loop_config: Optional[LoopConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            specialist_agents_config: role -> SpecialistConfig (or plain dict)
            llm_factory: Builds an LLM client from (LLMConfig, provider);
                defaults to create_llm_client
            default_llm: Client shared by specialists whose config names no
                model. Without it every specialist gets its own client for
                the default model.
            default_model: Model used when a config names none
                (default: $SPECIALIST_DEFAULT_MODEL or gemini-2.0-flash-001)
            default_mode: LLM mode for specialists whose config names none
        """
        self.llm_factory = llm_factory or create_llm_client
        self.default_llm = default_llm
        self.default_model = (
            default_model or os.environ.get(SPECIALIST_DEFAULT_MODEL_ENV) or DEFAULT_GEMINI_MODEL
        )
        self.default_mode = default_mode
        self.loop_config = loop_config
        self.logger = logger or get_logger("registry")

        self.specialist_agents_config: Dict[str, SpecialistConfig] = {}
        self._llm_cache: Dict[str, LLMClientProtocol] = {}
        self._agent_cache: Dict[str, Agent] = {}

        if specialist_agents_config:
            self.set_specialist_agents_config(specialist_agents_config)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_specialist_agents_config(self, config: Mapping[str, SpecialistConfigLike]) -> None:
        """Replace the whole specialist roster"""
        self.specialist_agents_config = {
            role: to_specialist_config(cfg) for role, cfg in (config or {}).items()
        }
        self.clear_cache()
        self.logger.info(f"Specialist roster set: {self.get_available_specialist_roles()}")

    def register_specialist(self, role: str, config: SpecialistConfigLike) -> None:
        if not role:
            raise ValueError("Specialist role is required")
        self.specialist_agents_config[role] = to_specialist_config(config)
        self.clear_cache()
        self.logger.info(f"Specialist registered: {role}")

    def unregister_specialist(self, role: str) -> bool:
        if role not in self.specialist_agents_config:
            return False
        del self.specialist_agents_config[role]
        self.clear_cache()
        self.logger.info(f"Specialist unregistered: {role}")
        return True

    def get_available_specialist_roles(self) -> List[str]:
        return list(self.specialist_agents_config)

    def get_specialist_config(self, role: str) -> Optional[SpecialistConfig]:
        return self.specialist_agents_config.get(role)

    def clear_cache(self) -> None:
        self._llm_cache.clear()
        self._agent_cache.clear()

    def _require_config(self, role: str) -> SpecialistConfig:
        config = self.specialist_agents_config.get(role)
        if config is None:
            raise UnknownSpecialistError(role, self.get_available_specialist_roles())
        return config

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def get_specialist_llm(self, role: str) -> LLMClientProtocol:
        """LLM client for a specialist, cached by role, mode and model"""
        config = self._require_config(role)
        if config.llm_model_name is None and self.default_llm is not None:
            return self.default_llm

        model = config.llm_model_name or self.default_model
        mode = config.llm_mode or self.default_mode
        cache_key = f"{role}-{mode}-{model}"
        llm = self._llm_cache.get(cache_key)
        if llm is None:
            llm_config = LLMConfig(model=model, mode=mode)
            for key, value in config.generation_config.items():
                if hasattr(llm_config, key):
                    setattr(llm_config, key, value)
                else:
                    llm_config.extra[key] = value
            llm = self.llm_factory(llm_config, config.llm_provider)
            self._llm_cache[cache_key] = llm
            self.logger.debug(f"Created LLM for specialist {cache_key}")
        return llm

    def get_specialist_agent(self, role: str, force_new: bool = False) -> Agent:
        """
        Get (or build) the task agent for a specialist.

        Raises:
            UnknownSpecialistError: If the role is not configured
        """
        config = self._require_config(role)
        if not force_new and role in self._agent_cache:
            return self._agent_cache[role]

        agent_class = config.agent_class or Agent
        agent = agent_class(
            role=role,
            objective=config.objective,
            context=config.context,
            llm=self.get_specialist_llm(role),
            tools=list(config.tools),
            enable_google_search=config.enable_google_search,
            loop_config=self.loop_config,
            logger=get_logger(f"specialist.{role}", parent=self.logger),
        )
        self._agent_cache[role] = agent
        return agent
