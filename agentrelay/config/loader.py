"""
Config Loader - Load chat manager configuration from YAML

Example file::

    llm:
      provider: gemini
      model: gemini-2.0-flash-001
      api_key_env: GOOGLE_API_KEY
      mode: chat
    agent:
      role: Coordinator
      context: You are a helpful assistant.
      tools: ["myapp.tools:get_weather"]
    memory:
      conversation: {type: sqlite, db_config: {db_path: "${DATA_DIR}/chat.db"}}
    routing:
      specialists:
        Booking: {objective: Book tables, context: You book restaurant tables.}

``${VAR}`` and ``${VAR:-default}`` are replaced from the environment before
validation. Tools are referenced as ``"package.module:attribute"`` and may
point to a ToolDefinition or a @tool decorated function.
"""

import importlib
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..constants import DEFAULT_GEMINI_MODEL, DEFAULT_MAX_ITERATIONS, DEFAULT_TOOL_TIMEOUT
from ..exceptions import ConfigurationError
from ..llm.base import LLMConfig
from ..tools.decorator import as_tool_definition
from ..tools.models import ToolDefinition

logger = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class LLMSettings(BaseModel):
    """LLM backend settings"""
    provider: str = "gemini"
    model: str = DEFAULT_GEMINI_MODEL
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None  # Environment variable holding the API key
    base_url: Optional[str] = None
    mode: str = "chat"
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 1.0
    timeout: float = 60.0
    max_retries: int = 2
    extra: Dict[str, Any] = Field(default_factory=dict)

    def to_llm_config(self) -> LLMConfig:
        api_key = self.api_key
        if not api_key and self.api_key_env:
            api_key = os.environ.get(self.api_key_env)
        return LLMConfig(
            api_key=api_key,
            model=self.model,
            mode=self.mode,
            base_url=self.base_url,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            timeout=self.timeout,
            max_retries=self.max_retries,
            extra=dict(self.extra),
        )


class AgentSettings(BaseModel):
    """Settings of the agent created for every session"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    role: str = "Assistant"
    objective: str = ""
    context: str = ""
    tools: List[Any] = Field(default_factory=list)
    enable_google_search: bool = False
    auto_manage_fact_memory: bool = False
    auto_manage_summary_memory: bool = False

    def resolve_tools(self) -> List[ToolDefinition]:
        return [resolve_tool(t) for t in self.tools]


class MemoryTrackSettings(BaseModel):
    type: str
    db_config: Dict[str, Any] = Field(default_factory=dict)


class MemorySettings(BaseModel):
    conversation: Optional[MemoryTrackSettings] = None
    fact: Optional[MemoryTrackSettings] = None
    summary: Optional[MemoryTrackSettings] = None

    def tracks(self) -> Dict[str, MemoryTrackSettings]:
        return {
            name: track
            for name, track in (
                ("conversation", self.conversation),
                ("fact", self.fact),
                ("summary", self.summary),
            )
            if track is not None
        }


class LoopSettings(BaseModel):
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tool_timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT


class DelegationSettings(BaseModel):
    enabled: bool = False
    specialists: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class RoutingSettings(BaseModel):
    specialists: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class RelaySettings(BaseModel):
    """Top-level configuration of a chat manager"""
    llm: LLMSettings = Field(default_factory=LLMSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    share_memory_instances: bool = True
    delegation: DelegationSettings = Field(default_factory=DelegationSettings)
    routing: RoutingSettings = Field(default_factory=RoutingSettings)
    loop: LoopSettings = Field(default_factory=LoopSettings)


def substitute_env(value: Any) -> Any:
    """Recursively replace ${VAR} and ${VAR:-default} in strings"""
    if isinstance(value, str):
        def replace(match: "re.Match[str]") -> str:
            name, default = match.group(1), match.group(2)
            resolved = os.environ.get(name)
            if resolved is None:
                if default is None:
                    logger.warning(f"Environment variable {name} is not set")
                    return ""
                return default
            return resolved

        return _ENV_PATTERN.sub(replace, value)
    if isinstance(value, list):
        return [substitute_env(v) for v in value]
    if isinstance(value, dict):
        return {k: substitute_env(v) for k, v in value.items()}
    return value


def import_object(path: str) -> Any:
    """Import ``"package.module:attribute"`` (or ``"package.module.attribute"``)"""
    module_path, sep, attr = path.partition(":")
    if not sep:
        module_path, _, attr = path.rpartition(".")
    if not module_path or not attr:
        raise ConfigurationError(f"Invalid import path '{path}'. Use 'package.module:attribute'")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import module '{module_path}': {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ConfigurationError(f"Module '{module_path}' has no attribute '{attr}'") from e


def resolve_tool(ref: Any) -> ToolDefinition:
    """Turn an import path, ToolDefinition or @tool function into a ToolDefinition"""
    obj = import_object(ref) if isinstance(ref, str) else ref
    try:
        return as_tool_definition(obj)
    except TypeError as e:
        raise ConfigurationError(str(e)) from e


def resolve_specialists(specialists: Mapping[str, Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Resolve tool references inside specialist configuration dicts"""
    resolved: Dict[str, Dict[str, Any]] = {}
    for role, config in specialists.items():
        config = dict(config or {})
        config["tools"] = [resolve_tool(t) for t in config.get("tools", [])]
        resolved[role] = config
    return resolved


def load_settings_from_dict(data: Optional[Mapping[str, Any]]) -> RelaySettings:
    try:
        return RelaySettings.model_validate(substitute_env(dict(data or {})))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_settings(path: Union[str, Path]) -> RelaySettings:
    """Load RelaySettings from a YAML file"""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping")
    logger.info(f"Loaded configuration from {path}")
    return load_settings_from_dict(data)
