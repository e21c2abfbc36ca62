"""
AgentRelay Exceptions

Errors raised by the framework itself. Tool and LLM failures inside the
function-call loop are not raised: they are turned into text and fed back to
the model.
"""


class AgentRelayError(Exception):
    """Base class for AgentRelay errors"""


class ConfigurationError(AgentRelayError):
    """Invalid or incomplete configuration"""


class DuplicateToolError(AgentRelayError, ValueError):
    """A tool with the same name is already registered on the agent"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


class UnknownSpecialistError(AgentRelayError, ValueError):
    """The requested specialist role is not configured"""

    def __init__(self, role: str, available=None):
        self.role = role
        self.available = list(available or [])
        roles = ", ".join(self.available) or "nenhum"
        super().__init__(
            f"Especialista '{role}' não encontrado. Especialistas disponíveis: {roles}"
        )


class MemoryAdapterError(AgentRelayError):
    """A memory adapter was used outside its lifecycle or failed"""
