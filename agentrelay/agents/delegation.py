"""
Specialist delegation tool

``delegate_task_to_specialist`` lets a conversational agent hand a
self-contained task to a specialist and use its answer within the same turn
(call/return). The specialist never talks to the user.
"""

import logging
from typing import Any, Dict

from ..constants import DELEGATE_TOOL_NAME
from ..exceptions import UnknownSpecialistError
from ..tools.models import ToolDefinition
from .registry import AgentRegistry

logger = logging.getLogger(__name__)


def create_delegation_tool(registry: AgentRegistry) -> ToolDefinition:
    """
    Build the delegation tool for the current specialist roster.

    The description lists the roles available when the tool is built; rebuild
    the tool whenever the roster changes.
    """
    roles = registry.get_available_specialist_roles()
    roles_text = ", ".join(roles) if roles else "none"

    role_schema: Dict[str, Any] = {
        "type": "string",
        "description": "Role of the specialist to delegate to",
    }
    if roles:
        role_schema["enum"] = roles

    async def delegate_task_to_specialist(args: Dict[str, Any]) -> str:
        role = args.get("specialist_role")
        task = args.get("task")
        if not role or not task:
            raise ValueError("Both 'specialist_role' and 'task' are required")

        available = registry.get_available_specialist_roles()
        if role not in available:
            raise UnknownSpecialistError(role, available)

        specialist = registry.get_specialist_agent(role)
        logger.info(f"Delegating to specialist '{role}': {task}")
        return await specialist.execute_task(task)

    return ToolDefinition(
        name=DELEGATE_TOOL_NAME,
        description=(
            "Delegate a self-contained task to a specialist agent and get its answer back. "
            f"Available specialists: {roles_text}."
        ),
        parameters={
            "type": "object",
            "properties": {
                "specialist_role": role_schema,
                "task": {
                    "type": "string",
                    "description": "Complete description of the task for the specialist",
                },
            },
            "required": ["specialist_role", "task"],
        },
        function=delegate_task_to_specialist,
    )
