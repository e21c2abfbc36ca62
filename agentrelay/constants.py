"""
Shared constants for the AgentRelay framework.

Centralizes tool names, user-visible fallback texts and defaults that are
needed by the agents, the chat managers and the routing layer.
"""

from typing import Tuple

# ── Tool names ──

DELEGATE_TOOL_NAME = "delegate_task_to_specialist"
ORCHESTRATOR_TOOL_INPUT = "task"
REQUEST_SUB_CONVERSATION_TOOL_NAME = "request_specialist_sub_conversation"
END_SUB_CONVERSATION_TOOL_NAME = "end_specialist_sub_conversation"

# ── Loop defaults ──

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_TOOL_TIMEOUT = 30.0
MAX_ROUTING_HOPS = 3

# ── LLM defaults ──

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-001"
SPECIALIST_DEFAULT_MODEL_ENV = "SPECIALIST_DEFAULT_MODEL"
LLM_MODES: Tuple[str, ...] = ("oneshot", "chat")

# ── History roles ──

ROLE_USER = "user"
ROLE_MODEL = "model"

# ── User-visible texts ──
# These are part of the observable contract with the LLM and end users.

LOOP_EXHAUSTED_MESSAGE = (
    "I'm having trouble completing this task. "
    "Please try again with a simpler request."
)
SESSION_ERROR_MESSAGE = "[Desculpe, ocorreu um erro ao processar sua mensagem.]"
EMPTY_RESPONSE_MESSAGE = "Nenhuma resposta de texto recebida."
BLOCKED_RESPONSE_MESSAGE = "Resposta bloqueada pelo filtro de segurança ({reason})."

TOOL_NOT_FOUND_TEMPLATE = "Função '{name}' não encontrada nas tools do agente."
TOOL_ERROR_TEMPLATE = "Erro ao executar a função '{name}': {error}"
TASK_ERROR_TEMPLATE = "Ocorreu um erro ao executar a tarefa: {error}"
LLM_ERROR_TEMPLATE = "Erro ao comunicar com a API {provider} ({model}, mode: {mode}): {error}"
CHAIN_ERROR_TEMPLATE = "Erro na cadeia de agentes no Agente {index} ({role}): {error}"
FUNCTION_CALL_PLACEHOLDER = "[Function Call: {name}]"
ORCHESTRATOR_NO_AGENTS_MESSAGE = "Nenhum agente especialista adequado encontrado para a tarefa."
ORCHESTRATOR_SYNTHESIS_ERROR_MESSAGE = "Erro ao gerar resposta final orquestrada."
EXPERT_ERROR_TEMPLATE = "Erro ao executar tarefa: {error}"
