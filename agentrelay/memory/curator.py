"""
Automatic memory management

After a conversation turn the MemoryCurator asks an LLM to extract durable
facts about the user and to refresh the running summary of the conversation.
The model must answer with JSON::

    {"facts": [{"key": "favorite_city", "value": "Lisbon"}],
     "summary": "User is planning a trip to Lisbon in May."}

Answers that cannot be parsed are logged and ignored.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models import ConversationMessage
from ..protocols import LLMClientProtocol

CURATOR_INSTRUCTIONS = (
    "You are the memory management system of a conversational assistant. "
    "Read the conversation and answer ONLY with a JSON object with two keys:\n"
    '- "facts": a list of {"key": <snake_case string>, "value": <JSON value>} '
    "with durable facts about the user (preferences, names, goals). Use the "
    "existing keys when updating a known fact. Use an empty list if there is "
    "nothing new.\n"
    '- "summary": a short summary of the whole conversation so far, or null '
    "if no summary is needed."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


@dataclass
class CurationResult:
    facts: Dict[str, Any] = field(default_factory=dict)
    summary: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.facts and not self.summary


def parse_curation(text: str) -> Optional[CurationResult]:
    """Parse the curator's JSON answer, tolerating code fences and prose around it"""
    if not text:
        return None
    match = _FENCE_RE.search(text)
    candidate = match.group(1) if match else text
    start, end = candidate.find("{"), candidate.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(candidate[start:end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    facts: Dict[str, Any] = {}
    raw_facts = data.get("facts") or []
    if isinstance(raw_facts, dict):
        facts = {str(k): v for k, v in raw_facts.items()}
    elif isinstance(raw_facts, list):
        for item in raw_facts:
            if isinstance(item, dict) and item.get("key"):
                facts[str(item["key"])] = item.get("value")

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = None
    return CurationResult(facts=facts, summary=summary.strip() if summary else None)


class MemoryCurator:
    """Extracts facts and summaries from a conversation with an LLM"""

    def __init__(self, llm: LLMClientProtocol, logger: Optional[logging.Logger] = None):
        self.llm = llm
        self.logger = logger or logging.getLogger(__name__)

    def build_prompt(
        self,
        history: List[ConversationMessage],
        known_facts: Dict[str, Any],
        latest_summary: Optional[str],
    ) -> str:
        transcript = "\n".join(f"{m.role}: {m.content}" for m in history)
        sections = [f"**Conversation:**\n{transcript}"]
        if known_facts:
            sections.append(f"**Known facts:**\n{json.dumps(known_facts, ensure_ascii=False, default=str)}")
        if latest_summary:
            sections.append(f"**Previous summary:**\n{latest_summary}")
        return "\n\n".join(sections)

    async def curate(
        self,
        history: List[ConversationMessage],
        known_facts: Optional[Dict[str, Any]] = None,
        latest_summary: Optional[str] = None,
    ) -> Optional[CurationResult]:
        if not history:
            return None
        response = await self.llm.generate_content(
            self.build_prompt(history, known_facts or {}, latest_summary),
            context=CURATOR_INSTRUCTIONS,
        )
        result = parse_curation(getattr(response, "text", "") or "")
        if result is None:
            self.logger.warning("Memory curator returned an unparseable answer; skipping")
        return result
