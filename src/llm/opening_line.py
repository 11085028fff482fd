"""Personalised first sentence the agent speaks when the callee picks up."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from llm.base import BaseLLMClient
from prompts.loader import load_prompt

LOGGER = logging.getLogger(__name__)

OPENING_LINE_PROMPT = """You write the first sentence a friendly phone agent says
when an outbound call is answered. Rewrite the draft below so it sounds natural
and personal, using only the lead facts provided. Keep it under 40 words, end with
a short question, and never invent facts. Reply with the sentence only."""

_FIELD_DEFAULTS = {
    "client": "there",
    "source": "our website",
    "age": "",
    "damage": "the damage",
    "insurance": "",
}


@dataclass(frozen=True)
class LeadFacts:
    client: str | None = None
    source: str | None = None
    age: str | None = None
    damage: str | None = None
    insurance: str | None = None

    def template_values(self) -> dict[str, str]:
        values = {}
        for name, value in asdict(self).items():
            text = (value or "").strip()
            values[name] = text or _FIELD_DEFAULTS[name]
        return values

    def known_facts(self) -> dict[str, str]:
        return {name: value.strip() for name, value in asdict(self).items() if value and value.strip()}


class OpeningLineGenerator:
    """Renders the opening-line template and optionally has an LLM personalise it."""

    def __init__(self, llm_client: BaseLLMClient | None, *, temperature: float = 0.7) -> None:
        self._llm = llm_client
        self._temperature = temperature
        self._template = load_prompt("opening_line.txt")

    def render(self, lead: LeadFacts) -> str:
        return self._template.format(**lead.template_values())

    async def generate(self, lead: LeadFacts) -> str:
        draft = self.render(lead)
        if self._llm is None:
            return draft

        facts = "\n".join(f"- {name}: {value}" for name, value in lead.known_facts().items())
        messages = [
            {"role": "system", "content": OPENING_LINE_PROMPT},
            {"role": "user", "content": f"Draft: {draft}\nLead facts:\n{facts or '- none'}"},
        ]
        try:
            line = (await self._llm.chat(messages, temperature=self._temperature)).strip()
        except Exception as exc:
            LOGGER.warning("Opening line generation failed, using template: %s", exc)
            return draft

        if not line:
            LOGGER.warning("Opening line generation returned nothing, using template")
            return draft
        return line.strip('"')
