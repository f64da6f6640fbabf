"""Reply generation for caller utterances."""

from __future__ import annotations

import logging

from agents.replies import EMPTY_GENERATION_REPLY
from llm.base import BaseLLMClient
from prompts.loader import load_prompt

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT_FILE = "assistant_system.txt"


class ResponseGenerator:
    """Single-turn LLM responder; no conversation history is kept between turns."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        *,
        temperature: float = 0.2,
        system_prompt: str | None = None,
    ) -> None:
        self._llm = llm_client
        self._temperature = temperature
        self._system_prompt = system_prompt or load_prompt(SYSTEM_PROMPT_FILE)

    async def generate(self, utterance: str) -> str:
        messages = [
            {"role": "system", "content": self._system_prompt},
            {"role": "user", "content": utterance},
        ]
        reply = (await self._llm.chat(messages, temperature=self._temperature)).strip()
        if not reply:
            LOGGER.warning("LLM returned an empty reply for %r", utterance)
            return EMPTY_GENERATION_REPLY
        return reply
