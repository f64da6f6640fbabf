"""OpenAI/Azure OpenAI client wrapper."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from openai import AsyncOpenAI, OpenAIError

from agents.errors import LLMFailedError
from config.settings import Settings
from llm.base import BaseLLMClient

LOGGER = logging.getLogger(__name__)


class OpenAIClient(BaseLLMClient):
    """Wrapper for OpenAI or Azure OpenAI Chat Completion API."""

    def __init__(self, settings: Settings) -> None:
        if not settings.llm_api_key:
            raise ValueError("LLM API key must be configured for OpenAI client.")

        self._client = AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=settings.llm_endpoint or None,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        self._model = settings.llm_model
        self._max_tokens = settings.llm_max_tokens

    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.2,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=list(messages),
                temperature=temperature,
                max_tokens=self._max_tokens,
            )
        except OpenAIError as exc:
            raise LLMFailedError(f"OpenAI request failed: {exc}") from exc
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
