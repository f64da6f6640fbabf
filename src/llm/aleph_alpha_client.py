"""Aleph Alpha Luminous API wrapper."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from aleph_alpha_client import AsyncClient, ChatMessage, ChatRequest

from agents.errors import LLMFailedError
from config.settings import Settings
from llm.base import BaseLLMClient

LOGGER = logging.getLogger(__name__)


class AlephAlphaClient(BaseLLMClient):
    """Adapter for Aleph Alpha's hosted models."""

    def __init__(self, settings: Settings) -> None:
        if not settings.llm_api_key:
            raise ValueError("LLM API key must be configured for Aleph Alpha client.")

        host_kwargs = {"host": settings.llm_endpoint} if settings.llm_endpoint else {}
        self._client = AsyncClient(
            token=settings.llm_api_key,
            request_timeout_seconds=int(settings.llm_timeout_seconds),
            total_retries=0,
            **host_kwargs,
        )
        self._model = settings.llm_model
        self._max_tokens = settings.llm_max_tokens

    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.2,
    ) -> str:
        chat_messages = [
            ChatMessage(role=msg["role"], content=msg["content"]) for msg in messages
        ]
        request = ChatRequest(
            model=self._model,
            messages=chat_messages,
            temperature=temperature,
            maximum_output_tokens=self._max_tokens,
        )
        try:
            response = await self._client.chat(request)
        except Exception as exc:  # the SDK surfaces aiohttp and its own error types
            raise LLMFailedError(f"Aleph Alpha request failed: {exc}") from exc
        return response.messages[-1].content[0].text
