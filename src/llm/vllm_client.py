"""Client for self-hosted vLLM or TGI compatible inference endpoints."""

from __future__ import annotations

import logging
from typing import Iterable, List

import httpx

from agents.errors import LLMFailedError
from config.settings import Settings
from llm.base import BaseLLMClient

LOGGER = logging.getLogger(__name__)


class VLLMClient(BaseLLMClient):
    """Minimal client for a self-hosted inference server."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.llm_endpoint:
            raise ValueError("Self-hosted LLM endpoint must be configured.")

        self._endpoint = settings.llm_endpoint.rstrip("/")
        self._model = settings.llm_model
        self._api_key = settings.llm_api_key
        self._max_tokens = settings.llm_max_tokens
        self._timeout = settings.llm_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.2,
    ) -> str:
        payload = {
            "model": self._model,
            "messages": list(messages),
            "temperature": temperature,
            "max_tokens": self._max_tokens,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._endpoint}/v1/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMFailedError(f"vLLM request failed: {exc}") from exc

        choices: List[dict] = data.get("choices", [])
        if not choices:
            raise LLMFailedError("LLM response contains no choices.")
        return choices[0]["message"]["content"] or ""
