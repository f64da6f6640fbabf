"""Google Gemini client over the Generative Language REST API."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from agents.errors import LLMFailedError
from config.settings import Settings
from llm.base import BaseLLMClient

LOGGER = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


class GeminiClient(BaseLLMClient):
    """Minimal `generateContent` client."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.llm_api_key:
            raise ValueError("LLM API key must be configured for Gemini client.")

        self._endpoint = (settings.llm_endpoint or DEFAULT_ENDPOINT).rstrip("/")
        self._api_key = settings.llm_api_key
        self._model = settings.llm_model.removeprefix("models/")
        self._max_tokens = settings.llm_max_tokens
        self._timeout = settings.llm_timeout_seconds
        self._transport = transport

    @staticmethod
    def _to_payload(messages: Iterable[dict[str, str]]) -> dict[str, Any]:
        system_parts: list[dict[str, str]] = []
        contents: list[dict[str, Any]] = []
        for message in messages:
            if message["role"] == "system":
                system_parts.append({"text": message["content"]})
                continue
            role = "model" if message["role"] == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": message["content"]}]})

        payload: dict[str, Any] = {"contents": contents}
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.2,
    ) -> str:
        payload = self._to_payload(messages)
        payload["generationConfig"] = {
            "temperature": temperature,
            "maxOutputTokens": self._max_tokens,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._endpoint}/models/{self._model}:generateContent",
                    params={"key": self._api_key},
                    json=payload,
                )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMFailedError(f"Gemini request failed: {exc}") from exc

        candidates = data.get("candidates") or []
        if not candidates:
            LOGGER.warning("Gemini response contains no candidates: %s", data)
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)
