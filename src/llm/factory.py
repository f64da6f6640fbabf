"""Factory returning configured LLM client implementation."""

from __future__ import annotations

from config.settings import Settings
from llm.base import BaseLLMClient
from llm.gemini_client import GeminiClient
from llm.openai_client import OpenAIClient
from llm.vllm_client import VLLMClient

try:  # aleph-alpha extra
    from llm.aleph_alpha_client import AlephAlphaClient  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    AlephAlphaClient = None  # type: ignore


def build_llm_client(settings: Settings) -> BaseLLMClient:
    """Instantiate the configured LLM connector."""

    if settings.llm_provider == "gemini":
        return GeminiClient(settings)
    if settings.llm_provider == "self_hosted_vllm":
        return VLLMClient(settings)
    if settings.llm_provider == "openai":
        return OpenAIClient(settings)
    if settings.llm_provider == "aleph_alpha":
        if AlephAlphaClient is None:
            raise ImportError("aleph-alpha-client package not installed.")
        return AlephAlphaClient(settings)
    raise ValueError(f"Unsupported llm_provider: {settings.llm_provider}")
