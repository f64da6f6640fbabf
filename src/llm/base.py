"""Shared abstractions for language model clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable


class BaseLLMClient(ABC):
    """Abstract base class for LLM providers.

    Implementations raise `LLMFailedError` for any upstream failure.
    """

    @abstractmethod
    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        temperature: float = 0.2,
    ) -> str:
        """Return a chat-style completion."""
