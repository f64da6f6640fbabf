"""Domain-specific exceptions for call handling.

These exceptions are safe to import from API layers without triggering heavy ML imports.
"""

from __future__ import annotations


class AssistantError(Exception):
    default_detail: str = "Assistant error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class TranscriptionFailedError(AssistantError):
    default_detail = "Transcription failed."


class NoSpeechDetectedError(TranscriptionFailedError):
    default_detail = "No speech detected."


class LLMFailedError(AssistantError):
    default_detail = "LLM request failed."


class TTSFailedError(AssistantError):
    default_detail = "Speech synthesis failed."


class MalformedEventError(AssistantError):
    default_detail = "Malformed stream frame."


class ConnectionLostError(AssistantError):
    default_detail = "Connection lost."
