"""Speech-to-text for caller audio segments."""

from __future__ import annotations

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from agents.errors import NoSpeechDetectedError, TranscriptionFailedError
from config.settings import Settings
from speech.audio import WHISPER_SAMPLE_RATE, caller_audio_to_float32

LOGGER = logging.getLogger(__name__)


class BaseTranscriber(ABC):
    """Interface for all speech recognizers."""

    @abstractmethod
    async def transcribe(self, audio_bytes: bytes) -> str:
        """Return the best transcript for one caller utterance."""


class GoogleSpeechTranscriber(BaseTranscriber):
    """Google Cloud Speech-to-Text via the v1 REST `speech:recognize` method."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.google_speech_api_key:
            raise ValueError("Google Speech API key must be configured.")

        self._endpoint = settings.google_speech_endpoint.rstrip("/")
        self._api_key = settings.google_speech_api_key
        self._encoding = settings.caller_audio_encoding
        self._sample_rate = settings.caller_audio_sample_rate_hz
        self._language = settings.speech_language
        self._timeout = settings.stt_timeout_seconds
        self._transport = transport

    def _request_body(self, audio_bytes: bytes) -> dict[str, Any]:
        return {
            "config": {
                "encoding": self._encoding,
                "sampleRateHertz": self._sample_rate,
                "languageCode": self._language,
            },
            "audio": {"content": base64.b64encode(audio_bytes).decode("ascii")},
        }

    async def transcribe(self, audio_bytes: bytes) -> str:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._endpoint}/speech:recognize",
                    params={"key": self._api_key},
                    json=self._request_body(audio_bytes),
                )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TranscriptionFailedError(f"Google Speech request failed: {exc}") from exc

        transcripts = [
            result["alternatives"][0].get("transcript", "").strip()
            for result in data.get("results", [])
            if result.get("alternatives")
        ]
        transcript = "\n".join(text for text in transcripts if text)
        if not transcript:
            raise NoSpeechDetectedError()

        LOGGER.info("Transcribed text: %s", transcript)
        return transcript


class WhisperTranscriber(BaseTranscriber):
    """Local transcription using faster-whisper, run off the event loop."""

    def __init__(self, settings: Settings) -> None:
        from faster_whisper import WhisperModel

        self._model = WhisperModel(
            model_size_or_path=settings.whisper_model_size,
            device=settings.whisper_device,
            compute_type=settings.whisper_compute_type,
        )
        self._encoding = settings.caller_audio_encoding
        self._sample_rate = settings.caller_audio_sample_rate_hz
        self._language = settings.speech_language.split("-")[0]

    async def transcribe(self, audio_bytes: bytes) -> str:
        """Decode in a worker thread.

        faster-whisper cannot be interrupted; when the pipeline times out the
        thread still finishes the segment and its result is dropped. Keep
        `stt_timeout_seconds` above the model's worst case so threads do not pile up.
        """
        try:
            transcript = await asyncio.to_thread(self._transcribe_sync, audio_bytes)
        except (RuntimeError, ValueError) as exc:
            raise TranscriptionFailedError(f"Whisper transcription failed: {exc}") from exc

        if not transcript:
            raise NoSpeechDetectedError()
        LOGGER.info("Transcribed text: %s", transcript)
        return transcript

    def _transcribe_sync(self, audio_bytes: bytes) -> str:
        audio_array = caller_audio_to_float32(
            audio_bytes,
            encoding=self._encoding,
            sample_rate=self._sample_rate,
            dst_rate=WHISPER_SAMPLE_RATE,
        )
        if not audio_array.size:
            return ""

        segments, _info = self._model.transcribe(
            audio_array,
            beam_size=5,
            task="transcribe",
            language=self._language,
            temperature=0.0,
        )
        return " ".join(segment.text.strip() for segment in segments if segment.text.strip())


def build_transcriber(settings: Settings) -> BaseTranscriber:
    """Factory returning the configured recognizer."""

    if settings.stt_provider == "google":
        return GoogleSpeechTranscriber(settings)
    if settings.stt_provider == "whisper":
        return WhisperTranscriber(settings)
    raise ValueError(f"Unsupported STT provider: {settings.stt_provider}")
