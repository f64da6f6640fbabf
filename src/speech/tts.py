"""Text-to-speech synthesis for the assistant's spoken replies."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from xml.sax.saxutils import escape

import httpx

from agents.errors import TTSFailedError
from config.settings import Settings

LOGGER = logging.getLogger(__name__)

# Response media type per ElevenLabs output_format family (`ulaw_8000` -> "ulaw").
_ACCEPT_BY_FORMAT = {
    "mp3": "audio/mpeg",
    "ulaw": "audio/basic",
    "pcm": "audio/pcm",
    "opus": "audio/opus",
}


class BaseSynthesizer(ABC):
    """Interface for all text-to-speech synthesizers."""

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """Synthesize speech for the given text."""


class ElevenLabsSynthesizer(BaseSynthesizer):
    """ElevenLabs text-to-speech REST API."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.elevenlabs_api_key or not settings.elevenlabs_voice_id:
            raise ValueError("ElevenLabs API key and voice id must be configured.")

        self._endpoint = settings.elevenlabs_endpoint.rstrip("/")
        self._api_key = settings.elevenlabs_api_key
        self._voice_id = settings.elevenlabs_voice_id
        self._model_id = settings.elevenlabs_model_id
        self._output_format = settings.elevenlabs_output_format
        self._voice_settings = {
            "stability": settings.elevenlabs_stability,
            "similarity_boost": settings.elevenlabs_similarity_boost,
        }
        self._timeout = settings.tts_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        family = self._output_format.split("_", 1)[0]
        return {
            "xi-api-key": self._api_key,
            "Content-Type": "application/json",
            "Accept": _ACCEPT_BY_FORMAT.get(family, "application/octet-stream"),
        }

    async def synthesize(self, text: str) -> bytes:
        LOGGER.info("Generating speech: %r", text)
        payload = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": self._voice_settings,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._endpoint}/text-to-speech/{self._voice_id}",
                    params={"output_format": self._output_format},
                    json=payload,
                    headers=self._headers(),
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TTSFailedError(f"ElevenLabs request failed: {exc}") from exc

        if not response.content:
            raise TTSFailedError("ElevenLabs returned no audio.")
        return response.content


class AzureSynthesizer(BaseSynthesizer):
    """Wrapper around Azure Cognitive Services Speech SDK."""

    def __init__(self, settings: Settings) -> None:
        try:
            import azure.cognitiveservices.speech as speechsdk
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "azure-cognitiveservices-speech is required for AzureSynthesizer."
            ) from exc

        if not settings.azure_speech_key or not settings.azure_speech_region:
            raise ValueError("Azure speech key and region must be configured.")

        speech_config = speechsdk.SpeechConfig(
            subscription=settings.azure_speech_key,
            region=settings.azure_speech_region,
        )
        speech_config.speech_synthesis_voice_name = settings.azure_voice
        # Telephony playback format for Twilio Media Streams.
        speech_config.set_speech_synthesis_output_format(
            speechsdk.SpeechSynthesisOutputFormat.Raw8Khz8BitMonoMULaw
        )

        self._speechsdk = speechsdk
        self._speech_config = speech_config
        self._voice_name = settings.azure_voice
        self._language = settings.speech_language

    async def synthesize(self, text: str) -> bytes:
        """Synthesize in a worker thread.

        The SDK call has no deadline of its own. A pipeline timeout abandons the
        await but the thread runs until Azure answers or cancels the request.
        """
        return await asyncio.to_thread(self._synthesize_sync, text)

    def _synthesize_sync(self, text: str) -> bytes:
        synthesizer = self._speechsdk.SpeechSynthesizer(
            speech_config=self._speech_config,
            audio_config=None,  # allow retrieving audio data directly
        )
        ssml = self._build_ssml(text=text, voice_name=self._voice_name, language=self._language)
        result = synthesizer.speak_ssml_async(ssml).get()

        if result.reason == self._speechsdk.ResultReason.Canceled:
            cancellation = result.cancellation_details
            raise TTSFailedError(f"Azure TTS canceled: {cancellation.error_details}")

        return result.audio_data

    @staticmethod
    def _build_ssml(text: str, voice_name: str, language: str) -> str:
        return (
            f"<speak version='1.0' xml:lang='{escape(language)}'>"
            f"<voice name='{escape(voice_name)}'>{escape(text)}</voice>"
            "</speak>"
        )


def build_synthesizer(settings: Settings) -> BaseSynthesizer:
    """Factory returning the configured synthesizer."""

    if settings.tts_provider == "elevenlabs":
        return ElevenLabsSynthesizer(settings)
    if settings.tts_provider == "azure":
        return AzureSynthesizer(settings)
    raise ValueError(f"Unsupported TTS provider: {settings.tts_provider}")
