"""Process-wide configuration, loaded once at startup and never mutated."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # Listener
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    public_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("public_base_url", "domain"),
        description="Public base URL (or bare hostname) Twilio uses to reach this service.",
    )

    # Twilio (Voice)
    twilio_auth_token: str | None = Field(default=None)
    twilio_validate_signature: bool = Field(
        default=False,
        description="If true, rejects webhook calls without a valid X-Twilio-Signature.",
    )

    greeting_text: str = Field(
        default="Hello, this is your AI assistant. Type or say something!"
    )

    # Speech recognition
    stt_provider: Literal["google", "whisper"] = Field(default="google")
    google_speech_api_key: str | None = Field(default=None)
    google_speech_endpoint: str = Field(default="https://speech.googleapis.com/v1")
    caller_audio_encoding: Literal["LINEAR16", "MULAW"] = Field(
        default="LINEAR16",
        description="Encoding of caller audio payloads as sent to the recognizer.",
    )
    caller_audio_sample_rate_hz: int = Field(default=16000, gt=0)
    speech_language: str = Field(default="en-US")
    whisper_model_size: str = Field(default="small.en")
    whisper_compute_type: str = Field(default="auto")  # e.g. float16, int8_float16
    whisper_device: str = Field(default="auto")
    stt_timeout_seconds: float = Field(default=15.0, gt=0)

    # LLM connectivity
    llm_provider: Literal["gemini", "openai", "self_hosted_vllm", "aleph_alpha"] = Field(
        default="gemini"
    )
    llm_endpoint: str | None = Field(
        default=None, description="Base URL override for the selected provider."
    )
    llm_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("llm_api_key", "gemini_api_key"),
    )
    llm_model: str = Field(default="gemini-1.5-flash")
    llm_max_tokens: int = Field(default=150, gt=0)
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    llm_timeout_seconds: float = Field(default=20.0, gt=0)

    # Text to speech
    tts_provider: Literal["elevenlabs", "azure"] = Field(default="elevenlabs")
    elevenlabs_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("elevenlabs_api_key", "xi_api_key"),
    )
    elevenlabs_voice_id: str | None = Field(default=None)
    elevenlabs_model_id: str = Field(default="eleven_monolingual_v1")
    elevenlabs_stability: float = Field(default=0.7, ge=0.0, le=1.0)
    elevenlabs_similarity_boost: float = Field(default=0.7, ge=0.0, le=1.0)
    elevenlabs_output_format: str = Field(
        default="ulaw_8000",
        description="ElevenLabs output_format; ulaw_8000 is what Twilio Media Streams plays back.",
    )
    elevenlabs_endpoint: str = Field(default="https://api.elevenlabs.io/v1")
    azure_speech_key: str | None = Field(default=None)
    azure_speech_region: str | None = Field(default=None)
    azure_voice: str = Field(default="en-US-JennyNeural")
    tts_timeout_seconds: float = Field(default=15.0, gt=0)

    @field_validator("public_base_url")
    @classmethod
    def normalize_public_base_url(cls, value: str | None) -> str | None:
        if not value:
            return None
        value = value.strip().rstrip("/")
        if "://" not in value:
            # DOMAIN style: bare hostname, served over TLS.
            value = f"https://{value}"
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
