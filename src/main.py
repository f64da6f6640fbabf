"""Entry point for the Twilio voice bridge service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from api.routes import router as api_router
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.caller_audio_encoding != "MULAW" or settings.caller_audio_sample_rate_hz != 8000:
        # Twilio Media Streams carry 8 kHz mu-law; other settings only fit clients that transcode.
        LOGGER.warning(
            "Recognizer expects %s @ %d Hz; Twilio streams audio/x-mulaw @ 8000 Hz",
            settings.caller_audio_encoding,
            settings.caller_audio_sample_rate_hz,
        )
    if not settings.public_base_url:
        LOGGER.warning("PUBLIC_BASE_URL is not set; stream URLs fall back to the request host")
    yield


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Twilio Voice Bridge",
    description="Bridges phone calls on Twilio Media Streams to a speech-driven AI assistant.",
    lifespan=lifespan,
)
app.include_router(api_router, prefix="/api")


def run() -> None:
    LOGGER.info("Server running on port %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
