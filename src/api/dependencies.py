"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from config.settings import get_settings

if TYPE_CHECKING:  # pragma: no cover
    from agents.pipeline import TurnPipeline


@lru_cache(maxsize=1)
def _pipeline_factory() -> TurnPipeline:
    # Lazy import to avoid importing provider SDKs at module import time.
    from agents.pipeline import StageTimeouts, TurnPipeline
    from agents.responder import ResponseGenerator
    from llm.factory import build_llm_client
    from speech.transcriber import build_transcriber
    from speech.tts import build_synthesizer

    settings = get_settings()
    return TurnPipeline(
        transcriber=build_transcriber(settings),
        responder=ResponseGenerator(
            build_llm_client(settings),
            temperature=settings.llm_temperature,
        ),
        synthesizer=build_synthesizer(settings),
        timeouts=StageTimeouts.from_settings(settings),
    )


def get_pipeline() -> TurnPipeline:
    return _pipeline_factory()
