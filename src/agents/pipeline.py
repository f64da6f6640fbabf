"""Sequential recognize -> generate -> synthesize pipeline for one call turn.

Stages run strictly one after another. A failing stage never aborts the turn:
its failure is recorded and a fallback value is handed to the next stage
(fallback transcript, apology reply, or no audio).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, TypeVar

from agents.errors import AssistantError
from agents.replies import GENERATION_APOLOGY, RECOGNITION_FALLBACK, canned_reply
from config.settings import Settings

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Stage(str, Enum):
    RECOGNIZER = "recognizer"
    RESPONSE_GENERATOR = "response_generator"
    SYNTHESIZER = "synthesizer"


class Transcriber(Protocol):
    async def transcribe(self, audio_bytes: bytes) -> str: ...


class Responder(Protocol):
    async def generate(self, utterance: str) -> str: ...


class Synthesizer(Protocol):
    async def synthesize(self, text: str) -> bytes: ...


@dataclass(frozen=True, slots=True)
class StageFailure:
    stage: Stage
    cause: str


@dataclass(frozen=True, slots=True)
class StageTimeouts:
    recognizer: float = 15.0
    response_generator: float = 20.0
    synthesizer: float = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> StageTimeouts:
        return cls(
            recognizer=settings.stt_timeout_seconds,
            response_generator=settings.llm_timeout_seconds,
            synthesizer=settings.tts_timeout_seconds,
        )

    def for_stage(self, stage: Stage) -> float:
        return getattr(self, stage.value)


@dataclass(frozen=True, slots=True)
class PipelineResult:
    reply_text: str
    audio: bytes | None
    failures: tuple[StageFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    def failed(self, stage: Stage) -> bool:
        return any(failure.stage is stage for failure in self.failures)


class TurnPipeline:
    """Runs the stage chain for a single turn; holds no per-call state."""

    def __init__(
        self,
        transcriber: Transcriber,
        responder: Responder,
        synthesizer: Synthesizer,
        *,
        timeouts: StageTimeouts | None = None,
    ) -> None:
        self._transcriber = transcriber
        self._responder = responder
        self._synthesizer = synthesizer
        self._timeouts = timeouts or StageTimeouts()

    async def speak(self, text: str) -> PipelineResult:
        """Synthesize a fixed prompt (greeting, keypad menu)."""

        failures: list[StageFailure] = []
        audio = await self._synthesize(text, failures)
        return PipelineResult(reply_text=text, audio=audio, failures=tuple(failures))

    async def respond_to_text(self, utterance: str) -> PipelineResult:
        failures: list[StageFailure] = []
        reply = canned_reply(utterance)
        if reply is None:
            reply = await self._generate(utterance, failures)
        audio = await self._synthesize(reply, failures)
        return PipelineResult(reply_text=reply, audio=audio, failures=tuple(failures))

    async def respond_to_audio(self, payload: bytes) -> PipelineResult:
        failures: list[StageFailure] = []
        transcript = await self._run_stage(
            Stage.RECOGNIZER,
            self._transcriber.transcribe(payload),
            fallback=RECOGNITION_FALLBACK,
            failures=failures,
        )
        # The recognition fallback is deliberately sent on as if the caller said it.
        reply = await self._generate(transcript, failures)
        audio = await self._synthesize(reply, failures)
        return PipelineResult(reply_text=reply, audio=audio, failures=tuple(failures))

    async def _generate(self, utterance: str, failures: list[StageFailure]) -> str:
        return await self._run_stage(
            Stage.RESPONSE_GENERATOR,
            self._responder.generate(utterance),
            fallback=GENERATION_APOLOGY,
            failures=failures,
        )

    async def _synthesize(self, text: str, failures: list[StageFailure]) -> bytes | None:
        audio = await self._run_stage(
            Stage.SYNTHESIZER,
            self._synthesizer.synthesize(text),
            fallback=None,
            failures=failures,
        )
        if audio is not None and not audio:
            failures.append(StageFailure(Stage.SYNTHESIZER, "empty audio"))
            return None
        return audio

    async def _run_stage(
        self,
        stage: Stage,
        call: Awaitable[T],
        *,
        fallback: T,
        failures: list[StageFailure],
    ) -> T:
        timeout = self._timeouts.for_stage(stage)
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            cause = f"timed out after {timeout:g}s"
            LOGGER.warning("%s stage %s", stage.value, cause)
        except AssistantError as exc:
            cause = exc.detail
            LOGGER.warning("%s stage failed: %s", stage.value, cause)
        except Exception as exc:
            cause = f"{type(exc).__name__}: {exc}"
            LOGGER.exception("%s stage raised unexpectedly", stage.value)
        failures.append(StageFailure(stage, cause))
        return fallback
