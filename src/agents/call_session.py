"""Per-call session driving one Twilio media stream.

A session is `ACTIVE` from the moment the stream connects until the caller
hangs up, the stream stops, or a send fails; it is then `CLOSED` for good.
Events are handled one at a time in arrival order, and every frame produced by
a turn is written before the next event is looked at.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from enum import Enum
from typing import Protocol

from agents.errors import ConnectionLostError, MalformedEventError
from agents.pipeline import PipelineResult, TurnPipeline
from agents.replies import keypad_prompt
from agents.schemas import (
    AudioFrame,
    CallerAudio,
    CallerText,
    InboundEvent,
    Keypad,
    OutboundFrame,
    StreamStarted,
    StreamStopped,
    TextFrame,
    Unrecognized,
)
from integrations.twilio_streaming import parse_inbound_frame, serialize_frame

LOGGER = logging.getLogger(__name__)


class SessionState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class CallConnection(Protocol):
    """Duplex text channel; both methods raise `ConnectionLostError` once it is gone."""

    async def receive_text(self) -> str: ...

    async def send_text(self, data: str) -> None: ...


class CallSession:
    def __init__(
        self,
        connection: CallConnection,
        pipeline: TurnPipeline,
        *,
        greeting: str,
        call_id: str = "unknown",
    ) -> None:
        self._connection = connection
        self._pipeline = pipeline
        self._greeting = greeting
        self.call_id = call_id
        self.stream_sid: str | None = None
        self._state = SessionState.ACTIVE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    async def run(self) -> None:
        """Greet the caller, then process events until the session closes."""

        LOGGER.info("Call session %s started", self.call_id)
        events: asyncio.Queue[InboundEvent | None] = asyncio.Queue()
        reader = asyncio.create_task(self._read_events(events))
        try:
            await self.greet()
            while self.is_active:
                event = await events.get()
                if event is None:
                    break
                await self.handle_event(event)
        finally:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
            self.close("session ended")

    async def greet(self) -> None:
        result = await self._pipeline.speak(self._greeting)
        self._log_failures("greeting", result)
        await self._emit(self._frames(result, include_text=False))

    async def handle_event(self, event: InboundEvent) -> None:
        if not self.is_active:
            LOGGER.debug("Session %s closed; ignoring %r", self.call_id, event)
            return

        if isinstance(event, Keypad):
            LOGGER.info("Caller pressed digit: %s", event.digit)
            result = await self._pipeline.speak(keypad_prompt(event.digit))
            self._log_failures("keypad", result)
            await self._emit(self._frames(result, include_text=False))
        elif isinstance(event, CallerAudio):
            LOGGER.info("Caller audio segment: %d bytes", len(event.payload))
            result = await self._pipeline.respond_to_audio(event.payload)
            self._log_failures("audio", result)
            await self._emit(self._frames(result, include_text=True))
        elif isinstance(event, CallerText):
            LOGGER.info("User said: %s", event.utterance)
            result = await self._pipeline.respond_to_text(event.utterance)
            self._log_failures("text", result)
            await self._emit(self._frames(result, include_text=True))
        elif isinstance(event, StreamStarted):
            self.stream_sid = event.stream_sid
            if event.call_sid:
                self.call_id = event.call_sid
            LOGGER.info("Media stream %s started for call %s", self.stream_sid, self.call_id)
        elif isinstance(event, StreamStopped):
            self.close("stream stopped")
        elif isinstance(event, Unrecognized):
            LOGGER.debug("Ignoring unrecognized event %r", event.event)

    def close(self, reason: str) -> None:
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        LOGGER.info("Call session %s closed: %s", self.call_id, reason)

    async def _read_events(self, events: asyncio.Queue[InboundEvent | None]) -> None:
        try:
            while self.is_active:
                raw = await self._connection.receive_text()
                try:
                    event = parse_inbound_frame(raw)
                except MalformedEventError as exc:
                    LOGGER.warning("Discarding malformed frame: %s", exc.detail)
                    continue
                await events.put(event)
        except ConnectionLostError:
            self.close("connection lost")
        finally:
            events.put_nowait(None)

    @staticmethod
    def _frames(result: PipelineResult, *, include_text: bool) -> list[OutboundFrame]:
        # Audio goes first so the caller hears the reply before any text surfaces.
        frames: list[OutboundFrame] = []
        if result.audio is not None:
            frames.append(AudioFrame(result.audio))
        if include_text and result.reply_text:
            frames.append(TextFrame(result.reply_text))
        return frames

    async def _emit(self, frames: Sequence[OutboundFrame]) -> None:
        for frame in frames:
            if not self.is_active:
                LOGGER.info("Session %s closed; discarding %s", self.call_id, type(frame).__name__)
                return
            try:
                await self._connection.send_text(serialize_frame(frame, stream_sid=self.stream_sid))
            except ConnectionLostError:
                self.close("connection lost while sending")
                return

    def _log_failures(self, turn: str, result: PipelineResult) -> None:
        for failure in result.failures:
            LOGGER.warning(
                "Call %s %s turn: %s stage failed (%s)",
                self.call_id,
                turn,
                failure.stage.value,
                failure.cause,
            )
