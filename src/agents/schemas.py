"""Inbound events and outbound frames exchanged over a call's media stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class Keypad:
    """A key press. `digit` is None when the frame named the key with a non-string value."""

    digit: str | None


@dataclass(frozen=True, slots=True)
class CallerAudio:
    payload: bytes


@dataclass(frozen=True, slots=True)
class CallerText:
    utterance: str


@dataclass(frozen=True, slots=True)
class StreamStarted:
    """Twilio `start` event; carries the identifiers needed for outbound media."""

    stream_sid: str | None
    call_sid: str | None


@dataclass(frozen=True, slots=True)
class StreamStopped:
    pass


@dataclass(frozen=True, slots=True)
class Unrecognized:
    event: str | None = None


InboundEvent = Union[Keypad, CallerAudio, CallerText, StreamStarted, StreamStopped, Unrecognized]


@dataclass(frozen=True, slots=True)
class AudioFrame:
    payload: bytes


@dataclass(frozen=True, slots=True)
class TextFrame:
    text: str


OutboundFrame = Union[AudioFrame, TextFrame]
