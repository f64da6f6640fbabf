"""Twilio Media Streams message codec.

Inbound frames are classified by their `event` tag first; frames whose tag is
missing or unknown fall back to payload shape (a `text` field means caller text).
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from agents.errors import MalformedEventError
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


def parse_inbound_frame(text: str | bytes) -> InboundEvent:
    try:
        message = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedEventError(f"Frame is not valid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise MalformedEventError("Frame is not a JSON object")
    return classify_message(message)


def classify_message(message: dict[str, Any]) -> InboundEvent:
    raw_event = message.get("event")
    event = raw_event.lower() if isinstance(raw_event, str) else None

    if event == "dtmf":
        return Keypad(digit=_dtmf_digit(message))
    if event == "audio":
        return CallerAudio(payload=_audio_payload(message))
    if event == "start":
        start = message.get("start")
        if not isinstance(start, dict):
            start = {}
        return StreamStarted(
            stream_sid=message.get("streamSid") or start.get("streamSid"),
            call_sid=start.get("callSid"),
        )
    if event == "stop":
        return StreamStopped()

    utterance = message.get("text")
    if isinstance(utterance, str) and utterance:
        return CallerText(utterance=utterance)

    return Unrecognized(event=raw_event if isinstance(raw_event, str) else None)


def _dtmf_digit(message: dict[str, Any]) -> str | None:
    dtmf = message.get("dtmf")
    digit = dtmf.get("digit") if isinstance(dtmf, dict) else None
    digit = digit or message.get("digits") or message.get("Digits")
    if not digit:
        raise MalformedEventError("Keypad frame without a digit")
    # Unknown keys are still presses and get the invalid-selection prompt.
    return digit if isinstance(digit, str) else None


def _audio_payload(message: dict[str, Any]) -> bytes:
    media = message.get("media")
    payload = media.get("payload") if isinstance(media, dict) else None
    if not isinstance(payload, str) or not payload:
        raise MalformedEventError("Audio frame without media.payload")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedEventError(f"Audio payload is not base64: {exc}") from exc


def frame_to_message(frame: OutboundFrame, *, stream_sid: str | None = None) -> dict[str, Any]:
    if isinstance(frame, AudioFrame):
        message: dict[str, Any] = {
            "event": "media",
            "media": {"payload": base64.b64encode(frame.payload).decode("ascii")},
        }
    elif isinstance(frame, TextFrame):
        message = {"event": "text", "text": frame.text}
    else:  # pragma: no cover - exhaustive over OutboundFrame
        raise TypeError(f"Unsupported frame: {frame!r}")

    # Twilio drops outbound media that does not name its stream.
    if stream_sid:
        message["streamSid"] = stream_sid
    return message


def serialize_frame(frame: OutboundFrame, *, stream_sid: str | None = None) -> str:
    return json.dumps(frame_to_message(frame, stream_sid=stream_sid))
