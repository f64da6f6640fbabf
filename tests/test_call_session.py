from __future__ import annotations

import asyncio
import base64

from conftest import DISCONNECT, FakeConnection, FakeResponder, FakeSynthesizer, FakeTranscriber, build_pipeline

from agents.call_session import CallSession, SessionState
from agents.errors import LLMFailedError, TranscriptionFailedError
from agents.replies import (
    GENERATION_APOLOGY,
    GREETING_REPLY,
    HELP_REPLY,
    INVALID_SELECTION_PROMPT,
    RECOGNITION_FALLBACK,
    SALES_PROMPT,
    SUPPORT_PROMPT,
)
from agents.schemas import CallerText

GREETING = "Hello, this is your AI assistant. Type or say something!"


def _audio(message: dict) -> str:
    assert message["event"] == "media"
    return base64.b64decode(message["media"]["payload"]).decode()


def _run(frames: list, expect: int, **pipeline_kwargs) -> tuple[CallSession, FakeConnection]:
    """Run a session over `frames`, hanging up once `expect` frames were sent."""

    async def _go():
        connection = FakeConnection(frames)
        session = CallSession(connection, build_pipeline(**pipeline_kwargs), greeting=GREETING)
        task = asyncio.create_task(session.run())
        await connection.wait_for_sent(expect)
        connection.push(DISCONNECT)
        await task
        return session, connection

    return asyncio.run(_go())


def _audio_event(data: bytes) -> dict:
    return {"event": "audio", "media": {"payload": base64.b64encode(data).decode()}}


def test_first_frame_is_greeting_audio():
    session, connection = _run([], expect=1)

    assert len(connection.sent) == 1
    assert _audio(connection.sent[0]) == f"AUDIO:{GREETING}"
    assert session.state is SessionState.CLOSED


def test_failed_greeting_does_not_stop_the_session():
    synthesizer = FakeSynthesizer(fail_on={GREETING})
    _, connection = _run([{"text": "hello"}], expect=2, synthesizer=synthesizer)

    assert [message["event"] for message in connection.sent] == ["media", "text"]
    assert connection.sent[1]["text"] == GREETING_REPLY


def test_keypad_one_and_two_emit_single_audio_frame():
    _, connection = _run(
        [
            {"event": "dtmf", "digits": "1"},
            {"event": "dtmf", "digits": "2"},
        ],
        expect=3,
    )

    turns = connection.sent[1:]
    assert [message["event"] for message in turns] == ["media", "media"]
    assert _audio(turns[0]) == f"AUDIO:{SALES_PROMPT}"
    assert _audio(turns[1]) == f"AUDIO:{SUPPORT_PROMPT}"


def test_other_keypad_digits_get_invalid_selection_prompt():
    _, connection = _run(
        [{"event": "DTMF", "digits": "#"}, {"event": "dtmf", "dtmf": {"digit": "9"}}],
        expect=3,
    )

    turns = connection.sent[1:]
    assert [_audio(message) for message in turns] == [f"AUDIO:{INVALID_SELECTION_PROMPT}"] * 2


def test_unknown_keys_get_invalid_selection_prompt():
    _, connection = _run(
        [
            {"event": "dtmf", "digits": "12"},
            {"event": "dtmf", "digits": "A"},
            {"event": "dtmf", "digits": 1},
            {"text": "hello"},
        ],
        expect=6,
    )

    keypad_turns = connection.sent[1:4]
    assert [_audio(message) for message in keypad_turns] == [f"AUDIO:{INVALID_SELECTION_PROMPT}"] * 3
    assert connection.sent[5] == {"event": "text", "text": GREETING_REPLY}


def test_caller_audio_emits_audio_then_matching_text():
    transcriber = FakeTranscriber("when do you open")
    responder = FakeResponder("We open at nine.")

    _, connection = _run(
        [_audio_event(b"\x00\x01" * 80)],
        expect=3,
        transcriber=transcriber,
        responder=responder,
    )

    audio_frame, text_frame = connection.sent[1:]
    assert _audio(audio_frame) == "AUDIO:We open at nine."
    assert text_frame == {"event": "text", "text": "We open at nine."}
    assert transcriber.calls == [b"\x00\x01" * 80]
    assert responder.calls == ["when do you open"]


def test_recognition_failure_feeds_fallback_to_generator():
    transcriber = FakeTranscriber(error=TranscriptionFailedError("quota exceeded"))
    responder = FakeResponder("Could you repeat that?")

    _, connection = _run(
        [_audio_event(b"\x00" * 32)],
        expect=3,
        transcriber=transcriber,
        responder=responder,
    )

    assert responder.calls == [RECOGNITION_FALLBACK]
    assert connection.sent[-1] == {"event": "text", "text": "Could you repeat that?"}


def test_synthesis_failure_still_sends_text_frame():
    synthesizer = FakeSynthesizer(fail_on={"We open at nine."})

    _, connection = _run(
        [_audio_event(b"\x00" * 32), {"text": "hello"}],
        expect=4,
        responder=FakeResponder("We open at nine."),
        synthesizer=synthesizer,
    )

    assert connection.sent[1] == {"event": "text", "text": "We open at nine."}
    assert [message["event"] for message in connection.sent[2:]] == ["media", "text"]


def test_hello_uses_canned_greeting_without_generator():
    responder = FakeResponder()
    _, connection = _run([{"text": "Well HELLO there"}], expect=3, responder=responder)

    assert responder.calls == []
    assert _audio(connection.sent[1]) == f"AUDIO:{GREETING_REPLY}"
    assert connection.sent[2] == {"event": "text", "text": GREETING_REPLY}


def test_help_uses_canned_help_reply():
    responder = FakeResponder()
    _, connection = _run([{"text": "I need HELP"}], expect=3, responder=responder)

    assert responder.calls == []
    assert connection.sent[2] == {"event": "text", "text": HELP_REPLY}


def test_other_text_goes_to_generator():
    responder = FakeResponder("Paris.")
    _, connection = _run([{"text": "capital of France?"}], expect=3, responder=responder)

    assert responder.calls == ["capital of France?"]
    assert connection.sent[1:] == [
        {"event": "media", "media": {"payload": base64.b64encode(b"AUDIO:Paris.").decode()}},
        {"event": "text", "text": "Paris."},
    ]


def test_generator_failure_speaks_apology():
    responder = FakeResponder(error=LLMFailedError("503"))
    _, connection = _run([{"text": "tell me a joke"}], expect=3, responder=responder)

    assert _audio(connection.sent[1]) == f"AUDIO:{GENERATION_APOLOGY}"
    assert connection.sent[2] == {"event": "text", "text": GENERATION_APOLOGY}


def test_repeated_text_turns_are_identical():
    _, connection = _run([{"text": "capital of France?"}, {"text": "capital of France?"}], expect=5)

    first, second = connection.sent[1:3], connection.sent[3:5]
    assert first == second
    assert [message["event"] for message in first] == ["media", "text"]


def test_unrecognized_and_malformed_frames_are_ignored():
    _, connection = _run(
        [
            {"event": "mark", "mark": {"name": "x"}},
            "not json",
            {"event": "dtmf"},
            {"event": "dtmf", "digits": ""},
            {"event": "audio"},
            {"text": "hello"},
        ],
        expect=3,
    )

    assert [message["event"] for message in connection.sent] == ["media", "media", "text"]
    assert connection.sent[2]["text"] == GREETING_REPLY


def test_event_tag_wins_over_text_field():
    responder = FakeResponder()
    _, connection = _run(
        [{"event": "dtmf", "digits": "1", "text": "hello"}, {"text": "hello"}],
        expect=4,
        responder=responder,
    )

    assert _audio(connection.sent[1]) == f"AUDIO:{SALES_PROMPT}"
    assert [message["event"] for message in connection.sent[2:]] == ["media", "text"]


def test_start_event_sets_stream_sid_on_outbound_frames():
    session, connection = _run(
        [
            {"event": "start", "streamSid": "MZ123", "start": {"callSid": "CA9", "streamSid": "MZ123"}},
            {"text": "hello"},
        ],
        expect=3,
    )

    assert session.stream_sid == "MZ123"
    assert session.call_id == "CA9"
    assert all(message["streamSid"] == "MZ123" for message in connection.sent[1:])


def test_stop_event_closes_session():
    async def _go():
        connection = FakeConnection([{"event": "stop"}, {"text": "hello"}])
        session = CallSession(connection, build_pipeline(), greeting=GREETING)
        await session.run()
        return session, connection

    session, connection = asyncio.run(_go())

    assert session.state is SessionState.CLOSED
    assert len(connection.sent) == 1


def test_disconnect_during_turn_discards_in_flight_result():
    class HangUpSynthesizer(FakeSynthesizer):
        """Caller hangs up while the reply is being synthesized."""

        def __init__(self, connection: FakeConnection) -> None:
            super().__init__()
            self.connection = connection

        async def synthesize(self, text: str) -> bytes:
            if text != GREETING:
                self.connection.push(DISCONNECT)
                await self.connection.closed.wait()
                await asyncio.sleep(0)
            return await super().synthesize(text)

    async def _go():
        connection = FakeConnection([{"text": "capital of France?"}])
        synthesizer = HangUpSynthesizer(connection)
        session = CallSession(connection, build_pipeline(synthesizer=synthesizer), greeting=GREETING)
        await session.run()
        return session, connection, synthesizer

    session, connection, synthesizer = asyncio.run(_go())

    assert session.state is SessionState.CLOSED
    assert synthesizer.calls == [GREETING, "We are open from nine to five."]
    assert len(connection.sent) == 1


def test_closed_session_ignores_events():
    async def _go():
        connection = FakeConnection()
        session = CallSession(connection, build_pipeline(), greeting=GREETING)
        session.close("test")
        await session.handle_event(CallerText("hello"))
        return connection

    connection = asyncio.run(_go())
    assert connection.sent == []
