from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from agents.errors import ConnectionLostError, TTSFailedError  # noqa: E402
from agents.pipeline import TurnPipeline  # noqa: E402

DISCONNECT = object()


class FakeTranscriber:
    def __init__(self, transcript: str = "what are your opening hours", error: Exception | None = None) -> None:
        self.transcript = transcript
        self.error = error
        self.calls: list[bytes] = []

    async def transcribe(self, audio_bytes: bytes) -> str:
        self.calls.append(audio_bytes)
        if self.error:
            raise self.error
        return self.transcript


class FakeResponder:
    def __init__(self, reply: str = "We are open from nine to five.", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[str] = []

    async def generate(self, utterance: str) -> str:
        self.calls.append(utterance)
        if self.error:
            raise self.error
        return self.reply


class FakeSynthesizer:
    """Returns `AUDIO:<text>` so tests can see which text each frame was made from."""

    def __init__(self, fail_on: set[str] | None = None, fail_all: bool = False) -> None:
        self.fail_on = fail_on or set()
        self.fail_all = fail_all
        self.calls: list[str] = []

    async def synthesize(self, text: str) -> bytes:
        self.calls.append(text)
        if self.fail_all or text in self.fail_on:
            raise TTSFailedError("voice unavailable")
        return f"AUDIO:{text}".encode()


class FakeConnection:
    """In-memory duplex channel; queue `DISCONNECT` to simulate the caller hanging up."""

    def __init__(self, frames: list | None = None) -> None:
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = asyncio.Event()
        for frame in frames or []:
            self.push(frame)

    def push(self, frame) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self.inbound.put_nowait(frame)

    async def receive_text(self) -> str:
        item = await self.inbound.get()
        if item is DISCONNECT:
            self.closed.set()
            raise ConnectionLostError("caller hung up")
        return item

    async def send_text(self, data: str) -> None:
        if self.closed.is_set():
            raise ConnectionLostError("socket closed")
        self.sent.append(json.loads(data))

    async def wait_for_sent(self, count: int, timeout: float = 2.0) -> None:
        async def _wait() -> None:
            while len(self.sent) < count:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(_wait(), timeout=timeout)


def build_pipeline(
    transcriber: FakeTranscriber | None = None,
    responder: FakeResponder | None = None,
    synthesizer: FakeSynthesizer | None = None,
) -> TurnPipeline:
    return TurnPipeline(
        transcriber or FakeTranscriber(),
        responder or FakeResponder(),
        synthesizer or FakeSynthesizer(),
    )


@pytest.fixture(scope="session")
def app():
    os.environ.setdefault("PUBLIC_BASE_URL", "https://voice.example.com")

    import importlib

    for module_name in ["config.settings", "api.dependencies", "api.twilio_routes", "api.routes", "main"]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def fakes():
    return {
        "transcriber": FakeTranscriber(),
        "responder": FakeResponder(),
        "synthesizer": FakeSynthesizer(),
    }


@pytest.fixture()
def client(app, fakes):
    # Override the pipeline so tests never reach speech or LLM providers.
    import api.dependencies as deps

    app.dependency_overrides[deps.get_pipeline] = lambda: build_pipeline(**fakes)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
