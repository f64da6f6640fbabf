"""Twilio Voice integration.

This module provides:
- Voice webhook (TwiML) that connects an inbound call to a bidirectional Media Stream.
- The Media Stream WebSocket endpoint, one `CallSession` per connection.
"""

from __future__ import annotations

import contextlib
import logging
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, HTTPException, Request, Response, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from agents.call_session import CallSession
from agents.errors import ConnectionLostError
from api.dependencies import get_pipeline
from config.settings import get_settings
from integrations.twilio_client import is_valid_twilio_request

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])

STREAM_PATH = "/api/twilio/media-stream"


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _twiml_connect_stream(*, stream_url: str) -> str:
    stream = escape(stream_url, {'"': "&quot;"})
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Connect>"
        f"<Stream url=\"{stream}\" />"
        "</Connect>"
        "</Response>"
    )


def _stream_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return _to_ws_url(f"{settings.public_base_url}{STREAM_PATH}")
    # Fallback to request host. This may not work behind proxies; prefer PUBLIC_BASE_URL.
    return _to_ws_url(str(request.base_url).rstrip("/") + STREAM_PATH)


def _webhook_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return f"{settings.public_base_url}{request.url.path}"
    return str(request.url)


@router.post("/voice")
async def twilio_voice_webhook(request: Request) -> Response:
    settings = get_settings()
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    if settings.twilio_validate_signature and not is_valid_twilio_request(
        settings,
        url=_webhook_url(request),
        params=params,
        signature=request.headers.get("X-Twilio-Signature"),
    ):
        LOGGER.warning("Rejected Twilio webhook with invalid signature")
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")

    call_sid = params.get("CallSid", "").strip() or "unknown"
    stream_url = _stream_url(request)
    LOGGER.info("Incoming call %s; streaming to %s", call_sid, stream_url)
    return _twiml_response(_twiml_connect_stream(stream_url=stream_url))


class WebSocketConnection:
    """Adapts a FastAPI WebSocket to the session's connection interface."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def receive_text(self) -> str:
        try:
            message = await self._websocket.receive()
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise ConnectionLostError(str(exc)) from exc
        if message["type"] == "websocket.disconnect":
            raise ConnectionLostError(f"WebSocket closed with code {message.get('code')}")
        if message.get("text") is not None:
            return message["text"]
        # Binary frames are decoded and left to the codec to reject.
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except (WebSocketDisconnect, RuntimeError) as exc:
            raise ConnectionLostError(str(exc)) from exc


@router.websocket("/media-stream")
async def twilio_media_stream(
    websocket: WebSocket,
    pipeline=Depends(get_pipeline),
) -> None:
    await websocket.accept()
    LOGGER.info("WebSocket connection established")
    session = CallSession(
        WebSocketConnection(websocket),
        pipeline,
        greeting=get_settings().greeting_text,
    )
    await session.run()
    if websocket.client_state is WebSocketState.CONNECTED:
        # Stream stopped on our side while the socket is still open.
        with contextlib.suppress(RuntimeError):
            await websocket.close()
    LOGGER.info("WebSocket connection closed")
