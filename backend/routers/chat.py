"""
Relay Chat Router - WebSocket Handler

Live chat between customers, the assistant bot and human agents. This module
handles the WebSocket endpoint and delegates everything else to
chat_orchestration/.

Architecture:
- chat.py: WebSocket endpoint, handshake auth and frame loop
- chat_orchestration/: Chat core
  - presence.py: Identity, connections, rooms
  - router.py: ChatRouter event handlers
  - conversation_store.py: Conversation state
  - escalation.py / emotion.py: Bot-vs-human decision
  - responder.py: Bot reply text

Wire format, both directions: {"event": "<name>", "data": <payload>}
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from errors import AuthError, ErrorCode, RelayError, ValidationError, error_event
from middleware.rate_limit import check_ws_connection_limit, check_ws_message_limit
from services.llm_client import get_llm_client
from services.sentiment_client import get_sentiment_client

from .chat_orchestration import (
    ChatRouter,
    Connection,
    ConnectionHub,
    ConversationStore,
    EmotionDetector,
    EscalationPolicy,
    Handshake,
    Identity,
    PresenceGateway,
    ResponseGenerator,
)
from .chat_orchestration import schemas

logger = logging.getLogger(__name__)

router = APIRouter()

# Process-wide chat core, built on first use
_chat_router: Optional[ChatRouter] = None
_gateway: Optional[PresenceGateway] = None


def build_chat_router() -> ChatRouter:
    """Wire the chat core from the configured oracles."""
    store = ConversationStore()
    hub = ConnectionHub()
    responder = ResponseGenerator(get_llm_client())
    emotion = EmotionDetector(get_sentiment_client())
    policy = EscalationPolicy(store, emotion, bot_available=lambda: responder.available)
    return ChatRouter(store, policy, responder, hub)


def get_chat_router() -> ChatRouter:
    global _chat_router
    if _chat_router is None:
        _chat_router = build_chat_router()
        logger.info(f"Chat router ready (bot oracle {'on' if _chat_router.responder.available else 'off'})")
    return _chat_router


def get_presence_gateway() -> PresenceGateway:
    global _gateway
    chat_router = get_chat_router()
    if _gateway is None or _gateway.hub is not chat_router.hub:
        _gateway = PresenceGateway(chat_router.hub)
    return _gateway


def set_chat_router(chat_router: Optional[ChatRouter]) -> None:
    """Replace (or with None, reset) the process-wide chat core."""
    global _chat_router, _gateway
    _chat_router = chat_router
    _gateway = None


class WebSocketConnection(Connection):
    """Connection over a Starlette WebSocket. Sends are serialized per socket."""

    def __init__(self, websocket: WebSocket, identity: Identity):
        super().__init__(identity)
        self.websocket = websocket
        self._send_lock = asyncio.Lock()

    async def _transmit(self, frame: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(frame)


def _get_client_ip(websocket: WebSocket) -> str:
    """Extract client IP from WebSocket, handling proxies."""
    # Check X-Forwarded-For header
    forwarded = websocket.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    # Check X-Real-IP header
    real_ip = websocket.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fall back to direct connection
    if websocket.client:
        return websocket.client.host

    return "unknown"


def _handshake_from(websocket: WebSocket) -> Handshake:
    return Handshake(
        token=websocket.query_params.get("token"),
        authorization=websocket.headers.get("Authorization"),
        cookies=dict(websocket.cookies),
    )


def _parse_frame(raw: str) -> tuple:
    """Decode one inbound frame into (event, data)."""
    try:
        frame = json.loads(raw)
    except ValueError as e:
        raise ValidationError(
            "Invalid frame",
            details="Frame is not JSON",
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
        ) from e
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        raise ValidationError(
            "Invalid frame",
            details='Expected {"event": <name>, "data": <payload>}',
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
        )
    return frame["event"], frame.get("data")


@router.websocket("/ws/chat")
async def chat_websocket(websocket: WebSocket):
    """WebSocket endpoint for live chat."""
    client_ip = _get_client_ip(websocket)

    # Rate limit check for WebSocket connections
    allowed, error_msg = await check_ws_connection_limit(client_ip)
    if not allowed:
        logger.warning(f"WS connection rate limited: {client_ip}")
        await websocket.close(code=1008, reason="Rate limit exceeded")
        return

    chat_router = get_chat_router()
    gateway = get_presence_gateway()

    try:
        identity = gateway.authenticate(_handshake_from(websocket))
    except AuthError as e:
        logger.warning(f"Chat handshake rejected from {client_ip}: {e}")
        await websocket.close(code=1008, reason=e.details or e.message)
        return

    await websocket.accept()
    conn = WebSocketConnection(websocket, identity)
    gateway.attach(conn)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                event, data = _parse_frame(raw)
            except RelayError as e:
                await conn.send(schemas.ERROR, error_event(e))
                continue

            if event == schemas.SEND_MESSAGE:
                allowed, error_msg = await check_ws_message_limit(conn.connection_id)
                if not allowed:
                    await conn.send(
                        schemas.ERROR,
                        {"message": error_msg, "code": ErrorCode.RATE_LIMITED.value, "event": event},
                    )
                    continue

            await chat_router.dispatch(conn, event, data)

    except WebSocketDisconnect:
        logger.info(f"Chat disconnected: {conn.connection_id}")
    finally:
        conn.closed = True
        await chat_router.disconnect(conn)
