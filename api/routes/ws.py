"""WebSocket route for trip chat.

- Authenticate during the handshake; refuse (1008) before accepting.
- Heartbeat/idle-timeout handling to detect half-open connections:
  server sends JSON ping on idle and closes after configurable missed pongs.
- Every decoded frame goes to the session manager; errors are reported
  to the caller as `error` frames and never close the socket.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from application.ports.realtime import Envelope
from application.services.auth_service import ConnectionAuthenticator
from application.services.realtime_service import RealtimeSessionManager
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from api.dependencies import get_authenticator
from api.middleware import bind_connection_context


logger = get_logger(__name__)


router = APIRouter(prefix="/ws", tags=["WebSocket"])

_POLICY_VIOLATION = 1008
_GOING_AWAY = 1001
_INTERNAL_ERROR = 1011


def _extract_token(ws: WebSocket) -> str | None:
    # Prefer query param, fallback to header `Authorization: Bearer x`
    token = ws.query_params.get("token")
    if token:
        return token
    auth = ws.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None


def get_session_manager_from_app(ws: WebSocket) -> RealtimeSessionManager:
    manager = getattr(ws.app.state, "realtime_sessions", None)
    if manager is None:
        raise RuntimeError("Realtime session manager not initialized. Ensure lifespan sets app.state.realtime_sessions.")
    return manager


class _PeerTimedOut(Exception):
    pass


async def _close_quietly(ws: WebSocket, code: int) -> None:
    try:
        await ws.close(code=code)
    except RuntimeError:
        # already closed by the peer
        pass


async def _receive_frame(ws: WebSocket, missed: list[int], send_ping: Callable[[], Awaitable[None]]) -> Any:
    """Wait for the next frame, pinging the peer while idle.

    The ping goes through the connection's send queue like every other
    outbound frame.
    """
    idle_ping_interval = float(settings.REALTIME_WS_IDLE_PING_INTERVAL_S or 0)
    if idle_ping_interval <= 0:
        return await ws.receive_text()

    pong_grace = float(settings.REALTIME_WS_PONG_GRACE_S)
    missed_limit = int(settings.REALTIME_WS_MISSED_PING_LIMIT)
    while True:
        try:
            text = await asyncio.wait_for(ws.receive_text(), timeout=idle_ping_interval)
            missed[0] = 0
            return text
        except asyncio.TimeoutError:
            missed[0] += 1
            await send_ping()
        try:
            text = await asyncio.wait_for(ws.receive_text(), timeout=pong_grace)
            missed[0] = 0
            return text
        except asyncio.TimeoutError:
            if missed[0] > missed_limit:
                raise _PeerTimedOut()


@router.websocket("")
async def websocket_endpoint(
    ws: WebSocket,
    authenticator: ConnectionAuthenticator = Depends(get_authenticator),
) -> None:
    bind_connection_context(ws)
    try:
        user = await authenticator.authenticate(_extract_token(ws))
    except BusinessException as exc:
        logger.info("ws_handshake_rejected", error_type=exc.error_type, code=int(exc.code))
        await ws.close(code=_POLICY_VIOLATION)
        return

    sessions = get_session_manager_from_app(ws)
    await ws.accept()
    conn = await sessions.connect(user, ws)
    bind_connection_context(ws, connection_id=conn.id, user_id=user.id)

    missed = [0]

    async def send_ping() -> None:
        await sessions.connections.send_to(conn.id, Envelope(type="ping"))

    try:
        while True:
            text = await _receive_frame(ws, missed, send_ping)
            try:
                frame = json.loads(text)
            except ValueError:
                frame = None
            await sessions.handle_event(conn.id, frame)
    except WebSocketDisconnect:
        logger.info("ws_peer_closed", connection_id=conn.id)
    except _PeerTimedOut:
        logger.info("ws_heartbeat_timeout", connection_id=conn.id)
        await _close_quietly(ws, _GOING_AWAY)
    except Exception as exc:
        logger.error("ws_error", connection_id=conn.id, error=str(exc), exc_info=True)
        await _close_quietly(ws, _INTERNAL_ERROR)
    finally:
        await sessions.disconnect(conn.id)
