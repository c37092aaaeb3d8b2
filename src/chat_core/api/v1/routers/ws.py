from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AppError, AuthenticationError, RateLimitedError
from chat_core.config import settings
from chat_core.domain.value_objects.enums import ConnectionState
from chat_core.infrastructure.ws import protocol
from chat_core.infrastructure.ws.connection import Connection
from chat_core.infrastructure.ws.gateway import RealtimeGateway

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

CLOSE_AUTH_FAILED = 4001
CLOSE_AUTH_TIMEOUT = 4008
CLOSE_RATE_LIMITED = 4029
CLOSE_INTERNAL_ERROR = 1011


def _client_host(websocket: WebSocket) -> str:
    return websocket.client.host if websocket.client else "unknown"


def _handshake_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    scheme, _, credentials = websocket.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def _authenticate(
    websocket: WebSocket,
    gateway: RealtimeGateway,
    conn: Connection,
) -> Principal:
    conn.state = ConnectionState.AUTHENTICATING
    token = _handshake_token(websocket)
    if token is None:
        token = protocol.parse_authenticate(await websocket.receive_text())
    return await gateway.authenticate(token)


@router.websocket("/ws/chat")
async def ws_chat(websocket: WebSocket) -> None:
    gateway: RealtimeGateway = websocket.app.state.gateway
    host = _client_host(websocket)

    try:
        await websocket.app.state.rate_limiter.hit(f"ws:{host}")
    except RateLimitedError:
        logger.warning("WS connection from %s rate limited", host)
        await websocket.close(code=CLOSE_RATE_LIMITED, reason="Too many connection attempts")
        return

    await websocket.accept()
    conn = Connection(websocket, client=host)

    try:
        principal = await asyncio.wait_for(
            _authenticate(websocket, gateway, conn),
            timeout=settings.WS_AUTH_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        await conn.close(code=CLOSE_AUTH_TIMEOUT, reason="Authentication timeout")
        return
    except AuthenticationError as exc:
        logger.debug("WS auth failed from %s: %s", host, exc.detail)
        await conn.close(code=CLOSE_AUTH_FAILED, reason="Authentication failed")
        return
    except WebSocketDisconnect:
        conn.state = ConnectionState.CLOSED
        return
    except AppError:
        logger.exception("WS auth could not complete for %s", host)
        await conn.close(code=CLOSE_INTERNAL_ERROR, reason="Service unavailable")
        return

    try:
        await gateway.connect(conn, principal)
    except AppError:
        logger.exception("WS connect failed for user %s", principal.user_id)
        await conn.close(code=CLOSE_INTERNAL_ERROR, reason="Service unavailable")
        return

    heartbeat_task = asyncio.create_task(
        _heartbeat(conn), name=f"ws-heartbeat-{conn.id}",
    )
    close_code = 1000
    try:
        while True:
            raw = await websocket.receive_text()
            await gateway.handle_frame(conn, raw)
    except WebSocketDisconnect:
        conn.state = ConnectionState.CLOSED
    except Exception:
        logger.exception("WS error for user %s", principal.user_id)
        close_code = CLOSE_INTERNAL_ERROR
    finally:
        heartbeat_task.cancel()
        await gateway.disconnect(conn)
        await conn.close(code=close_code)


async def _heartbeat(conn: Connection) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await conn.send(protocol.pong())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Heartbeat stopped for %r", conn, exc_info=True)
