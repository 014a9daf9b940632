from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from agency_chat.api.deps import get_gateway, get_verifier
from agency_chat.application.dto.principal import Principal
from agency_chat.config import settings
from agency_chat.infrastructure.ws.gateway import ChatGateway
from agency_chat.infrastructure.ws.protocol import ServerEvent

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

CLOSE_AUTH_FAILED = 4001
CLOSE_IDLE_TIMEOUT = 4008


async def _authenticate(token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        return await get_verifier().verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=CLOSE_AUTH_FAILED, reason="Authentication failed")
        return

    gateway = get_gateway()
    await gateway.manager.accept(websocket)
    await gateway.on_connect(websocket, principal)

    heartbeat_task = asyncio.create_task(
        _heartbeat(gateway, websocket), name=f"ws-heartbeat-{principal.subject_id}",
    )
    try:
        await _read_loop(gateway, websocket, principal)
    except WebSocketDisconnect:
        pass
    except TimeoutError:
        logger.info("WS idle timeout for user=%s", principal.subject_id)
        await _close_quietly(websocket, CLOSE_IDLE_TIMEOUT, "Idle timeout")
    except Exception:
        logger.exception("WS error for user=%s", principal.subject_id)
    finally:
        await _stop_heartbeat(heartbeat_task)
        await gateway.on_disconnect(websocket, principal)


async def _heartbeat(gateway: ChatGateway, ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    while True:
        await asyncio.sleep(interval)
        if not await gateway.manager.send(ws, ServerEvent.PING, {}):
            return


async def _stop_heartbeat(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def _read_loop(gateway: ChatGateway, ws: WebSocket, principal: Principal) -> None:
    idle_timeout = settings.WS_IDLE_TIMEOUT_SECONDS
    while True:
        # Each event is handled to completion before the next one is read
        raw = await asyncio.wait_for(ws.receive_text(), timeout=idle_timeout)
        await gateway.dispatch(ws, principal, raw)


async def _close_quietly(ws: WebSocket, code: int, reason: str) -> None:
    try:
        await ws.close(code=code, reason=reason)
    except Exception:
        logger.debug("WS close after timeout failed", exc_info=True)
