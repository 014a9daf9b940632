"""In-process WebSocket connection manager with named broadcast groups."""
from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import WebSocket

from agency_chat.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    return f"user:{user_id}"


def role_group(role: str) -> str:
    return f"role:{role}"


def client_group(client_id: int) -> str:
    return f"client:{client_id}"


def conversation_group(conversation_id: int) -> str:
    return f"conversation:{conversation_id}"


class ConnectionManager:
    """Tracks which connections are subscribed to which groups.

    A group is any string key: a principal's private channel, a role, a Client
    record or an open conversation. Delivery to several groups at once reaches
    each connection once.
    """

    def __init__(self) -> None:
        self._groups: dict[str, set[WebSocket]] = {}
        self._memberships: dict[WebSocket, set[str]] = {}

    async def accept(self, ws: WebSocket) -> None:
        await ws.accept()
        self._memberships.setdefault(ws, set())

    def join(self, ws: WebSocket, group: str) -> None:
        self._groups.setdefault(group, set()).add(ws)
        self._memberships.setdefault(ws, set()).add(group)

    def leave(self, ws: WebSocket, group: str) -> None:
        members = self._groups.get(group)
        if members:
            members.discard(ws)
            if not members:
                del self._groups[group]
        groups = self._memberships.get(ws)
        if groups:
            groups.discard(group)

    def disconnect(self, ws: WebSocket) -> None:
        for group in list(self._memberships.pop(ws, ())):
            members = self._groups.get(group)
            if members:
                members.discard(ws)
                if not members:
                    del self._groups[group]
        logger.debug("WS removed from all groups (connections=%d)", len(self._memberships))

    def members(self, *groups: str) -> set[WebSocket]:
        found: set[WebSocket] = set()
        for group in groups:
            found |= self._groups.get(group, set())
        return found

    def groups_of(self, ws: WebSocket) -> set[str]:
        return set(self._memberships.get(ws, ()))

    async def send(self, ws: WebSocket, event_type: str, data: dict[str, Any]) -> bool:
        """Send one event to one connection. A failed send drops the connection."""
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        try:
            await ws.send_text(raw)
        except Exception:
            logger.debug("WS send failed, dropping connection", exc_info=True)
            self.disconnect(ws)
            return False
        return True

    async def emit(
        self,
        groups: Iterable[str],
        event_type: str,
        data: dict[str, Any],
        *,
        exclude: WebSocket | None = None,
    ) -> int:
        """Send to every connection in any of ``groups``. Returns the number delivered."""
        targets = self.members(*groups)
        if exclude is not None:
            targets.discard(exclude)
        if not targets:
            return 0
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        delivered = 0
        dead: list[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_text(raw)
                delivered += 1
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)
        return delivered
