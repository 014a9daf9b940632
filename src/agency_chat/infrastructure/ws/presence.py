"""Process-local registry of connected principals."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket

from agency_chat.application.dto.principal import Principal
from agency_chat.application.ports.clock import Clock, system_clock


@dataclass(slots=True)
class PresenceEntry:
    role: str
    email: str
    last_seen: datetime
    connections: set[WebSocket] = field(default_factory=set)


class PresenceTracker:
    """Who is online right now, keyed by principal id.

    Best-effort and not durable: a restart starts empty and everyone appears
    offline until they reconnect. A principal may hold several connections
    (tabs, reconnects) and stays online until the last one is gone.
    """

    def __init__(self, clock: Clock = system_clock) -> None:
        self._clock = clock
        self._entries: dict[int, PresenceEntry] = {}

    def register(self, principal: Principal, connection: WebSocket) -> bool:
        """Record a live connection. Returns True if the principal was offline before."""
        now = self._clock.now()
        entry = self._entries.get(principal.subject_id)
        if entry is None:
            entry = PresenceEntry(role=principal.role, email=principal.email, last_seen=now)
            self._entries[principal.subject_id] = entry
        was_offline = not entry.connections
        entry.connections.add(connection)
        entry.last_seen = now
        return was_offline

    def unregister(self, principal_id: int, connection: WebSocket) -> bool:
        """Forget ``connection``. Returns True if it was the principal's last one."""
        entry = self._entries.get(principal_id)
        if entry is None or connection not in entry.connections:
            return False
        entry.connections.discard(connection)
        if entry.connections:
            return False
        del self._entries[principal_id]
        return True

    def touch(self, principal_id: int) -> None:
        entry = self._entries.get(principal_id)
        if entry is not None:
            entry.last_seen = self._clock.now()

    def is_online(self, principal_id: int) -> bool:
        return principal_id in self._entries

    def is_email_online(self, email: str) -> bool:
        needle = email.lower()
        return any(entry.email.lower() == needle for entry in self._entries.values())

    def connection_count(self, principal_id: int) -> int:
        entry = self._entries.get(principal_id)
        return len(entry.connections) if entry else 0

    def snapshot(self) -> list[dict[str, Any]]:
        return [
            {
                "userId": principal_id,
                "role": entry.role,
                "email": entry.email,
                "lastSeen": entry.last_seen.isoformat(),
            }
            for principal_id, entry in self._entries.items()
        ]

    def __len__(self) -> int:
        return len(self._entries)
