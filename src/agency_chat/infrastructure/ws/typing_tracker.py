"""Process-local registry of "is typing" signals."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from agency_chat.application.ports.clock import Clock, system_clock


@dataclass(slots=True)
class TypingEntry:
    updated_at: datetime
    notify_groups: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class StoppedTyping:
    """A typing entry that was removed and whose watchers must be told."""

    conversation_id: int
    principal_id: int
    notify_groups: tuple[str, ...]


class TypingTracker:
    """conversation id → principal id → last typing signal.

    Each entry remembers which groups to notify when it goes away, so expiry
    needs no database lookup.
    """

    def __init__(self, clock: Clock = system_clock) -> None:
        self._clock = clock
        self._entries: dict[int, dict[int, TypingEntry]] = {}

    def start(self, conversation_id: int, principal_id: int, notify_groups: tuple[str, ...]) -> None:
        self._entries.setdefault(conversation_id, {})[principal_id] = TypingEntry(
            updated_at=self._clock.now(),
            notify_groups=notify_groups,
        )

    def stop(self, conversation_id: int, principal_id: int) -> StoppedTyping | None:
        typists = self._entries.get(conversation_id)
        if not typists or principal_id not in typists:
            return None
        entry = typists.pop(principal_id)
        if not typists:
            del self._entries[conversation_id]
        return StoppedTyping(conversation_id, principal_id, entry.notify_groups)

    def is_typing(self, conversation_id: int, principal_id: int) -> bool:
        return principal_id in self._entries.get(conversation_id, {})

    def expire(self, max_age: timedelta) -> list[StoppedTyping]:
        """Remove every entry whose last signal is older than ``max_age``."""
        cutoff = self._clock.now() - max_age
        stale = [
            (conversation_id, principal_id)
            for conversation_id, typists in self._entries.items()
            for principal_id, entry in typists.items()
            if entry.updated_at < cutoff
        ]
        return [s for s in (self.stop(c, p) for c, p in stale) if s is not None]

    def drop_principal(self, principal_id: int) -> list[StoppedTyping]:
        """Remove the principal's entries across all conversations."""
        owned = [c for c, typists in self._entries.items() if principal_id in typists]
        return [s for s in (self.stop(c, principal_id) for c in owned) if s is not None]

    def __len__(self) -> int:
        return sum(len(typists) for typists in self._entries.values())
