from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Conversation:
    id: int | None
    client_id: int
    agency_id: int
    last_message: str | None
    last_message_time: datetime | None
    unread_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @property
    def last_activity(self) -> datetime:
        return self.last_message_time or self.updated_at
