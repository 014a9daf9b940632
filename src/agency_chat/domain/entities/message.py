from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: int | None
    conversation_id: int
    sender_id: int
    receiver_id: int
    sender_type: str
    content: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime
