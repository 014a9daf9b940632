from __future__ import annotations

from datetime import datetime
from typing import Protocol

from agency_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(self, conversation_id: int) -> list[Message]:
        """All messages of a conversation, oldest first."""
        ...

    async def search(
        self,
        query: str,
        conversation_ids: list[int],
        *,
        limit: int = 50,
    ) -> list[Message]:
        """Case-insensitive substring match, newest first."""
        ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message: ...

    async def mark_read_from(
        self, conversation_id: int, sender_type: str, ts: datetime,
    ) -> int:
        """Mark every unread message sent by ``sender_type`` as read. Returns the count."""
        ...
