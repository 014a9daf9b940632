from __future__ import annotations

from datetime import datetime
from typing import Protocol

from agency_chat.application.dto.conversation import ChatStats
from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: int) -> Conversation | None: ...

    async def get_active_for_pair(
        self, client_id: int, agency_id: int,
    ) -> Conversation | None: ...

    async def list_active_for_agency(
        self, agency_id: int,
    ) -> list[tuple[Conversation, Client]]:
        """Active conversations owned by the agency, most recent activity first."""
        ...

    async def list_active_for_client(
        self, client_id: int,
    ) -> list[tuple[Conversation, Client]]: ...

    async def stats_for_agency(self, agency_id: int) -> ChatStats: ...

    async def stats_for_client(self, client_id: int) -> ChatStats: ...


class ConversationWriter(Protocol):
    async def create_if_absent(
        self, conversation: Conversation,
    ) -> tuple[Conversation, bool]:
        """Insert unless an active conversation exists for the pair.

        Returns (conversation, created). On conflict the existing row is returned.
        """
        ...

    async def record_message(
        self, conversation_id: int, content: str, ts: datetime,
    ) -> None:
        """Set the last-message snapshot and atomically increment unread_count."""
        ...

    async def reset_unread(self, conversation_id: int) -> None: ...

    async def deactivate(self, conversation_id: int) -> None: ...
