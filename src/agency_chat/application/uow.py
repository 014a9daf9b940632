from __future__ import annotations

from typing import Protocol

from agency_chat.application.repositories.client import ClientReader, ClientWriter
from agency_chat.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from agency_chat.application.repositories.message import MessageReader, MessageWriter
from agency_chat.application.repositories.outbox import OutboxWriter


class UnitOfWork(Protocol):
    clients: ClientReader
    clients_w: ClientWriter
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
