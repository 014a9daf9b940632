from __future__ import annotations

from dataclasses import dataclass

from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation
from agency_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    content: str
    conversation_id: int | None = None
    to: int | None = None


@dataclass(frozen=True, slots=True)
class SentMessage:
    """Outcome of a send: the stored message and the conversation it landed in."""

    message: Message
    conversation: Conversation
    client: Client | None
    conversation_created: bool


@dataclass(frozen=True, slots=True)
class ReadReceipt:
    conversation: Conversation
    count: int
