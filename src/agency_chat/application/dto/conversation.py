from __future__ import annotations

from dataclasses import dataclass

from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """A conversation annotated with what the viewer needs for a listing."""

    conversation: Conversation
    counterpart_id: int
    counterpart_name: str
    company: str
    counterpart_email: str | None = None


@dataclass(frozen=True, slots=True)
class ChatStats:
    total_conversations: int
    active_conversations: int
    unread_messages: int


@dataclass(frozen=True, slots=True)
class ResolvedConversation:
    conversation: Conversation
    client: Client | None
    created: bool = False
