from __future__ import annotations

from datetime import datetime

from agency_chat.api.v1.schemas.common import CamelModel
from agency_chat.application.dto.conversation import ChatStats, ConversationSummary
from agency_chat.application.dto.message import ReadReceipt
from agency_chat.domain.entities.conversation import Conversation


class ConversationResponse(CamelModel):
    id: int
    client_id: int
    agency_id: int
    client: str
    company: str
    last_message: str
    time: datetime
    unread: int
    online: bool

    @classmethod
    def from_summary(cls, summary: ConversationSummary, *, online: bool) -> ConversationResponse:
        conv = summary.conversation
        return cls(
            id=conv.id,
            client_id=conv.client_id,
            agency_id=conv.agency_id,
            client=summary.counterpart_name,
            company=summary.company,
            last_message=conv.last_message or "",
            time=conv.last_activity,
            unread=conv.unread_count,
            online=online,
        )


class ConversationDeletedResponse(CamelModel):
    id: int
    is_active: bool

    @classmethod
    def from_entity(cls, conversation: Conversation) -> ConversationDeletedResponse:
        return cls(id=conversation.id, is_active=False)


class ReadResponse(CamelModel):
    conversation_id: int
    count: int
    unread_count: int

    @classmethod
    def from_receipt(cls, receipt: ReadReceipt) -> ReadResponse:
        return cls(
            conversation_id=receipt.conversation.id,
            count=receipt.count,
            unread_count=receipt.conversation.unread_count,
        )


class StatsResponse(CamelModel):
    total_conversations: int
    active_conversations: int
    unread_messages: int

    @classmethod
    def from_stats(cls, stats: ChatStats) -> StatsResponse:
        return cls(
            total_conversations=stats.total_conversations,
            active_conversations=stats.active_conversations,
            unread_messages=stats.unread_messages,
        )
