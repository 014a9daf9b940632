from __future__ import annotations

from datetime import datetime

from agency_chat.api.v1.schemas.common import CamelModel
from agency_chat.application.dto.principal import Principal
from agency_chat.domain.entities.message import Message


class SendMessageRequest(CamelModel):
    message: str | None = None
    # Client id hint for staff sending without a conversation id
    to: int | None = None


class MessageResponse(CamelModel):
    id: int
    conversation_id: int
    sender: str  # "me", or the counterpart's sender type
    sender_type: str
    message: str
    is_read: bool
    read_at: datetime | None
    time: datetime

    @classmethod
    def for_viewer(cls, msg: Message, viewer: Principal) -> MessageResponse:
        return cls(
            id=msg.id,
            conversation_id=msg.conversation_id,
            sender="me" if msg.sender_type == viewer.sender_type else msg.sender_type,
            sender_type=msg.sender_type,
            message=msg.content,
            is_read=msg.is_read,
            read_at=msg.read_at,
            time=msg.created_at,
        )


class SentMessageResponse(MessageResponse):
    conversation_created: bool = False
