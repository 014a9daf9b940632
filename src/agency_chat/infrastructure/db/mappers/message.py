from __future__ import annotations

from agency_chat.domain.entities.message import Message
from agency_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        sender_type=model.sender_type,
        content=model.content,
        is_read=model.is_read,
        read_at=model.read_at,
        created_at=model.created_at,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        conversation_id=entity.conversation_id,
        sender_id=entity.sender_id,
        receiver_id=entity.receiver_id,
        sender_type=entity.sender_type,
        content=entity.content,
        is_read=entity.is_read,
        read_at=entity.read_at,
        created_at=entity.created_at,
    )
