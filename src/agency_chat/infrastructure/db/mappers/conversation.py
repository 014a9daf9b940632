from __future__ import annotations

from agency_chat.domain.entities.conversation import Conversation
from agency_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        client_id=model.client_id,
        agency_id=model.agency_id,
        last_message=model.last_message,
        last_message_time=model.last_message_time,
        unread_count=model.unread_count,
        is_active=model.is_active,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_values(entity: Conversation) -> dict:
    return {
        "client_id": entity.client_id,
        "agency_id": entity.agency_id,
        "last_message": entity.last_message,
        "last_message_time": entity.last_message_time,
        "unread_count": entity.unread_count,
        "is_active": entity.is_active,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
    }
