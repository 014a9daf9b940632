"""Import all models so metadata.create_all sees every table via Base.metadata."""
from agency_chat.infrastructure.db.models.client import ClientModel
from agency_chat.infrastructure.db.models.conversation import ConversationModel
from agency_chat.infrastructure.db.models.message import MessageModel
from agency_chat.infrastructure.db.models.outbox import OutboxMessageModel

__all__ = [
    "ClientModel",
    "ConversationModel",
    "MessageModel",
    "OutboxMessageModel",
]
