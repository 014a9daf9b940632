"""WebSocket message envelope and payload models."""
from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ClientEvent(StrEnum):
    CHAT_MESSAGE = "chatMessage"
    MARK_AS_READ = "markAsRead"
    TYPING = "typing"
    JOIN_CONVERSATION = "joinConversation"
    LEAVE_CONVERSATION = "leaveConversation"
    GET_ONLINE_USERS = "getOnlineUsers"
    PING = "ping"
    PONG = "pong"


class ServerEvent(StrEnum):
    MESSAGE_RECEIVED = "messageReceived"
    CHAT_MESSAGE = "chatMessage"
    NEW_MESSAGE = "newMessage"
    MESSAGES_READ = "messagesRead"
    MESSAGES_MARKED_READ = "messagesMarkedRead"
    TYPING_STATUS = "typingStatus"
    ONLINE_USERS = "onlineUsers"
    USER_ONLINE = "userOnline"
    USER_OFFLINE = "userOffline"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"


class WsInbound(BaseModel):
    """Client → Server."""

    type: str
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str
    data: dict[str, Any] = {}


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessageIn(_Payload):
    conversation_id: int | None = None
    message: str = ""
    to: int | None = None


class ConversationRefIn(_Payload):
    conversation_id: int


class TypingIn(ConversationRefIn):
    is_typing: bool


class MessagePayload(_Payload):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    sender_type: str
    content: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime


def dump_payload(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
