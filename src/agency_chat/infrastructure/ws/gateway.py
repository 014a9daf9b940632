"""Live chat gateway: runs inbound WebSocket events and fans out their results."""
from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from datetime import timedelta
from typing import Any, Awaitable, Callable

import pydantic
from fastapi import WebSocket

from agency_chat.application.dto.message import ReadReceipt, SendMessageDTO, SentMessage
from agency_chat.application.dto.principal import Principal
from agency_chat.application.exceptions import AppError, ValidationError
from agency_chat.application.ports.clock import Clock, system_clock
from agency_chat.application.uow import UnitOfWork
from agency_chat.domain.entities.conversation import Conversation
from agency_chat.domain.value_objects.enums import Role
from agency_chat.infrastructure.ws.manager import (
    ConnectionManager,
    client_group,
    conversation_group,
    role_group,
    user_group,
)
from agency_chat.infrastructure.ws.presence import PresenceTracker
from agency_chat.infrastructure.ws.protocol import (
    ChatMessageIn,
    ClientEvent,
    ConversationRefIn,
    MessagePayload,
    ServerEvent,
    TypingIn,
    WsInbound,
    dump_payload,
)
from agency_chat.infrastructure.ws.typing_tracker import TypingTracker
from agency_chat.services import conversation_service, message_service, read_state_service

logger = logging.getLogger(__name__)

UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
Handler = Callable[[WebSocket, Principal, dict[str, Any]], Awaitable[None]]

STAFF_GROUP = role_group(Role.ADMIN)


def counterpart_group(principal: Principal, conversation: Conversation) -> str:
    """The private group of the other party: the Client for staff, the staff member for clients."""
    if principal.is_agency:
        return client_group(conversation.client_id)
    return user_group(conversation.agency_id)


def _describe(exc: pydantic.ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"{field}: {first.get('msg', 'invalid value')}"


class ChatGateway:
    """Single writer for chat state reached over live connections.

    Every inbound event runs to completion, persistence included, before the
    connection's next event is read. Handlers never raise across the event
    boundary: failures come back to the originating connection as ``error``
    events and leave every other connection untouched.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        presence: PresenceTracker,
        typing: TypingTracker,
        uow_factory: UoWFactory,
        *,
        clock: Clock = system_clock,
        default_agency_id: int | None = None,
        max_message_length: int | None = None,
        typing_timeout_seconds: float = 10.0,
    ) -> None:
        self.manager = manager
        self.presence = presence
        self.typing = typing
        self._uow_factory = uow_factory
        self._clock = clock
        self._default_agency_id = default_agency_id
        self._max_message_length = max_message_length
        self._typing_timeout = timedelta(seconds=typing_timeout_seconds)
        self._handlers: dict[str, Handler] = {
            ClientEvent.CHAT_MESSAGE: self.handle_chat_message,
            ClientEvent.MARK_AS_READ: self.handle_mark_as_read,
            ClientEvent.TYPING: self.handle_typing,
            ClientEvent.JOIN_CONVERSATION: self.handle_join_conversation,
            ClientEvent.LEAVE_CONVERSATION: self.handle_leave_conversation,
            ClientEvent.GET_ONLINE_USERS: self.handle_get_online_users,
        }

    # -- connection lifecycle ------------------------------------------------

    async def on_connect(self, ws: WebSocket, principal: Principal) -> None:
        self.manager.join(ws, user_group(principal.subject_id))
        self.manager.join(ws, role_group(principal.role))
        if not principal.is_agency:
            await self._join_client_group(ws, principal)

        came_online = self.presence.register(principal, ws)
        logger.info(
            "WS connected: user=%s role=%s (connections=%d, online=%d)",
            principal.subject_id, principal.role,
            self.presence.connection_count(principal.subject_id), len(self.presence),
        )

        if came_online:
            await self.manager.emit(
                [STAFF_GROUP], ServerEvent.USER_ONLINE, self._presence_data(principal), exclude=ws,
            )
        await self.manager.send(ws, ServerEvent.ONLINE_USERS, {"users": self.presence.snapshot()})

    async def on_disconnect(self, ws: WebSocket, principal: Principal) -> None:
        self.manager.disconnect(ws)
        if not self.presence.unregister(principal.subject_id, ws):
            # Another connection of the same principal is still open
            return

        for stopped in self.typing.drop_principal(principal.subject_id):
            await self._emit_typing(
                stopped.notify_groups, stopped.conversation_id, principal.subject_id, False,
            )
        await self.manager.emit([STAFF_GROUP], ServerEvent.USER_OFFLINE, self._presence_data(principal))
        logger.info("WS disconnected: user=%s (online=%d)", principal.subject_id, len(self.presence))

    async def _join_client_group(self, ws: WebSocket, principal: Principal) -> None:
        try:
            async with self._uow_factory() as uow:
                client = await uow.clients.get_by_email(principal.email)
        except Exception:
            logger.exception("Client lookup failed for user=%s", principal.subject_id)
            return
        if client is not None and client.id is not None:
            self.manager.join(ws, client_group(client.id))

    def _presence_data(self, principal: Principal) -> dict[str, Any]:
        return {"userId": principal.subject_id, "role": principal.role, "email": principal.email}

    # -- dispatch --------------------------------------------------------------

    async def dispatch(self, ws: WebSocket, principal: Principal, raw: str) -> None:
        try:
            msg = WsInbound.model_validate_json(raw)
        except pydantic.ValidationError:
            await self.send_error(ws, ValidationError.code, "Invalid payload")
            return

        self.presence.touch(principal.subject_id)

        if msg.type == ClientEvent.PING:
            await self.manager.send(ws, ServerEvent.PONG, {})
            return
        if msg.type == ClientEvent.PONG:
            return

        handler = self._handlers.get(msg.type)
        if handler is None:
            await self.send_error(ws, ValidationError.code, f"Unknown event type: {msg.type}")
            return

        try:
            await handler(ws, principal, msg.data)
        except AppError as exc:
            await self.send_error(ws, exc.code, exc.detail)
        except pydantic.ValidationError as exc:
            await self.send_error(ws, ValidationError.code, _describe(exc))
        except Exception:
            logger.exception("WS %s failed for user=%s", msg.type, principal.subject_id)
            await self.send_error(ws, AppError.code, "Internal server error")

    async def send_error(self, ws: WebSocket, code: str, message: str) -> None:
        await self.manager.send(ws, ServerEvent.ERROR, {"code": code, "message": message})

    # -- handlers --------------------------------------------------------------

    async def handle_chat_message(self, ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
        payload = ChatMessageIn.model_validate(data)
        async with self._uow_factory() as uow:
            sent = await message_service.send_message(
                principal,
                SendMessageDTO(
                    content=payload.message,
                    conversation_id=payload.conversation_id,
                    to=payload.to,
                ),
                uow,
                default_agency_id=self._default_agency_id,
                max_length=self._max_message_length,
                clock=self._clock,
            )

        await self.publish_sent(principal, sent, origin=ws)

        conversation = sent.conversation
        assert conversation.id is not None
        self.typing.stop(conversation.id, principal.subject_id)
        await self._emit_typing(
            (counterpart_group(principal, conversation),), conversation.id, principal.subject_id, False,
        )

    async def handle_mark_as_read(self, ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
        payload = ConversationRefIn.model_validate(data)
        async with self._uow_factory() as uow:
            receipt = await read_state_service.mark_read(
                payload.conversation_id, principal, uow, self._clock,
            )
        await self.publish_read(principal, receipt, origin=ws)

    async def handle_typing(self, ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
        try:
            payload = TypingIn.model_validate(data)
            async with self._uow_factory() as uow:
                conversation = await conversation_service.get_conversation(
                    payload.conversation_id, principal, uow,
                )
        except Exception:
            logger.debug("Dropped typing signal from user=%s", principal.subject_id, exc_info=True)
            return

        assert conversation.id is not None
        groups = (counterpart_group(principal, conversation),)
        if payload.is_typing:
            self.typing.start(conversation.id, principal.subject_id, groups)
        else:
            self.typing.stop(conversation.id, principal.subject_id)
        await self._emit_typing(groups, conversation.id, principal.subject_id, payload.is_typing)

    async def handle_join_conversation(self, ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
        payload = ConversationRefIn.model_validate(data)
        async with self._uow_factory() as uow:
            await conversation_service.get_conversation(payload.conversation_id, principal, uow)
        self.manager.join(ws, conversation_group(payload.conversation_id))

    async def handle_leave_conversation(self, ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
        payload = ConversationRefIn.model_validate(data)
        self.manager.leave(ws, conversation_group(payload.conversation_id))

    async def handle_get_online_users(self, ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
        await self.manager.send(ws, ServerEvent.ONLINE_USERS, {"users": self.presence.snapshot()})

    # -- fan-out shared with the REST API ------------------------------------

    async def publish_sent(
        self,
        principal: Principal,
        sent: SentMessage,
        *,
        origin: WebSocket | None = None,
    ) -> None:
        """Deliver a stored message to everyone who should see it live."""
        conversation = sent.conversation
        assert conversation.id is not None
        data: dict[str, Any] = {
            "conversationId": conversation.id,
            "message": dump_payload(MessagePayload.model_validate(sent.message)),
        }

        if origin is not None:
            await self.manager.send(
                origin,
                ServerEvent.MESSAGE_RECEIVED,
                {**data, "conversationCreated": sent.conversation_created},
            )

        if not principal.is_agency and sent.client is not None and sent.client.id is not None:
            # First contact creates the Client; make the sender reachable as it
            for conn in self.manager.members(user_group(principal.subject_id)):
                self.manager.join(conn, client_group(sent.client.id))

        await self.manager.emit(
            (counterpart_group(principal, conversation), conversation_group(conversation.id)),
            ServerEvent.CHAT_MESSAGE,
            data,
            exclude=origin,
        )

        if not principal.is_agency:
            client = sent.client
            await self.manager.emit(
                [STAFF_GROUP],
                ServerEvent.NEW_MESSAGE,
                {
                    **data,
                    "unreadCount": conversation.unread_count,
                    "client": {
                        "id": client.id,
                        "name": client.name,
                        "company": client.company or "",
                    } if client is not None else None,
                },
            )

    async def publish_read(
        self,
        principal: Principal,
        receipt: ReadReceipt,
        *,
        origin: WebSocket | None = None,
    ) -> None:
        conversation = receipt.conversation
        assert conversation.id is not None
        if origin is not None:
            await self.manager.send(
                origin,
                ServerEvent.MESSAGES_MARKED_READ,
                {
                    "conversationId": conversation.id,
                    "count": receipt.count,
                    "unreadCount": conversation.unread_count,
                },
            )
        await self.manager.emit(
            [counterpart_group(principal, conversation)],
            ServerEvent.MESSAGES_READ,
            {
                "conversationId": conversation.id,
                "readBy": principal.subject_id,
                "readerType": principal.sender_type,
                "count": receipt.count,
            },
        )

    # -- typing expiry -----------------------------------------------------------

    async def expire_typing(self) -> int:
        """Expire stale typing entries and tell their watchers. Returns how many expired."""
        expired = self.typing.expire(self._typing_timeout)
        for stopped in expired:
            await self._emit_typing(
                stopped.notify_groups, stopped.conversation_id, stopped.principal_id, False,
            )
        return len(expired)

    async def _emit_typing(
        self,
        groups: tuple[str, ...],
        conversation_id: int,
        principal_id: int,
        is_typing: bool,
    ) -> None:
        await self.manager.emit(
            groups,
            ServerEvent.TYPING_STATUS,
            {"conversationId": conversation_id, "userId": principal_id, "isTyping": is_typing},
        )
