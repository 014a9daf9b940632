from __future__ import annotations

from agency_chat.application.dto.message import SendMessageDTO, SentMessage
from agency_chat.application.dto.principal import Principal
from agency_chat.application.exceptions import ValidationError
from agency_chat.application.policies.permissions import find_linked_client
from agency_chat.application.ports.clock import Clock, system_clock
from agency_chat.application.uow import UnitOfWork
from agency_chat.domain.entities.message import Message
from agency_chat.services import conversation_service


def normalize_content(content: str | None, max_length: int | None = None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message is required")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"Message exceeds {max_length} characters")
    return text


async def send_message(
    principal: Principal,
    dto: SendMessageDTO,
    uow: UnitOfWork,
    *,
    default_agency_id: int | None = None,
    max_length: int | None = None,
    clock: Clock = system_clock,
) -> SentMessage:
    """Append a message and update the conversation snapshot in one transaction."""
    content = normalize_content(dto.content, max_length)
    now = clock.now()

    resolved = await conversation_service.resolve_conversation(
        principal,
        dto.conversation_id,
        uow,
        first_message=content,
        ts=now,
        default_agency_id=default_agency_id,
        to=dto.to,
        clock=clock,
    )
    conversation = resolved.conversation
    assert conversation.id is not None

    # Clients are addressed by their Client id, staff by their user id
    receiver_id = conversation.client_id if principal.is_agency else conversation.agency_id
    msg = await uow.messages_w.create(
        Message(
            id=None,
            conversation_id=conversation.id,
            sender_id=principal.subject_id,
            receiver_id=receiver_id,
            sender_type=principal.sender_type,
            content=content,
            is_read=False,
            read_at=None,
            created_at=now,
        )
    )

    if not resolved.created:
        await uow.conversations_w.record_message(conversation.id, content, now)

    await uow.outbox.add(
        "chat.message_created",
        {
            "message_id": msg.id,
            "conversation_id": conversation.id,
            "sender_id": msg.sender_id,
            "receiver_id": msg.receiver_id,
            "sender_type": msg.sender_type,
        },
    )
    await uow.commit()

    refreshed = await uow.conversations.get_by_id(conversation.id)
    return SentMessage(
        message=msg,
        conversation=refreshed or conversation,
        client=resolved.client,
        conversation_created=resolved.created,
    )


async def list_messages(
    conversation_id: int,
    principal: Principal,
    uow: UnitOfWork,
) -> list[Message]:
    await conversation_service.get_conversation(conversation_id, principal, uow)
    return await uow.messages.list_messages(conversation_id)


async def search_messages(
    principal: Principal,
    query: str,
    uow: UnitOfWork,
    *,
    conversation_id: int | None = None,
    limit: int = 50,
) -> list[Message]:
    """Search message content within the conversations the caller is a party to."""
    needle = query.strip()
    if not needle:
        raise ValidationError("Search query is required")

    if conversation_id is not None:
        await conversation_service.get_conversation(conversation_id, principal, uow)
        conversation_ids = [conversation_id]
    elif principal.is_agency:
        rows = await uow.conversations.list_active_for_agency(principal.subject_id)
        conversation_ids = [conv.id for conv, _ in rows if conv.id is not None]
    else:
        client = await find_linked_client(principal, uow.clients)
        if client is None or client.id is None:
            return []
        rows = await uow.conversations.list_active_for_client(client.id)
        conversation_ids = [conv.id for conv, _ in rows if conv.id is not None]

    if not conversation_ids:
        return []
    return await uow.messages.search(needle, conversation_ids, limit=limit)
