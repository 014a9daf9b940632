from __future__ import annotations

from datetime import datetime

from agency_chat.application.dto.conversation import (
    ChatStats,
    ConversationSummary,
    ResolvedConversation,
)
from agency_chat.application.dto.principal import Principal
from agency_chat.application.exceptions import NotFoundError, ValidationError
from agency_chat.application.policies.permissions import (
    assert_agency,
    assert_conversation_access,
    find_linked_client,
)
from agency_chat.application.ports.clock import Clock, system_clock
from agency_chat.application.uow import UnitOfWork
from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation
from agency_chat.services import client_service


async def get_conversation(
    conversation_id: int,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return await assert_conversation_access(principal, conversation, uow.clients)


async def resolve_conversation(
    principal: Principal,
    conversation_id: int | None,
    uow: UnitOfWork,
    *,
    first_message: str,
    ts: datetime,
    default_agency_id: int | None,
    to: int | None = None,
    clock: Clock = system_clock,
) -> ResolvedConversation:
    """Find the conversation a message is addressed to.

    With an explicit id the principal must be a party to it. Without one,
    agency staff may only name a client (``to``) they already talk to, while
    a client is routed to the default agency account, creating the Client and
    the Conversation on first contact. A created conversation already carries
    ``first_message`` as its snapshot and an unread count of one.

    Does not commit.
    """
    if conversation_id is not None:
        conversation = await get_conversation(conversation_id, principal, uow)
        client = await find_linked_client(principal, uow.clients)
        return ResolvedConversation(conversation=conversation, client=client)

    if principal.is_agency:
        if to is None:
            raise ValidationError("conversationId is required")
        conversation = await uow.conversations.get_active_for_pair(to, principal.subject_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return ResolvedConversation(conversation=conversation, client=None)

    if default_agency_id is None:
        raise NotFoundError("No agency account is available to receive messages")

    client, _ = await client_service.get_or_create_client(principal, uow, clock)
    assert client.id is not None
    existing = await uow.conversations.get_active_for_pair(client.id, default_agency_id)
    if existing is not None:
        return ResolvedConversation(conversation=existing, client=client)

    conversation, created = await uow.conversations_w.create_if_absent(
        Conversation(
            id=None,
            client_id=client.id,
            agency_id=default_agency_id,
            last_message=first_message,
            last_message_time=ts,
            unread_count=1,
            is_active=True,
            created_at=ts,
            updated_at=ts,
        )
    )
    if created:
        await uow.outbox.add(
            "chat.conversation_created",
            {
                "conversation_id": conversation.id,
                "client_id": client.id,
                "agency_id": default_agency_id,
            },
        )
    return ResolvedConversation(conversation=conversation, client=client, created=created)


def _summarize(
    principal: Principal,
    conversation: Conversation,
    client: Client,
    agency_name: str,
) -> ConversationSummary:
    if principal.is_agency:
        assert client.id is not None
        return ConversationSummary(
            conversation=conversation,
            counterpart_id=client.id,
            counterpart_name=client.name or "Unknown",
            company=client.company or "",
            counterpart_email=client.email,
        )
    return ConversationSummary(
        conversation=conversation,
        counterpart_id=conversation.agency_id,
        counterpart_name=agency_name,
        company="",
    )


async def list_conversations(
    principal: Principal,
    uow: UnitOfWork,
    *,
    agency_name: str = "Agency",
) -> list[ConversationSummary]:
    """Active conversations of the caller, most recent activity first."""
    if principal.is_agency:
        rows = await uow.conversations.list_active_for_agency(principal.subject_id)
    else:
        client = await find_linked_client(principal, uow.clients)
        if client is None or client.id is None:
            return []
        rows = await uow.conversations.list_active_for_client(client.id)
    return [_summarize(principal, conv, client, agency_name) for conv, client in rows]


async def delete_conversation(
    conversation_id: int,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    """Soft-delete a conversation owned by the calling staff member. Messages are kept."""
    assert_agency(principal)
    conversation = await get_conversation(conversation_id, principal, uow)

    await uow.conversations_w.deactivate(conversation_id)
    await uow.outbox.add(
        "chat.conversation_deleted",
        {
            "conversation_id": conversation_id,
            "agency_id": principal.subject_id,
        },
    )
    await uow.commit()
    return conversation


async def get_stats(principal: Principal, uow: UnitOfWork) -> ChatStats:
    if principal.is_agency:
        return await uow.conversations.stats_for_agency(principal.subject_id)
    client = await find_linked_client(principal, uow.clients)
    if client is None or client.id is None:
        return ChatStats(total_conversations=0, active_conversations=0, unread_messages=0)
    return await uow.conversations.stats_for_client(client.id)
