from __future__ import annotations

from agency_chat.application.dto.principal import Principal
from agency_chat.application.exceptions import ForbiddenError, NotFoundError
from agency_chat.application.repositories.client import ClientReader
from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation


async def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
    clients: ClientReader,
) -> Conversation:
    """Raise if the conversation is missing, soft-deleted, or the principal is not a party to it."""
    if conversation is None or not conversation.is_active:
        raise NotFoundError("Conversation not found")

    if principal.is_agency:
        if conversation.agency_id != principal.subject_id:
            raise ForbiddenError("Not a party to this conversation")
        return conversation

    client = await clients.get_by_email(principal.email)
    if client is None or client.id != conversation.client_id:
        raise ForbiddenError("Not a party to this conversation")
    return conversation


async def find_linked_client(principal: Principal, clients: ClientReader) -> Client | None:
    """The Client record linked to a client-role principal, if any."""
    if principal.is_agency:
        return None
    return await clients.get_by_email(principal.email)


def assert_agency(principal: Principal) -> None:
    if not principal.is_agency:
        raise ForbiddenError("Agency access required")
