from __future__ import annotations

from fastapi import APIRouter, Query

from agency_chat.api.deps import CurrentPrincipal, GatewayDep, UoWDep
from agency_chat.api.v1.schemas.common import Envelope, ok
from agency_chat.api.v1.schemas.message import (
    MessageResponse,
    SendMessageRequest,
    SentMessageResponse,
)
from agency_chat.application.dto.message import SendMessageDTO, SentMessage
from agency_chat.application.dto.principal import Principal
from agency_chat.config import settings
from agency_chat.services import message_service

router = APIRouter(prefix="/api/v1/chat", tags=["messages"])


def _sent_response(sent: SentMessage, principal: Principal) -> SentMessageResponse:
    base = MessageResponse.for_viewer(sent.message, principal)
    return SentMessageResponse(
        **base.model_dump(),
        conversation_created=sent.conversation_created,
    )


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=Envelope[list[MessageResponse]],
)
async def list_messages(
    conversation_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Envelope[list[MessageResponse]]:
    messages = await message_service.list_messages(conversation_id, principal, uow)
    return ok([MessageResponse.for_viewer(m, principal) for m in messages])


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=Envelope[SentMessageResponse],
    status_code=201,
)
async def send_message(
    conversation_id: int,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> Envelope[SentMessageResponse]:
    sent = await message_service.send_message(
        principal,
        SendMessageDTO(content=body.message or "", conversation_id=conversation_id),
        uow,
        default_agency_id=settings.CHAT_DEFAULT_AGENCY_ID,
        max_length=settings.CHAT_MAX_MESSAGE_LENGTH,
    )
    await gateway.publish_sent(principal, sent)
    return ok(_sent_response(sent, principal))


@router.post("/messages", response_model=Envelope[SentMessageResponse], status_code=201)
async def send_new_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> Envelope[SentMessageResponse]:
    sent = await message_service.send_message(
        principal,
        SendMessageDTO(content=body.message or "", to=body.to),
        uow,
        default_agency_id=settings.CHAT_DEFAULT_AGENCY_ID,
        max_length=settings.CHAT_MAX_MESSAGE_LENGTH,
    )
    await gateway.publish_sent(principal, sent)
    return ok(_sent_response(sent, principal))


@router.get("/search", response_model=Envelope[list[MessageResponse]])
async def search_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    query: str = Query(""),
    conversation_id: int | None = Query(None, alias="conversationId"),
) -> Envelope[list[MessageResponse]]:
    messages = await message_service.search_messages(
        principal,
        query,
        uow,
        conversation_id=conversation_id,
        limit=settings.CHAT_SEARCH_LIMIT,
    )
    return ok([MessageResponse.for_viewer(m, principal) for m in messages])
