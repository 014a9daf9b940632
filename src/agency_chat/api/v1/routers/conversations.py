from __future__ import annotations

from fastapi import APIRouter

from agency_chat.api.deps import CurrentPrincipal, GatewayDep, UoWDep
from agency_chat.api.v1.schemas.common import Envelope, ok
from agency_chat.api.v1.schemas.conversation import (
    ConversationDeletedResponse,
    ConversationResponse,
    ReadResponse,
    StatsResponse,
)
from agency_chat.config import settings
from agency_chat.services import conversation_service, read_state_service

router = APIRouter(prefix="/api/v1/chat", tags=["conversations"])


@router.get("/conversations", response_model=Envelope[list[ConversationResponse]])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> Envelope[list[ConversationResponse]]:
    summaries = await conversation_service.list_conversations(
        principal, uow, agency_name=settings.CHAT_AGENCY_DISPLAY_NAME,
    )
    presence = gateway.presence
    return ok([
        ConversationResponse.from_summary(
            s,
            online=(
                presence.is_email_online(s.counterpart_email)
                if s.counterpart_email
                else presence.is_online(s.counterpart_id)
            ),
        )
        for s in summaries
    ])


@router.put("/conversations/{conversation_id}/read", response_model=Envelope[ReadResponse])
async def mark_read(
    conversation_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> Envelope[ReadResponse]:
    receipt = await read_state_service.mark_read(conversation_id, principal, uow)
    await gateway.publish_read(principal, receipt)
    return ok(ReadResponse.from_receipt(receipt))


@router.delete("/conversations/{conversation_id}", response_model=Envelope[ConversationDeletedResponse])
async def delete_conversation(
    conversation_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Envelope[ConversationDeletedResponse]:
    conv = await conversation_service.delete_conversation(conversation_id, principal, uow)
    return ok(ConversationDeletedResponse.from_entity(conv))


@router.get("/stats", response_model=Envelope[StatsResponse])
async def get_stats(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Envelope[StatsResponse]:
    stats = await conversation_service.get_stats(principal, uow)
    return ok(StatsResponse.from_stats(stats))
