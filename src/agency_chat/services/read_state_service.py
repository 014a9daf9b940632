from __future__ import annotations

from agency_chat.application.dto.message import ReadReceipt
from agency_chat.application.dto.principal import Principal
from agency_chat.application.ports.clock import Clock, system_clock
from agency_chat.application.uow import UnitOfWork
from agency_chat.services import conversation_service


async def mark_read(
    conversation_id: int,
    principal: Principal,
    uow: UnitOfWork,
    clock: Clock = system_clock,
) -> ReadReceipt:
    """Mark the counterpart's messages read and reset the conversation's unread count.

    The unread count is a single counter shared by both parties, so it is reset
    to zero regardless of who sent the outstanding messages.
    """
    conversation = await conversation_service.get_conversation(conversation_id, principal, uow)

    count = await uow.messages_w.mark_read_from(
        conversation_id, principal.counterpart_type, clock.now(),
    )
    await uow.conversations_w.reset_unread(conversation_id)
    await uow.outbox.add(
        "chat.messages_read",
        {
            "conversation_id": conversation_id,
            "reader_id": principal.subject_id,
            "reader_type": principal.sender_type,
            "count": count,
        },
    )
    await uow.commit()

    refreshed = await uow.conversations.get_by_id(conversation_id)
    return ReadReceipt(conversation=refreshed or conversation, count=count)
