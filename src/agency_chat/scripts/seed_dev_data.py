"""Seed development data: creates the schema, a sample client and a conversation with messages."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from agency_chat.config import settings
from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation
from agency_chat.domain.entities.message import Message
from agency_chat.domain.value_objects.enums import ClientStatus, SenderType
from agency_chat.infrastructure.db.session import create_schema
from agency_chat.infrastructure.db.uow import open_uow
from agency_chat.logging_config import configure_logging

logger = logging.getLogger(__name__)

CLIENT_USER_ID = 42


async def seed() -> None:
    await create_schema()
    agency_id = settings.CHAT_DEFAULT_AGENCY_ID or 1
    now = datetime.now(timezone.utc)

    async with open_uow() as uow:
        client, _ = await uow.clients_w.create_if_absent(
            Client(
                id=None,
                name="Acme Corp",
                email="client@acme.test",
                company="Acme",
                phone=None,
                country="US",
                contact_person="Jane Doe",
                status=ClientStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
        )
        assert client.id is not None

        messages_data = [
            (SenderType.CLIENT, CLIENT_USER_ID, agency_id, "Hi! Any update on the landing page?"),
            (SenderType.AGENCY, agency_id, client.id, "Hello! The first draft is ready for review."),
            (SenderType.CLIENT, CLIENT_USER_ID, agency_id, "Great, sending feedback today."),
        ]
        last_ts = now + timedelta(seconds=len(messages_data))
        conversation, created = await uow.conversations_w.create_if_absent(
            Conversation(
                id=None,
                client_id=client.id,
                agency_id=agency_id,
                last_message=messages_data[-1][3],
                last_message_time=last_ts,
                unread_count=1,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
        if not created:
            logger.info("Conversation %s already seeded", conversation.id)
            return
        assert conversation.id is not None

        for offset, (sender_type, sender_id, receiver_id, content) in enumerate(messages_data, start=1):
            await uow.messages_w.create(
                Message(
                    id=None,
                    conversation_id=conversation.id,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    sender_type=sender_type,
                    content=content,
                    is_read=False,
                    read_at=None,
                    created_at=now + timedelta(seconds=offset),
                )
            )

        await uow.commit()
        logger.info("Seeded client %s and conversation %s", client.id, conversation.id)


def main() -> None:
    configure_logging("INFO")
    asyncio.run(seed())


if __name__ == "__main__":
    main()
