from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from agency_chat.application.dto.conversation import ChatStats
from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation
from agency_chat.infrastructure.db.mappers import client as client_mapper
from agency_chat.infrastructure.db.mappers import conversation as mapper
from agency_chat.infrastructure.db.models.client import ClientModel
from agency_chat.infrastructure.db.models.conversation import ConversationModel

_LAST_ACTIVITY = func.coalesce(ConversationModel.last_message_time, ConversationModel.updated_at)


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: int) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id, populate_existing=True)
        return mapper.model_to_entity(result) if result else None

    async def get_active_for_pair(
        self,
        client_id: int,
        agency_id: int,
    ) -> Conversation | None:
        stmt = select(ConversationModel).where(
            ConversationModel.client_id == client_id,
            ConversationModel.agency_id == agency_id,
            ConversationModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_active_for_agency(self, agency_id: int) -> list[tuple[Conversation, Client]]:
        return await self._list_active(ConversationModel.agency_id == agency_id)

    async def list_active_for_client(self, client_id: int) -> list[tuple[Conversation, Client]]:
        return await self._list_active(ConversationModel.client_id == client_id)

    async def _list_active(self, owner_clause) -> list[tuple[Conversation, Client]]:
        stmt = (
            select(ConversationModel, ClientModel)
            .join(ClientModel, ClientModel.id == ConversationModel.client_id)
            .where(owner_clause, ConversationModel.is_active.is_(True))
            .order_by(_LAST_ACTIVITY.desc(), ConversationModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return [
            (mapper.model_to_entity(conv), client_mapper.model_to_entity(client))
            for conv, client in result.all()
        ]

    async def stats_for_agency(self, agency_id: int) -> ChatStats:
        return await self._stats(ConversationModel.agency_id == agency_id)

    async def stats_for_client(self, client_id: int) -> ChatStats:
        return await self._stats(ConversationModel.client_id == client_id)

    async def _stats(self, owner_clause) -> ChatStats:
        active = ConversationModel.is_active.is_(True)
        stmt = select(
            func.count(ConversationModel.id),
            func.count(ConversationModel.id).filter(active),
            func.coalesce(func.sum(ConversationModel.unread_count).filter(active), 0),
        ).where(owner_clause)
        total, active_count, unread = (await self._session.execute(stmt)).one()
        return ChatStats(
            total_conversations=total,
            active_conversations=active_count,
            unread_messages=int(unread),
        )


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_absent(self, conversation: Conversation) -> tuple[Conversation, bool]:
        """Insert against the partial unique index on active pairs. Returns (conversation, created_flag)."""
        stmt = (
            pg_insert(ConversationModel)
            .values(**mapper.entity_to_values(conversation))
            .on_conflict_do_nothing(
                index_elements=["client_id", "agency_id"],
                index_where=text("is_active"),
            )
            .returning(ConversationModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        existing = await ConversationReaderRepo(self._session).get_active_for_pair(
            conversation.client_id, conversation.agency_id,
        )
        assert existing is not None
        return existing, False

    async def record_message(
        self,
        conversation_id: int,
        content: str,
        ts: datetime,
    ) -> None:
        # Single statement so concurrent senders never lose an increment
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(
                last_message=content,
                last_message_time=ts,
                unread_count=ConversationModel.unread_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def reset_unread(self, conversation_id: int) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(unread_count=0)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def deactivate(self, conversation_id: int) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
