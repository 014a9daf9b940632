from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from agency_chat.domain.entities.client import Client
from agency_chat.infrastructure.db.mappers import client as mapper
from agency_chat.infrastructure.db.models.client import ClientModel


class ClientReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, client_id: int) -> Client | None:
        result = await self._session.get(ClientModel, client_id)
        return mapper.model_to_entity(result) if result else None

    async def get_by_email(self, email: str) -> Client | None:
        stmt = (
            select(ClientModel)
            .where(func.lower(ClientModel.email) == email.lower())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class ClientWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_absent(self, client: Client) -> tuple[Client, bool]:
        """Insert a client keyed by email. Returns (client, created_flag)."""
        stmt = (
            pg_insert(ClientModel)
            .values(**mapper.entity_to_values(client))
            .on_conflict_do_nothing(index_elements=["email"])
            .returning(ClientModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        # Conflict: a concurrent first contact won
        existing = await ClientReaderRepo(self._session).get_by_email(client.email)
        assert existing is not None
        return existing, False
