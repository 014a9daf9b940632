from __future__ import annotations

from typing import Protocol

from agency_chat.domain.entities.client import Client


class ClientReader(Protocol):
    async def get_by_id(self, client_id: int) -> Client | None: ...

    async def get_by_email(self, email: str) -> Client | None: ...


class ClientWriter(Protocol):
    async def create_if_absent(self, client: Client) -> tuple[Client, bool]:
        """Insert client. Return (client, created). If the email is taken → return existing."""
        ...
