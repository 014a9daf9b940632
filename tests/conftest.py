"""Shared test fixtures."""
from __future__ import annotations

import dataclasses
import itertools
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import pytest

from agency_chat.application.dto.conversation import ChatStats
from agency_chat.application.dto.principal import Principal
from agency_chat.application.repositories.outbox import OutboxRecord
from agency_chat.domain.entities.client import Client
from agency_chat.domain.entities.conversation import Conversation
from agency_chat.domain.entities.message import Message
from agency_chat.domain.value_objects.enums import ClientStatus, OutboxStatus, Role, SenderType

AGENCY_ID = 1
OTHER_AGENCY_ID = 2
CLIENT_USER_ID = 42
CLIENT_EMAIL = "c@x.com"

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def agency_principal() -> Principal:
    return Principal(subject_id=AGENCY_ID, email="agency@x.com", role=Role.ADMIN)


@pytest.fixture
def other_agency_principal() -> Principal:
    return Principal(subject_id=OTHER_AGENCY_ID, email="other@x.com", role=Role.ADMIN)


@pytest.fixture
def client_principal() -> Principal:
    return Principal(subject_id=CLIENT_USER_ID, email=CLIENT_EMAIL, role=Role.USER)


@pytest.fixture
def stranger_principal() -> Principal:
    return Principal(subject_id=77, email="stranger@y.com", role=Role.USER)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_client(
    *,
    client_id: int | None = 10,
    email: str = CLIENT_EMAIL,
    name: str = "Client Co",
    company: str | None = "Client Inc",
) -> Client:
    return Client(
        id=client_id,
        name=name,
        email=email,
        company=company,
        phone=None,
        country=None,
        contact_person=None,
        status=ClientStatus.ACTIVE,
        created_at=T0,
        updated_at=T0,
    )


def make_conversation(
    *,
    conversation_id: int | None = 100,
    client_id: int = 10,
    agency_id: int = AGENCY_ID,
    unread_count: int = 0,
    is_active: bool = True,
    last_message_time: datetime | None = None,
) -> Conversation:
    return Conversation(
        id=conversation_id,
        client_id=client_id,
        agency_id=agency_id,
        last_message=None,
        last_message_time=last_message_time,
        unread_count=unread_count,
        is_active=is_active,
        created_at=T0,
        updated_at=T0,
    )


def make_message(
    *,
    message_id: int | None = None,
    conversation_id: int = 100,
    sender_type: str = SenderType.CLIENT,
    sender_id: int = CLIENT_USER_ID,
    receiver_id: int = AGENCY_ID,
    content: str = "hello",
    created_at: datetime = T0,
) -> Message:
    return Message(
        id=message_id,
        conversation_id=conversation_id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        sender_type=sender_type,
        content=content,
        is_read=False,
        read_at=None,
        created_at=created_at,
    )


@dataclass
class FakeStore:
    """Tables shared by every FakeUoW opened against it."""

    clients: dict[int, Client] = field(default_factory=dict)
    conversations: dict[int, Conversation] = field(default_factory=dict)
    messages: dict[int, Message] = field(default_factory=dict)
    outbox: dict[int, dict[str, Any]] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1000))

    def next_id(self) -> int:
        return next(self._ids)

    def add_client(self, client: Client) -> Client:
        assert client.id is not None
        self.clients[client.id] = client
        return client

    def add_conversation(self, conversation: Conversation) -> Conversation:
        assert conversation.id is not None
        self.conversations[conversation.id] = conversation
        return conversation

    def add_message(self, message: Message) -> Message:
        if message.id is None:
            message = dataclasses.replace(message, id=self.next_id())
        self.messages[message.id] = message
        return message

    def snapshot(self) -> tuple:
        return (
            dict(self.clients),
            dict(self.conversations),
            dict(self.messages),
            {k: dict(v) for k, v in self.outbox.items()},
        )

    def restore(self, snap: tuple) -> None:
        self.clients, self.conversations, self.messages, self.outbox = (
            dict(snap[0]), dict(snap[1]), dict(snap[2]), {k: dict(v) for k, v in snap[3].items()},
        )

    def events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        return [
            r for r in self.outbox.values()
            if event_type is None or r["event_type"] == event_type
        ]


@dataclass
class FakeClientReader:
    _store: FakeStore

    async def get_by_id(self, client_id: int) -> Client | None:
        return self._store.clients.get(client_id)

    async def get_by_email(self, email: str) -> Client | None:
        for c in self._store.clients.values():
            if c.email.lower() == email.lower():
                return c
        return None


@dataclass
class FakeClientWriter:
    _store: FakeStore

    async def create_if_absent(self, client: Client) -> tuple[Client, bool]:
        existing = await FakeClientReader(self._store).get_by_email(client.email)
        if existing is not None:
            return existing, False
        created = dataclasses.replace(client, id=self._store.next_id())
        return self._store.add_client(created), True


@dataclass
class FakeConversationReader:
    _store: FakeStore

    async def get_by_id(self, conversation_id: int) -> Conversation | None:
        return self._store.conversations.get(conversation_id)

    async def get_active_for_pair(self, client_id: int, agency_id: int) -> Conversation | None:
        for c in self._store.conversations.values():
            if c.client_id == client_id and c.agency_id == agency_id and c.is_active:
                return c
        return None

    async def list_active_for_agency(self, agency_id: int) -> list[tuple[Conversation, Client]]:
        return self._list(lambda c: c.agency_id == agency_id)

    async def list_active_for_client(self, client_id: int) -> list[tuple[Conversation, Client]]:
        return self._list(lambda c: c.client_id == client_id)

    def _list(self, owned) -> list[tuple[Conversation, Client]]:
        rows = [
            (c, self._store.clients[c.client_id])
            for c in self._store.conversations.values()
            if owned(c) and c.is_active
        ]
        rows.sort(key=lambda row: (row[0].last_activity, row[0].id), reverse=True)
        return rows

    async def stats_for_agency(self, agency_id: int) -> ChatStats:
        return self._stats([c for c in self._store.conversations.values() if c.agency_id == agency_id])

    async def stats_for_client(self, client_id: int) -> ChatStats:
        return self._stats([c for c in self._store.conversations.values() if c.client_id == client_id])

    @staticmethod
    def _stats(convs: list[Conversation]) -> ChatStats:
        active = [c for c in convs if c.is_active]
        return ChatStats(
            total_conversations=len(convs),
            active_conversations=len(active),
            unread_messages=sum(c.unread_count for c in active),
        )


@dataclass
class FakeConversationWriter:
    _store: FakeStore

    async def create_if_absent(self, conversation: Conversation) -> tuple[Conversation, bool]:
        existing = await FakeConversationReader(self._store).get_active_for_pair(
            conversation.client_id, conversation.agency_id,
        )
        if existing is not None:
            return existing, False
        created = dataclasses.replace(conversation, id=self._store.next_id())
        return self._store.add_conversation(created), True

    async def record_message(self, conversation_id: int, content: str, ts: datetime) -> None:
        conv = self._store.conversations[conversation_id]
        self._store.conversations[conversation_id] = dataclasses.replace(
            conv, last_message=content, last_message_time=ts, unread_count=conv.unread_count + 1,
        )

    async def reset_unread(self, conversation_id: int) -> None:
        conv = self._store.conversations[conversation_id]
        self._store.conversations[conversation_id] = dataclasses.replace(conv, unread_count=0)

    async def deactivate(self, conversation_id: int) -> None:
        conv = self._store.conversations[conversation_id]
        self._store.conversations[conversation_id] = dataclasses.replace(conv, is_active=False)


@dataclass
class FakeMessageReader:
    _store: FakeStore

    async def list_messages(self, conversation_id: int) -> list[Message]:
        msgs = [m for m in self._store.messages.values() if m.conversation_id == conversation_id]
        return sorted(msgs, key=lambda m: (m.created_at, m.id))

    async def search(self, query: str, conversation_ids: list[int], *, limit: int = 50) -> list[Message]:
        needle = query.lower()
        hits = [
            m for m in self._store.messages.values()
            if m.conversation_id in conversation_ids and needle in m.content.lower()
        ]
        hits.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        return hits[:limit]


@dataclass
class FakeMessageWriter:
    _store: FakeStore

    async def create(self, message: Message) -> Message:
        return self._store.add_message(message)

    async def mark_read_from(self, conversation_id: int, sender_type: str, ts: datetime) -> int:
        count = 0
        for mid, m in list(self._store.messages.items()):
            if m.conversation_id == conversation_id and m.sender_type == sender_type and not m.is_read:
                self._store.messages[mid] = dataclasses.replace(m, is_read=True, read_at=ts)
                count += 1
        return count


@dataclass
class FakeOutboxWriter:
    _store: FakeStore

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        record_id = self._store.next_id()
        self._store.outbox[record_id] = {
            "id": record_id,
            "event_type": event_type,
            "payload": payload,
            "status": OutboxStatus.PENDING,
            "attempts": 0,
            "next_retry_at": None,
        }

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        pending = [
            r for r in self._store.outbox.values()
            if r["status"] in (OutboxStatus.PENDING, OutboxStatus.FAILED)
        ][:batch_size]
        for r in pending:
            r["status"] = OutboxStatus.PROCESSING
        return [
            OutboxRecord(id=r["id"], event_type=r["event_type"], payload=r["payload"], attempts=r["attempts"])
            for r in pending
        ]

    async def mark_sent(self, ids: list[int]) -> None:
        for record_id in ids:
            self._store.outbox[record_id]["status"] = OutboxStatus.SENT

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        record = self._store.outbox[record_id]
        record["status"] = OutboxStatus.FAILED
        record["attempts"] += 1
        record["next_retry_at"] = next_retry_at


class FakeUoW:
    """In-memory UoW for unit tests. Uncommitted writes are undone by rollback."""

    def __init__(self, store: FakeStore | None = None) -> None:
        self.store = store or FakeStore()
        self.clients = FakeClientReader(self.store)
        self.clients_w = FakeClientWriter(self.store)
        self.conversations = FakeConversationReader(self.store)
        self.conversations_w = FakeConversationWriter(self.store)
        self.messages = FakeMessageReader(self.store)
        self.messages_w = FakeMessageWriter(self.store)
        self.outbox = FakeOutboxWriter(self.store)
        self.commits = 0
        self._snapshot = self.store.snapshot()

    @property
    def _committed(self) -> bool:
        return self.commits > 0

    async def commit(self) -> None:
        self.commits += 1
        self._snapshot = self.store.snapshot()

    async def rollback(self) -> None:
        self.store.restore(self._snapshot)

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            await self.rollback()


def fake_uow_factory(store: FakeStore):
    @asynccontextmanager
    async def _open() -> AsyncIterator[FakeUoW]:
        async with FakeUoW(store) as uow:
            yield uow

    return _open


@dataclass(eq=False)
class FakeWebSocket:
    """Records what the server sends; identity-hashed like a real connection."""

    sent: list[str] = field(default_factory=list)
    accepted: bool = False
    closed_with: int | None = None
    broken: bool = False

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise RuntimeError("connection lost")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = code

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e["data"] for e in self.events if e["type"] == event_type]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def seeded_store() -> FakeStore:
    """One client (id 10) with one active conversation (id 100) owned by agency 1."""
    store = FakeStore()
    store.add_client(make_client())
    store.add_conversation(make_conversation())
    return store
