from __future__ import annotations

from datetime import timedelta

import pytest

from agency_chat.domain.value_objects.enums import OutboxStatus
from agency_chat.workers.outbox_worker import MAX_DELAY_SECONDS, calc_backoff, process_batch
from tests.conftest import T0, FakeUoW


class RecordingPublisher:
    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.published: list[tuple[str, str, dict]] = []
        self._fail_on = fail_on or set()

    async def publish(self, channel: str, event_type: str, payload: dict) -> None:
        if event_type in self._fail_on:
            raise ConnectionError("redis unavailable")
        self.published.append((channel, event_type, payload))


@pytest.mark.asyncio
async def test_pending_records_are_published_and_marked_sent(store):
    uow = FakeUoW(store)
    await uow.outbox.add("chat.message_created", {"message_id": 1})
    await uow.outbox.add("chat.messages_read", {"conversation_id": 100})
    publisher = RecordingPublisher()

    sent = await process_batch(uow, publisher, channel="agency.chat.events", batch_size=10, max_attempts=3)

    assert sent == 2
    assert [p[1] for p in publisher.published] == ["chat.message_created", "chat.messages_read"]
    assert all(p[0] == "agency.chat.events" for p in publisher.published)
    assert {r["status"] for r in store.events()} == {OutboxStatus.SENT}
    assert uow._committed is True


@pytest.mark.asyncio
async def test_failed_publish_is_scheduled_for_retry(store):
    uow = FakeUoW(store)
    await uow.outbox.add("chat.message_created", {"message_id": 1})
    await uow.outbox.add("chat.conversation_deleted", {"conversation_id": 100})
    publisher = RecordingPublisher(fail_on={"chat.conversation_deleted"})

    sent = await process_batch(uow, publisher, channel="c", batch_size=10, max_attempts=3)

    assert sent == 1
    failed = store.events("chat.conversation_deleted")[0]
    assert failed["status"] == OutboxStatus.FAILED
    assert failed["attempts"] == 1
    assert failed["next_retry_at"] is not None


@pytest.mark.asyncio
async def test_exhausted_records_are_skipped(store):
    uow = FakeUoW(store)
    await uow.outbox.add("chat.message_created", {"message_id": 1})
    next(iter(store.outbox.values()))["attempts"] = 5
    publisher = RecordingPublisher()

    sent = await process_batch(uow, publisher, channel="c", batch_size=10, max_attempts=5)

    assert sent == 0
    assert publisher.published == []


@pytest.mark.asyncio
async def test_empty_batch(store):
    uow = FakeUoW(store)
    assert await process_batch(uow, RecordingPublisher(), channel="c", batch_size=10, max_attempts=3) == 0
    assert uow._committed is False


def test_backoff_grows_and_caps():
    assert calc_backoff(0, T0) == T0 + timedelta(seconds=5)
    assert calc_backoff(2, T0) == T0 + timedelta(seconds=20)
    assert calc_backoff(20, T0) == T0 + timedelta(seconds=MAX_DELAY_SECONDS)
