"""
Tests for the bounded durable message store.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from sqlalchemy.exc import OperationalError

from chatrelay.database import DatabaseManager
from chatrelay.exceptions import StorageError
from chatrelay.persistence import MessageStore
from chatrelay.realtime.chat_message import ChatMessage


def _message(n: int) -> ChatMessage:
    return ChatMessage(author="alice", text=f"m{n}", timestamp=f"2024-01-01T00:00:{n:02d}.000Z")


class TestMessageStoreCapacity:
    """Capacity and ordering behaviour."""

    @pytest.mark.asyncio
    async def test_keeps_exactly_capacity_newest_in_order(self, message_store):
        """Appending CAP + k messages leaves exactly the CAP newest, oldest first."""
        for n in range(message_store.capacity + 3):
            await message_store.append(_message(n))

        recent = await message_store.recent()

        assert [m.text for m in recent] == ["m3", "m4", "m5", "m6", "m7"]
        assert await message_store.count() == message_store.capacity

    @pytest.mark.asyncio
    async def test_concurrent_appends_never_exceed_capacity(self, message_store):
        """Overlapping writers leave exactly CAP rows, the newest, in the order they were appended."""
        messages = [_message(n) for n in range(message_store.capacity * 4)]

        await asyncio.gather(*(message_store.append(m) for m in messages))

        assert await message_store.count() == message_store.capacity
        recent = await message_store.recent()
        assert [m.text for m in recent] == [m.text for m in messages[-message_store.capacity :]]

    @pytest.mark.asyncio
    async def test_below_capacity_keeps_everything(self, message_store):
        """Nothing is trimmed until the store is full."""
        for n in range(3):
            await message_store.append(_message(n))

        assert [m.text for m in await message_store.recent()] == ["m0", "m1", "m2"]

    @pytest.mark.asyncio
    async def test_order_is_insertion_not_timestamp(self, message_store):
        """Messages with out-of-order timestamps are returned in the order they were appended."""
        await message_store.append(ChatMessage("alice", "later", "2030-01-01T00:00:00.000Z"))
        await message_store.append(ChatMessage("bob", "earlier", "2020-01-01T00:00:00.000Z"))

        assert [m.text for m in await message_store.recent()] == ["later", "earlier"]

    @pytest.mark.asyncio
    async def test_recent_limit(self, message_store):
        """recent(limit) returns the newest `limit` messages."""
        for n in range(4):
            await message_store.append(_message(n))

        assert [m.text for m in await message_store.recent(2)] == ["m2", "m3"]
        assert await message_store.recent(0) == []

    @pytest.mark.asyncio
    async def test_round_trips_fields(self, message_store):
        """Stored messages come back with author, text and timestamp unchanged."""
        original = ChatMessage("bob", "héllo 👋", "2024-05-01T12:00:00.123Z")
        await message_store.append(original)

        assert await message_store.recent() == [original]

    @pytest.mark.asyncio
    async def test_history_survives_reopen(self, database_url):
        """A new store over the same database sees previously appended messages."""
        first = DatabaseManager(database_url)
        await first.initialize()
        await MessageStore(first, capacity=3).append(_message(1))
        await first.close()

        second = DatabaseManager(database_url)
        await second.initialize()
        try:
            assert [m.text for m in await MessageStore(second, capacity=3).recent()] == ["m1"]
        finally:
            await second.close()

    def test_capacity_must_be_positive(self, database_url):
        """A zero capacity is rejected at construction."""
        with pytest.raises(ValueError):
            MessageStore(DatabaseManager(database_url), capacity=0)


class TestMessageStoreErrors:
    """Failure surfaces as StorageError."""

    @pytest.mark.asyncio
    async def test_append_after_close_raises(self, message_store):
        """A closed store refuses writes."""
        await message_store.close()

        with pytest.raises(StorageError):
            await message_store.append(_message(1))

    @pytest.mark.asyncio
    async def test_database_failure_raises_storage_error(self, message_store, monkeypatch):
        """An I/O error from the database is wrapped in StorageError."""

        @asynccontextmanager
        async def broken_session():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
            yield  # pragma: no cover

        monkeypatch.setattr(message_store.database, "session", broken_session)

        with pytest.raises(StorageError) as exc_info:
            await message_store.append(_message(1))

        assert exc_info.value.operation == "append"
