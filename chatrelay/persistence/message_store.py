"""
Durable, bounded, ordered message log.

Ordering is insertion order (the autoincrement id), never the timestamp.
append() inserts and trims in one transaction while holding the store lock,
so no reader or writer ever observes the log above capacity.

recent() returns messages oldest-first (newest last); /history uses the same
order.
"""

import asyncio

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from ..database import DatabaseManager
from ..exceptions import StorageError
from ..logging_config import get_logger
from ..models import StoredMessage
from ..realtime.chat_message import ChatMessage

logger = get_logger(__name__)

DEFAULT_CAPACITY = 200


class MessageStore:
    """Capped append-only message log backed by the messages table."""

    def __init__(self, database: DatabaseManager, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.database = database
        self.capacity = capacity
        # Single writer: append + trim is one unit
        self._lock = asyncio.Lock()
        self._closed = False

    async def append(self, message: ChatMessage) -> None:
        """
        Add a message as the newest entry, discarding the oldest beyond capacity.

        Raises:
            StorageError: The underlying database write failed or the store is closed
        """
        async with self._lock:
            if self._closed:
                raise StorageError("Message store is closed", operation="append", table="messages")

            try:
                async with self.database.session() as session:
                    session.add(
                        StoredMessage(author=message.author, text=message.text, timestamp=message.timestamp)
                    )
                    await session.flush()

                    # id of the newest row that falls outside the capacity window
                    cutoff = await session.scalar(
                        select(StoredMessage.id).order_by(StoredMessage.id.desc()).offset(self.capacity).limit(1)
                    )
                    if cutoff is not None:
                        await session.execute(delete(StoredMessage).where(StoredMessage.id <= cutoff))

                    await session.commit()
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Failed to append message: {e}",
                    operation="append",
                    table="messages",
                    details={"author": message.author, "error_type": type(e).__name__},
                ) from e

            if cutoff is not None:
                logger.debug("Trimmed message history", capacity=self.capacity, cutoff_id=cutoff)

    async def recent(self, limit: int | None = None) -> list[ChatMessage]:
        """
        Return up to `limit` newest messages, oldest-first.

        Args:
            limit: Maximum number of messages; defaults to the store capacity

        Raises:
            StorageError: The read failed
        """
        if limit is None:
            limit = self.capacity
        if limit <= 0:
            return []

        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(StoredMessage).order_by(StoredMessage.id.desc()).limit(limit)
                )
                rows = list(result.scalars())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read history: {e}", operation="select", table="messages") from e

        rows.reverse()
        return [ChatMessage(author=row.author, text=row.text, timestamp=row.timestamp) for row in rows]

    async def count(self) -> int:
        try:
            async with self.database.session() as session:
                return int(await session.scalar(select(func.count()).select_from(StoredMessage)) or 0)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count messages: {e}", operation="count", table="messages") from e

    async def close(self) -> None:
        """Wait for any in-flight append, then refuse further writes."""
        async with self._lock:
            self._closed = True
        logger.info("Message store closed")
