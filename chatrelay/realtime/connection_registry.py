"""
Connection registry for live, authenticated chat connections.

The registry is the only owner of Connection objects; everything else works
from snapshots. All membership changes and snapshots happen under one
asyncio.Lock, so a snapshot is always a consistent view of the set.
"""

import asyncio
from typing import Protocol, runtime_checkable

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from ..logging_config import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Connection(Protocol):
    """A live transport session bound to an identity."""

    identity: str

    async def send(self, payload: str) -> None: ...

    def is_open(self) -> bool: ...

    async def close(self, code: int, reason: str) -> None: ...


class WebSocketConnection:
    """Connection backed by a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket, identity: str) -> None:
        self.websocket = websocket
        self.identity = identity

    async def send(self, payload: str) -> None:
        await self.websocket.send_text(payload)

    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def close(self, code: int, reason: str) -> None:
        if self.is_open():
            await self.websocket.close(code=code, reason=reason)

    def __repr__(self) -> str:
        return f"<WebSocketConnection(identity={self.identity!r})>"


class ConnectionRegistry:
    """
    Tracks live connections keyed by a unique connection handle.

    The same identity may hold several connections at once; there is no
    deduplication by identity.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    async def register(self, handle: str, connection: Connection) -> None:
        """
        Add a connection under a new handle.

        Raises:
            ValueError: The handle is already registered
        """
        async with self._lock:
            if handle in self._connections:
                raise ValueError(f"Connection handle already registered: {handle}")
            self._connections[handle] = connection
            total = len(self._connections)

        logger.info("Connection registered", connection_id=handle, username=connection.identity, total=total)

    async def deregister(self, handle: str) -> Connection | None:
        """
        Remove a connection. Unknown or already-removed handles are a no-op.

        Returns:
            The removed connection, or None if nothing was registered under the handle
        """
        async with self._lock:
            connection = self._connections.pop(handle, None)
            total = len(self._connections)

        if connection is not None:
            logger.info("Connection deregistered", connection_id=handle, username=connection.identity, total=total)
        return connection

    async def snapshot(self) -> list[tuple[str, Connection]]:
        """Consistent copy of the current membership."""
        async with self._lock:
            return list(self._connections.items())

    async def close_all(self, code: int, reason: str) -> int:
        """Deregister every connection and close its transport; returns how many were closed."""
        async with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()

        for handle, connection in connections:
            try:
                await connection.close(code, reason)
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: transport may already be gone; shutdown continues with the rest
                logger.debug("Error closing connection", connection_id=handle, error=str(e))
        return len(connections)

    def identities(self) -> list[str]:
        """Identities of the currently registered connections (one per connection)."""
        return [connection.identity for connection in self._connections.values()]

    def __contains__(self, handle: object) -> bool:
        return handle in self._connections

    def __len__(self) -> int:
        return len(self._connections)
