"""
Best-effort fan-out of chat messages to every registered connection.

Sends run concurrently and each is bounded by send_timeout, so a stalled
client never delays delivery to the others. A failed send is treated as a
disconnect: the connection is deregistered and closed inside the same
concurrent task, and the failure is not propagated to the caller.
"""

import asyncio
from dataclasses import dataclass, field

from ..error_types import CloseCode, CloseReason
from ..logging_config import get_logger
from .chat_message import ChatMessage
from .connection_registry import Connection, ConnectionRegistry

logger = get_logger(__name__)

DEFAULT_SEND_TIMEOUT = 2.0


@dataclass
class BroadcastResult:
    """Delivery statistics for one broadcast."""

    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total_targets(self) -> int:
        return len(self.delivered) + len(self.failed)


class MessageBroadcaster:
    """Delivers serialized messages to a snapshot of the connection registry."""

    def __init__(self, registry: ConnectionRegistry, send_timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        self.registry = registry
        self.send_timeout = send_timeout

    async def broadcast(self, message: ChatMessage) -> BroadcastResult:
        """
        Send a message to every connection registered at the moment of the snapshot.

        Each connection's send and, on failure, its drop run in one concurrent
        task, so the caller waits at most two send timeouts however many
        peers stall.

        Returns:
            BroadcastResult listing delivered and failed connection handles
        """
        payload = message.to_json()
        targets = await self.registry.snapshot()
        result = BroadcastResult()
        if not targets:
            return result

        outcomes = await asyncio.gather(
            *(self._deliver(handle, connection, payload) for handle, connection in targets),
            return_exceptions=True,
        )

        for (handle, _connection), delivered in zip(targets, outcomes, strict=True):
            if delivered is True:
                result.delivered.append(handle)
            else:
                result.failed.append(handle)

        logger.debug(
            "Message broadcast",
            author=message.author,
            delivered=len(result.delivered),
            failed=len(result.failed),
        )
        return result

    async def _deliver(self, handle: str, connection: Connection, payload: str) -> bool:
        """Send to one connection; drop it on failure. Returns True when delivered."""
        try:
            await self._send(handle, connection, payload)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: any send failure counts as a disconnect
            logger.warning(
                "Broadcast delivery failed, dropping connection",
                connection_id=handle,
                username=connection.identity,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            await self._drop(handle, connection)
            return False
        return True

    async def _send(self, handle: str, connection: Connection, payload: str) -> None:
        if not connection.is_open():
            raise ConnectionError(f"Connection {handle} is not open")
        await asyncio.wait_for(connection.send(payload), timeout=self.send_timeout)

    async def _drop(self, handle: str, connection: Connection) -> None:
        """Deregister a failed connection and close its transport within the send timeout."""
        await self.registry.deregister(handle)
        try:
            await asyncio.wait_for(
                connection.close(CloseCode.INTERNAL_ERROR, CloseReason.DELIVERY_FAILED),
                timeout=self.send_timeout,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: the transport is already broken; closing is best effort
            logger.debug("Error closing failed connection", connection_id=handle, error_type=type(e).__name__)
