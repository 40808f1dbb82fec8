"""
WebSocket session handler for the chat relay.

One SessionHandler serves every connection. For each session it authenticates
the query-string token, registers the connection, and relays every valid
frame as a ChatMessage authored by the authenticated identity: appended to
the message store first, then broadcast to all live connections, sender
included.
"""

import uuid

from fastapi import WebSocket, WebSocketDisconnect

from ..auth.tokens import TokenService
from ..error_types import (
    CloseCode,
    CloseReason,
    ErrorMessages,
    ErrorType,
    create_websocket_error_response,
)
from ..exceptions import DatabaseError, MessageValidationError, TokenExpiredError, TokenInvalidError
from ..logging_config import get_logger
from ..persistence.message_store import MessageStore
from .chat_message import ChatMessage
from .connection_registry import ConnectionRegistry, WebSocketConnection
from .message_broadcaster import MessageBroadcaster
from .message_validator import ChatFrameValidator
from .session_state_machine import ChatSessionStateMachine

logger = get_logger(__name__)


def _is_connection_lost(error: RuntimeError) -> bool:
    message = str(error)
    return (
        "WebSocket is not connected" in message
        or 'Need to call "accept" first' in message
        or "close message has been sent" in message
    )


class SessionHandler:
    """Drives one WebSocket session at a time from accept to close."""

    def __init__(
        self,
        token_service: TokenService,
        registry: ConnectionRegistry,
        broadcaster: MessageBroadcaster,
        message_store: MessageStore,
        validator: ChatFrameValidator | None = None,
    ) -> None:
        self.token_service = token_service
        self.registry = registry
        self.broadcaster = broadcaster
        self.message_store = message_store
        self.validator = validator or ChatFrameValidator()

    async def handle(self, websocket: WebSocket) -> None:
        """
        Run a session to completion.

        The connection is registered only after its token verifies, and is
        deregistered on every exit path.
        """
        connection_id = str(uuid.uuid4())
        session = ChatSessionStateMachine(connection_id)
        await websocket.accept()

        identity = await self._authenticate(websocket, session)
        if identity is None:
            return

        connection = WebSocketConnection(websocket, identity)
        await self.registry.register(connection_id, connection)
        session.activate(identity=identity)

        reason = "client disconnected"
        try:
            reason = await self._message_loop(websocket, connection_id, identity)
        finally:
            await self.registry.deregister(connection_id)
            if not session.is_closed:
                session.terminate(reason=reason)

    async def _authenticate(self, websocket: WebSocket, session: ChatSessionStateMachine) -> str | None:
        """Verify the query-string token; on failure close with 1008 and return None."""
        session.begin_authentication()
        token = websocket.query_params.get("token")

        if not token:
            logger.warning("WebSocket connection rejected - no token", connection_id=session.connection_id)
            await self._reject(websocket, session, CloseReason.AUTHENTICATION_REQUIRED)
            return None

        try:
            return self.token_service.verify(token)
        except TokenExpiredError:
            logger.warning("WebSocket connection rejected - token expired", connection_id=session.connection_id)
        except TokenInvalidError:
            logger.warning("WebSocket connection rejected - invalid token", connection_id=session.connection_id)

        await self._reject(websocket, session, CloseReason.INVALID_TOKEN)
        return None

    async def _reject(self, websocket: WebSocket, session: ChatSessionStateMachine, reason: str) -> None:
        try:
            await websocket.close(code=CloseCode.POLICY_VIOLATION, reason=reason)
        except WebSocketDisconnect:
            logger.debug("Client left before rejection close", connection_id=session.connection_id)
        except RuntimeError as e:
            if not _is_connection_lost(e):
                raise
            logger.debug("Client left before rejection close", connection_id=session.connection_id)
        finally:
            session.terminate(reason=reason)

    async def _message_loop(self, websocket: WebSocket, connection_id: str, identity: str) -> str:
        """Receive frames until the client goes away; returns the close reason."""
        while True:
            try:
                message = await websocket.receive()
            except WebSocketDisconnect as e:
                logger.info("WebSocket disconnected", connection_id=connection_id, username=identity, code=e.code)
                return "client disconnected"
            except RuntimeError as e:
                if _is_connection_lost(e):
                    logger.info("WebSocket connection lost", connection_id=connection_id, username=identity)
                    return "connection lost"
                raise

            if message["type"] == "websocket.disconnect":
                logger.info(
                    "WebSocket disconnected",
                    connection_id=connection_id,
                    username=identity,
                    code=message.get("code", CloseCode.NORMAL),
                )
                return "client disconnected"

            # Binary frames go through the same parser as text frames
            data = message.get("text")
            if data is None:
                data = message.get("bytes") or b""

            try:
                text = self.validator.parse(data)
            except MessageValidationError as e:
                logger.warning(
                    "Message validation failed",
                    connection_id=connection_id,
                    username=identity,
                    error_type=e.error_type,
                    error_message=e.message,
                )
                if not await self._send_error(websocket, e):
                    return "connection lost"
                continue

            await self.relay(ChatMessage.create(identity, text))

    async def relay(self, message: ChatMessage) -> None:
        """Persist a message, then fan it out. A storage failure does not stop delivery."""
        try:
            await self.message_store.append(message)
        except DatabaseError as e:
            logger.error(
                "Failed to store chat message",
                author=message.author,
                error=str(e),
                error_type=type(e).__name__,
            )
        await self.broadcaster.broadcast(message)

    async def _send_error(self, websocket: WebSocket, error: MessageValidationError) -> bool:
        """Send an error frame to the sender only; returns False if the socket is gone."""
        response = create_websocket_error_response(
            ErrorType.INVALID_FORMAT,
            f"Message validation failed: {error.message}",
            ErrorMessages.INVALID_FORMAT,
            {"error_type": error.error_type},
        )
        try:
            await websocket.send_json(response)
        except WebSocketDisconnect:
            return False
        except RuntimeError as e:
            if _is_connection_lost(e):
                return False
            raise
        return True
