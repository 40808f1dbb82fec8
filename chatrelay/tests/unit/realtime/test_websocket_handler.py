"""
Unit tests for the WebSocket session handler.

The WebSocket is a MagicMock with AsyncMock transport methods, so these tests
drive the handler's state transitions without an ASGI server.
"""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocketDisconnect
from starlette.websockets import WebSocketState

from chatrelay.auth.tokens import TokenService
from chatrelay.exceptions import StorageError
from chatrelay.realtime.chat_message import ChatMessage
from chatrelay.realtime.connection_registry import ConnectionRegistry
from chatrelay.realtime.message_broadcaster import MessageBroadcaster
from chatrelay.realtime.websocket_handler import SessionHandler


def _frame(data: str | bytes) -> dict:
    key = "bytes" if isinstance(data, bytes) else "text"
    return {"type": "websocket.receive", key: data}


def _websocket(token: str | None, frames: list) -> MagicMock:
    websocket = MagicMock()
    websocket.query_params = {"token": token} if token is not None else {}
    websocket.client_state = WebSocketState.CONNECTED
    websocket.application_state = WebSocketState.CONNECTED
    websocket.accept = AsyncMock()
    websocket.close = AsyncMock()
    websocket.send_text = AsyncMock()
    websocket.send_json = AsyncMock()
    websocket.receive = AsyncMock(
        side_effect=[*(_frame(f) for f in frames), {"type": "websocket.disconnect", "code": 1000}]
    )
    return websocket


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def message_store():
    store = MagicMock()
    store.append = AsyncMock()
    return store


@pytest.fixture
def handler(token_service, registry, message_store):
    return SessionHandler(token_service, registry, MessageBroadcaster(registry), message_store)


class TestHandshake:
    """Token checks before registration."""

    @pytest.mark.asyncio
    async def test_missing_token_closes_with_policy_violation(self, handler, registry):
        websocket = _websocket(None, [])

        await handler.handle(websocket)

        websocket.close.assert_awaited_once_with(code=1008, reason="Authentication required")
        websocket.receive.assert_not_awaited()
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_invalid_token_closes_with_distinct_reason(self, handler, registry):
        websocket = _websocket("not-a-jwt", [])

        await handler.handle(websocket)

        websocket.close.assert_awaited_once_with(code=1008, reason="Invalid token")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_expired_token_closes_as_invalid(self, handler, token_service, registry):
        websocket = _websocket(token_service.issue("alice", expires_delta=timedelta(seconds=-1)), [])

        await handler.handle(websocket)

        websocket.close.assert_awaited_once_with(code=1008, reason="Invalid token")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_token_signed_with_other_secret_rejected(self, handler):
        forged = TokenService("some-other-secret").issue("alice")
        websocket = _websocket(forged, [])

        await handler.handle(websocket)

        websocket.close.assert_awaited_once_with(code=1008, reason="Invalid token")

    @pytest.mark.asyncio
    async def test_client_gone_before_rejection_close(self, handler, registry):
        """A close that fails because the peer already left still ends the session quietly."""
        websocket = _websocket(None, [])
        websocket.close.side_effect = RuntimeError('Cannot call "send" once a close message has been sent.')

        await handler.handle(websocket)

        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_client_disconnect_during_rejection_close(self, handler):
        websocket = _websocket("not-a-jwt", [])
        websocket.close.side_effect = WebSocketDisconnect(code=1006)

        await handler.handle(websocket)

        websocket.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_close_error_propagates(self, handler):
        websocket = _websocket(None, [])
        websocket.close.side_effect = RuntimeError("unexpected ASGI message")

        with pytest.raises(RuntimeError, match="unexpected ASGI message"):
            await handler.handle(websocket)


class TestMessageRelay:
    """Frames from an authenticated session."""

    @pytest.mark.asyncio
    async def test_author_is_bound_identity(self, handler, token_service, message_store):
        """A client-supplied author is overridden by the authenticated identity."""
        websocket = _websocket(token_service.issue("alice"), ['{"text": "hi", "author": "mallory"}'])

        await handler.handle(websocket)

        stored = message_store.append.await_args.args[0]
        assert stored.author == "alice"
        assert stored.text == "hi"
        sent = json.loads(websocket.send_text.await_args.args[0])
        assert sent["author"] == "alice"
        assert sent["text"] == "hi"

    @pytest.mark.asyncio
    async def test_deregistered_after_disconnect(self, handler, token_service, registry):
        websocket = _websocket(token_service.issue("alice"), [])

        await handler.handle(websocket)

        assert len(registry) == 0
        websocket.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_frame_dropped_connection_stays_open(self, handler, token_service, message_store):
        """A bad frame yields an error to the sender only; no append, no broadcast, no close."""
        websocket = _websocket(token_service.issue("alice"), ["not json", '{"text": "after"}'])

        await handler.handle(websocket)

        error_frame = websocket.send_json.await_args.args[0]
        assert error_frame["type"] == "error"
        assert error_frame["error_type"] == "invalid_format"
        assert message_store.append.await_count == 1
        assert message_store.append.await_args.args[0].text == "after"
        assert websocket.send_text.await_count == 1
        websocket.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_block_broadcast(self, handler, token_service, message_store):
        """An append failure is logged and the message is still delivered."""
        message_store.append.side_effect = StorageError("disk full", operation="append")
        websocket = _websocket(token_service.issue("alice"), ['{"text": "still here"}'])

        await handler.handle(websocket)

        assert json.loads(websocket.send_text.await_args.args[0])["text"] == "still here"

    @pytest.mark.asyncio
    async def test_connection_lost_runtime_error_ends_session(self, handler, token_service, registry):
        websocket = _websocket(token_service.issue("alice"), [])
        websocket.receive.side_effect = RuntimeError('WebSocket is not connected. Need to call "accept" first.')

        await handler.handle(websocket)

        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_relay_appends_before_broadcast(self, token_service, registry, message_store):
        """The store sees the message before any connection does."""
        calls = []
        message_store.append.side_effect = lambda m: calls.append("append")
        broadcaster = MagicMock()
        broadcaster.broadcast = AsyncMock(side_effect=lambda m: calls.append("broadcast"))
        handler = SessionHandler(token_service, registry, broadcaster, message_store)

        await handler.relay(ChatMessage.create("alice", "ordered"))

        assert calls == ["append", "broadcast"]

    @pytest.mark.asyncio
    async def test_binary_garbage_is_rejected_and_session_continues(self, handler, token_service, message_store):
        """Undecodable binary frames get an error reply; later text frames still relay."""
        websocket = _websocket(token_service.issue("alice"), [b"\xff\xfe not text", '{"text": "still here"}'])

        await handler.handle(websocket)

        assert websocket.send_json.await_args.args[0]["type"] == "error"
        assert message_store.append.await_count == 1
        assert message_store.append.await_args.args[0].text == "still here"
        websocket.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_binary_json_frame_is_relayed(self, handler, token_service, message_store):
        websocket = _websocket(token_service.issue("bob"), [b'{"text": "from bytes"}'])

        await handler.handle(websocket)

        stored = message_store.append.await_args.args[0]
        assert stored.author == "bob"
        assert stored.text == "from bytes"
