"""
End-to-end tests of the WebSocket chat stream.

Each test drives the real application through TestClient: login over HTTP,
connect with the token in the query string, exchange frames, then read the
history back.
"""

import json

import pytest
from starlette.websockets import WebSocketDisconnect


def _history(client, token):
    return client.get("/history", headers={"Authorization": f"Bearer {token}"}).json()


@pytest.mark.integration
class TestHandshake:
    def test_missing_token_closes_1008(self, client, wait_for_connections):
        with client.websocket_connect("/ws") as websocket:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_text()

        assert exc_info.value.code == 1008
        assert exc_info.value.reason == "Authentication required"
        wait_for_connections(0)

    def test_invalid_token_closes_1008(self, client, wait_for_connections):
        with client.websocket_connect("/ws?token=forged") as websocket:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_text()

        assert exc_info.value.code == 1008
        assert exc_info.value.reason == "Invalid token"
        wait_for_connections(0)


@pytest.mark.integration
class TestRelay:
    def test_hello_reaches_both_and_is_stored(self, client, login, wait_for_connections):
        """A and B connected; A says hello; both receive it and history ends with it."""
        alice_token = login("alice")
        bob_token = login("bob")

        with client.websocket_connect(f"/ws?token={alice_token}") as alice_ws:
            with client.websocket_connect(f"/ws?token={bob_token}") as bob_ws:
                wait_for_connections(2)

                alice_ws.send_text(json.dumps({"text": "hello"}))

                to_alice = json.loads(alice_ws.receive_text())
                to_bob = json.loads(bob_ws.receive_text())

        assert to_alice == to_bob
        assert to_bob["author"] == "alice"
        assert to_bob["text"] == "hello"
        assert to_bob["timestamp"]

        history = _history(client, alice_token)
        assert history[-1] == to_bob

    def test_author_cannot_be_spoofed(self, client, login, wait_for_connections):
        token = login("alice")

        with client.websocket_connect(f"/ws?token={token}") as websocket:
            wait_for_connections(1)
            websocket.send_text(json.dumps({"text": "hi", "author": "bob"}))
            received = json.loads(websocket.receive_text())

        assert received["author"] == "alice"
        assert _history(client, token)[-1]["author"] == "alice"

    def test_malformed_frame_keeps_connection_open(self, client, login, wait_for_connections):
        """A bad frame produces an error to the sender, no broadcast, and no append."""
        token = login("alice")

        with client.websocket_connect(f"/ws?token={token}") as websocket:
            wait_for_connections(1)
            websocket.send_text("this is not json")
            error = json.loads(websocket.receive_text())

            websocket.send_text(json.dumps({"text": "still connected"}))
            received = json.loads(websocket.receive_text())

        assert error["type"] == "error"
        assert received["text"] == "still connected"
        assert [m["text"] for m in _history(client, token)] == ["still connected"]

    def test_binary_frame_does_not_end_session(self, client, login, wait_for_connections):
        """Non-UTF-8 bytes get an error reply and the next text frame is relayed."""
        token = login("alice")

        with client.websocket_connect(f"/ws?token={token}") as websocket:
            wait_for_connections(1)
            websocket.send_bytes(b"\xff\xfe not text")
            error = json.loads(websocket.receive_text())

            websocket.send_json({"text": "still here"})
            received = json.loads(websocket.receive_text())

            assert client.get("/health").json()["connections"] == 1

        assert error["type"] == "error"
        assert received["author"] == "alice"
        assert received["text"] == "still here"
        assert [m["text"] for m in _history(client, token)] == ["still here"]

    def test_history_is_capped_and_ordered(self, client, login, wait_for_connections, history_capacity):
        token = login("bob")
        total = history_capacity + 2

        with client.websocket_connect(f"/ws?token={token}") as websocket:
            wait_for_connections(1)
            for n in range(total):
                websocket.send_text(json.dumps({"text": f"m{n}"}))
                websocket.receive_text()

        texts = [m["text"] for m in _history(client, token)]
        assert texts == [f"m{n}" for n in range(total - history_capacity, total)]
        assert client.get("/health").json()["stored_messages"] == history_capacity

    def test_disconnect_deregisters(self, client, login, wait_for_connections):
        token = login("alice")

        with client.websocket_connect(f"/ws?token={token}"):
            wait_for_connections(1)

        wait_for_connections(0)

    def test_same_identity_multiple_connections(self, client, login, wait_for_connections):
        """Two tabs for one user both receive the broadcast."""
        token = login("alice")

        with client.websocket_connect(f"/ws?token={token}") as first:
            with client.websocket_connect(f"/ws?token={token}") as second:
                wait_for_connections(2)
                first.send_text(json.dumps({"text": "echo"}))

                assert json.loads(first.receive_text())["text"] == "echo"
                assert json.loads(second.receive_text())["text"] == "echo"
