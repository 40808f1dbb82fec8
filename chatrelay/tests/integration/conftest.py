"""
Fixtures for integration tests that drive the full ASGI application.
"""

import time
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from chatrelay.app.factory import create_app
from chatrelay.config.models import AppConfig, ChatConfig, DatabaseConfig

HISTORY_CAPACITY = 5


@pytest.fixture
def history_capacity() -> int:
    return HISTORY_CAPACITY


@pytest.fixture
def app_config(database_url: str, history_capacity: int) -> AppConfig:
    return AppConfig(
        database=DatabaseConfig(url=database_url),
        chat=ChatConfig(history_capacity=history_capacity, send_timeout=1.0, max_message_length=100),
    )


@pytest.fixture
def client(app_config: AppConfig) -> Iterator[TestClient]:
    """Client with the lifespan running; demo users alice and bob exist."""
    with TestClient(create_app(app_config)) as test_client:
        yield test_client


@pytest.fixture
def login(client: TestClient):
    """Return a token for the given demo user."""

    def _login(username: str, password: str = "password123") -> str:
        response = client.post("/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["token"]

    return _login


@pytest.fixture
def wait_for_connections(client: TestClient):
    """Block until /health reports the expected number of registered connections."""

    def _wait(expected: int, timeout: float = 2.0) -> None:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if client.get("/health").json()["connections"] == expected:
                return
            time.sleep(0.01)
        raise AssertionError(f"registry never reached {expected} connections")

    return _wait
