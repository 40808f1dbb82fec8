"""
Test configuration and fixtures for the chat relay test suite.

Environment variables are set before any chatrelay import so module-level
configuration (Argon2 cost parameters, settings defaults) sees test values.
"""

import asyncio
import os
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-key-for-testing-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOGGING_ENVIRONMENT", "unit_test")
os.environ.setdefault("LOGGING_DISABLE_LOGGING", "true")
# Minimum Argon2 cost for tests
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from chatrelay.auth.tokens import TokenService  # noqa: E402
from chatrelay.config import reset_config  # noqa: E402
from chatrelay.database import DatabaseManager  # noqa: E402
from chatrelay.logging_config import configure_structlog  # noqa: E402
from chatrelay.persistence import MessageStore  # noqa: E402

configure_structlog("unit_test", "WARNING", {"disable_logging": True})

TEST_JWT_SECRET = os.environ["AUTH_JWT_SECRET"]


@pytest.fixture(autouse=True)
def fresh_config() -> Iterator[None]:
    """Drop any cached configuration around every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'chatrelay_test.db'}"


@pytest_asyncio.fixture
async def database(database_url: str) -> AsyncIterator[DatabaseManager]:
    """Initialized database on a per-test sqlite file."""
    manager = DatabaseManager(database_url)
    await manager.initialize()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def message_store(database: DatabaseManager) -> AsyncIterator[MessageStore]:
    store = MessageStore(database, capacity=5)
    yield store
    await store.close()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_JWT_SECRET)


class FakeConnection:
    """In-memory Connection that records payloads; can be made to fail or stall."""

    def __init__(
        self,
        identity: str,
        fail_with: BaseException | None = None,
        stall: bool = False,
        stall_close: bool = False,
    ) -> None:
        self.identity = identity
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_with = fail_with
        self.stall = stall
        self.stall_close = stall_close
        self.open = True

    async def send(self, payload: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        if self.stall:
            await asyncio.Event().wait()
        self.sent.append(payload)

    def is_open(self) -> bool:
        return self.open

    async def close(self, code: int, reason: str) -> None:
        if self.stall_close:
            await asyncio.Event().wait()
        self.closed_with = (code, reason)
        self.open = False


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection
