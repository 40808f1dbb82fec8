"""
Database configuration for the chat relay.

This module provides the async engine, session management, and schema
initialization shared by the credential store and the message store.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .exceptions import DatabaseError
from .logging_config import get_logger
from .models import Base

logger = get_logger(__name__)


class DatabaseManager:
    """
    Owns the async engine and session maker for one database URL.

    Initialization is lazy: nothing connects until initialize() runs.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self.engine: AsyncEngine | None = None
        self.session_maker: async_sessionmaker[AsyncSession] | None = None

    def _engine_kwargs(self) -> dict[str, Any]:
        url = make_url(self.database_url)
        if url.get_backend_name() != "sqlite":
            return {"pool_pre_ping": True}

        database = url.database
        if not database or database == ":memory:":
            # One shared connection, otherwise every session sees a different empty database
            return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}

        Path(database).parent.mkdir(parents=True, exist_ok=True)
        return {}

    async def initialize(self) -> None:
        """Create the engine and session maker, then create any missing tables."""
        if self.engine is not None:
            return

        self.engine = create_async_engine(self.database_url, echo=self.echo, **self._engine_kwargs())
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to initialize database schema: {e}",
                operation="create_all",
                details={"error_type": type(e).__name__},
                user_friendly="Database unavailable",
            ) from e

        logger.info("Database initialized", database_url=self.safe_url())

    def safe_url(self) -> str:
        return make_url(self.database_url).render_as_string(hide_password=True)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; callers commit explicitly."""
        if self.session_maker is None:
            raise DatabaseError("Database used before initialize()", operation="session")
        async with self.session_maker() as session:
            yield session

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self.session_maker = None
        logger.info("Database engine disposed", database_url=self.safe_url())
