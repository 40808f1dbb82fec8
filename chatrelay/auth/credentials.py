"""
Credential store: username -> Argon2id password hash records.

Hashing and verification run in a worker thread via asyncio.to_thread() so a
login never stalls the event loop that is relaying chat traffic.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..database import DatabaseManager
from ..exceptions import DatabaseError, UserAlreadyExistsError
from ..logging_config import get_logger
from ..models import User
from .argon2_utils import hash_password, needs_rehash, verify_password

logger = get_logger(__name__)

DEMO_USERNAMES = ("alice", "bob")


@dataclass(frozen=True)
class UserRecord:
    """Public view of an account."""

    username: str
    created_at: datetime

    def to_dict(self) -> dict[str, str]:
        return {"username": self.username, "created_at": self.created_at.isoformat()}


class CredentialStore:
    """Persists accounts and checks passwords against them."""

    def __init__(self, database: DatabaseManager) -> None:
        self.database = database

    async def verify(self, username: str, password: str) -> str | None:
        """
        Check a username/password pair.

        Returns:
            The identity on success, None for unknown user or wrong password
        """
        async with self.database.session() as session:
            user = await session.get(User, username)

        if user is None:
            logger.info("Login rejected - unknown user", username=username)
            return None

        if not await asyncio.to_thread(verify_password, password, user.hashed_password):
            logger.info("Login rejected - wrong password", username=username)
            return None

        if needs_rehash(user.hashed_password):
            await self._rehash(username, password)

        return user.username

    async def _rehash(self, username: str, password: str) -> None:
        """Replace a hash made with outdated Argon2 parameters. Failure leaves the old hash usable."""
        hashed = await asyncio.to_thread(hash_password, password)
        async with self.database.session() as session:
            user = await session.get(User, username)
            if user is None:
                return
            user.hashed_password = hashed
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.warning("Password rehash failed", username=username, error=str(e), error_type=type(e).__name__)
                return
        logger.info("Password rehashed with current parameters", username=username)

    async def create(self, username: str, password: str) -> str:
        """
        Register a new account.

        Raises:
            UserAlreadyExistsError: The username is taken
            DatabaseError: The insert failed for any other reason
        """
        hashed = await asyncio.to_thread(hash_password, password)

        async with self.database.session() as session:
            if await session.get(User, username) is not None:
                raise UserAlreadyExistsError(username)
            session.add(User(username=username, hashed_password=hashed))
            try:
                await session.commit()
            except IntegrityError as e:
                # Lost a race with a concurrent registration of the same name
                await session.rollback()
                raise UserAlreadyExistsError(username) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to create user: {e}", operation="insert", table="users") from e

        logger.info("User registered", username=username)
        return username

    async def exists(self, username: str) -> bool:
        async with self.database.session() as session:
            return await session.get(User, username) is not None

    async def list_users(self) -> list[UserRecord]:
        """All known identities with creation timestamps, oldest first."""
        async with self.database.session() as session:
            result = await session.execute(select(User).order_by(User.created_at, User.username))
            return [UserRecord(username=u.username, created_at=u.created_at) for u in result.scalars()]

    async def seed_demo_users(self, password: str, usernames: tuple[str, ...] = DEMO_USERNAMES) -> list[str]:
        """Create the demo accounts that do not exist yet; returns the names created."""
        created = []
        for username in usernames:
            if await self.exists(username):
                continue
            try:
                created.append(await self.create(username, password))
            except UserAlreadyExistsError:
                continue
        if created:
            logger.info("Demo users initialized", usernames=created)
        return created
