"""
User model backing the credential store.

The username is the identity; it is the primary key and never changes.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class User(Base):
    """A registered account: identity plus its Argon2id password hash."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(length=255), primary_key=True)
    hashed_password: Mapped[str] = mapped_column(String(length=255), nullable=False)

    # Timestamps (persist naive UTC)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(), default=lambda: datetime.now(UTC).replace(tzinfo=None), nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(username={self.username!r})>"
