"""
Stored chat message model.

Rows are ordered by the autoincrement id (insertion sequence), never by
timestamp; the message store trims the lowest ids when over capacity.
"""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class StoredMessage(Base):
    """One persisted broadcast message."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author: Mapped[str] = mapped_column(String(length=255), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    # ISO-8601 string exactly as broadcast
    timestamp: Mapped[str] = mapped_column(String(length=64), nullable=False)

    def __repr__(self) -> str:
        return f"<StoredMessage(id={self.id}, author={self.author!r})>"
