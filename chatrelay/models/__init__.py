"""SQLAlchemy models for the chat relay."""

from .base import Base, metadata
from .message import StoredMessage
from .user import User

__all__ = ["Base", "metadata", "StoredMessage", "User"]
