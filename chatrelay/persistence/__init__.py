"""Durable storage for chat history."""

from .message_store import DEFAULT_CAPACITY, MessageStore

__all__ = ["DEFAULT_CAPACITY", "MessageStore"]
