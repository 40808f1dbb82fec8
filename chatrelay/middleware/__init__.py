"""ASGI middleware for the chat relay."""

from .correlation_middleware import CorrelationMiddleware

__all__ = ["CorrelationMiddleware"]
