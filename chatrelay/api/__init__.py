"""
API module for the chat relay.

REST endpoints for history, users and health, plus the WebSocket chat stream.
"""

from .chat import chat_router
from .monitoring import monitoring_router
from .real_time import realtime_router

__all__ = ["chat_router", "monitoring_router", "realtime_router"]
