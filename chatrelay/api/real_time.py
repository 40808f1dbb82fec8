"""
Real-time communication endpoint for the chat relay.

The token travels in the query string (/ws?token=...); the session handler
owned by the ApplicationContainer does the rest.
"""

from fastapi import APIRouter, WebSocket

from ..error_types import CloseCode
from ..logging_config import get_logger

logger = get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])


@realtime_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for the chat stream."""
    container = getattr(websocket.app.state, "container", None)
    if container is None:
        logger.error("WebSocket connection refused - ApplicationContainer not initialized")
        await websocket.accept()
        await websocket.close(code=CloseCode.INTERNAL_ERROR, reason="Service temporarily unavailable")
        return

    await container.session_handler.handle(websocket)
