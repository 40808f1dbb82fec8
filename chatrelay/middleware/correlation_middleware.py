"""
Correlation middleware for request tracing and logging context.

Every HTTP request and WebSocket handshake gets a correlation ID, taken from
the X-Correlation-ID header when the client sends one. The ID is bound to the
structlog context for the lifetime of the request and echoed back on HTTP
responses.

Pure ASGI rather than BaseHTTPMiddleware, so WebSocket scopes pass through
without buffering.
"""

import time
import uuid
from typing import cast

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..logging_config import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)


def _get_header(scope: Scope, name: str) -> str | None:
    """Return first header value for name (case-insensitive) from ASGI scope."""
    name_lower = name.lower().encode()
    for key, value in scope.get("headers", []):
        if key.lower() == name_lower:
            return cast(str, value.decode("utf-8", errors="replace"))
    return None


class CorrelationMiddleware:  # pylint: disable=too-few-public-methods  # Reason: Middleware class with focused responsibility, minimal public interface
    """Pure ASGI middleware adding correlation IDs and request context."""

    def __init__(self, app: ASGIApp, correlation_header: str = "X-Correlation-ID") -> None:
        self.app = app
        self.correlation_header = correlation_header

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        correlation_id = _get_header(scope, self.correlation_header) or str(uuid.uuid4())
        path = scope.get("path", "")
        client = scope.get("client")
        remote_addr = client[0] if client else "unknown"

        # Query strings are not logged: the WebSocket token travels there
        bind_request_context(
            correlation_id=correlation_id,
            remote_addr=remote_addr,
            path=path,
            connection_type=scope["type"],
        )

        try:
            if scope["type"] == "websocket":
                logger.info("WebSocket handshake started", path=path, remote_addr=remote_addr)
                await self.app(scope, receive, send)
                return

            await self._handle_http(scope, receive, send, correlation_id)
        finally:
            clear_request_context()

    async def _handle_http(self, scope: Scope, receive: Receive, send: Send, correlation_id: str) -> None:
        method = scope.get("method", "")
        path = scope.get("path", "")
        start = time.perf_counter()
        status_code = 500

        async def send_with_correlation_header(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.append(self.correlation_header, correlation_id)
                status_code = message.get("status", 500)
            await send(message)

        logger.debug("Request started", method=method, path=path)
        try:
            await self.app(scope, receive, send_with_correlation_header)
        except Exception as e:
            logger.error(
                "Request failed",
                method=method,
                path=path,
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            raise

        logger.info(
            "Request completed",
            method=method,
            path=path,
            status_code=status_code,
            response_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )
