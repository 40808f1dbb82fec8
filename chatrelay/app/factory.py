"""
FastAPI application factory for the chat relay.

This module handles app creation, middleware configuration, and router
registration.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..api import chat_router, monitoring_router, realtime_router
from ..auth.endpoints import auth_router
from ..config import AppConfig, get_config
from ..logging_config import get_logger
from ..middleware import CorrelationMiddleware
from .error_handlers import register_error_handlers
from .lifespan import lifespan

logger = get_logger(__name__)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Configuration to use; loaded from the environment when omitted

    Returns:
        FastAPI: The configured application instance
    """
    config = config or get_config()

    app = FastAPI(
        title="Chat Relay API",
        description="Real-time chat relay with bounded durable history",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config

    # Credentials are only allowed with an explicit origin list
    allow_all = "*" in config.cors.allow_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.allow_origins,
        allow_credentials=not allow_all,
        allow_methods=[m.upper() for m in config.cors.allow_methods],
        allow_headers=config.cors.allow_headers,
    )
    app.add_middleware(CorrelationMiddleware, correlation_header="X-Correlation-ID")

    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(chat_router)
    app.include_router(monitoring_router)
    app.include_router(realtime_router)

    logger.info("FastAPI application created", cors_origins=config.cors.allow_origins)
    return app
