"""
Application lifecycle management for the chat relay.

Startup builds and initializes the ApplicationContainer and publishes it on
app.state.container. Shutdown closes live connections with 1001, waits for
any in-flight append, and disposes the database engine.
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..container import ApplicationContainer
from ..logging_config import get_logger

logger = get_logger("chatrelay.lifespan")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting chat relay server...")

    container = getattr(app.state, "container", None) or ApplicationContainer(getattr(app.state, "config", None))
    await container.initialize()
    app.state.container = container

    logger.info("Chat relay server started successfully")
    yield

    logger.info("Shutting down chat relay server...")
    try:
        await container.shutdown()
    except asyncio.CancelledError:
        logger.warning("Shutdown interrupted")
        raise
    except (RuntimeError, OSError) as e:
        logger.error("Critical shutdown failure", error=str(e), error_type=type(e).__name__, exc_info=True)

    logger.info("Chat relay server shutdown complete")
