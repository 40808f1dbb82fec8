"""Health endpoint for the chat relay."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..container import ApplicationContainer
from ..dependencies import get_container
from ..exceptions import DatabaseError
from ..logging_config import get_logger

logger = get_logger(__name__)

monitoring_router = APIRouter(tags=["monitoring"])


class HealthResponse(BaseModel):
    """Liveness summary."""

    status: str
    connections: int
    stored_messages: int | None
    timestamp: str


@monitoring_router.get("/health", response_model=HealthResponse)
async def health_check(container: ApplicationContainer = Depends(get_container)) -> HealthResponse:
    """Report live connection count and stored message count."""
    status = "healthy"
    stored_messages: int | None
    try:
        stored_messages = await container.message_store.count()
    except DatabaseError as e:
        logger.error("Health check could not read the message store", error=str(e))
        status = "degraded"
        stored_messages = None

    return HealthResponse(
        status=status,
        connections=len(container.connection_registry),
        stored_messages=stored_messages,
        timestamp=datetime.now(UTC).isoformat(),
    )
