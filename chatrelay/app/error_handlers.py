"""
Exception handlers mapping relay errors to JSON responses.

Every error body carries a top-level "error" string so simple clients can
display it directly, plus the standardized error_type/message/details fields.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..error_types import ErrorMessages, ErrorType, create_standard_error_response
from ..exceptions import (
    AuthenticationError,
    ChatRelayError,
    DatabaseError,
    UserAlreadyExistsError,
    ValidationError,
)
from ..logging_config import get_logger

logger = get_logger(__name__)

_STATUS_ERROR_TYPES = {
    400: ErrorType.MISSING_REQUIRED_FIELD,
    401: ErrorType.AUTHENTICATION_FAILED,
    403: ErrorType.INVALID_TOKEN,
    409: ErrorType.RESOURCE_ALREADY_EXISTS,
}


def _status_for(exc: ChatRelayError) -> tuple[int, ErrorType]:
    if isinstance(exc, UserAlreadyExistsError):
        return 409, ErrorType.RESOURCE_ALREADY_EXISTS
    if isinstance(exc, AuthenticationError):
        return 401, ErrorType.AUTHENTICATION_FAILED
    if isinstance(exc, ValidationError):
        return 400, ErrorType.VALIDATION_ERROR
    if isinstance(exc, DatabaseError):
        return 503, ErrorType.DATABASE_ERROR
    return 500, ErrorType.INTERNAL_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""

    @app.exception_handler(ChatRelayError)
    async def chat_relay_error_handler(request: Request, exc: ChatRelayError) -> JSONResponse:
        status_code, error_type = _status_for(exc)
        return JSONResponse(
            status_code=status_code,
            content=create_standard_error_response(error_type, exc.message, exc.user_friendly, exc.details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error_type = _STATUS_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_ERROR)
        detail = exc.detail if isinstance(exc.detail, str) else ErrorMessages.INTERNAL_ERROR
        return JSONResponse(
            status_code=exc.status_code,
            content=create_standard_error_response(error_type, detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Request validation failed", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content=create_standard_error_response(
                ErrorType.VALIDATION_ERROR,
                ErrorMessages.INVALID_REQUEST,
                details={"errors": [err.get("msg", "") for err in exc.errors()]},
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=create_standard_error_response(ErrorType.INTERNAL_ERROR, ErrorMessages.INTERNAL_ERROR),
        )

    logger.info("Error handlers registered for FastAPI application")
