"""
Authentication dependencies for HTTP endpoints.

Bearer tokens are read from the Authorization header. A missing token is a
401; a token that fails verification (bad signature, malformed, expired) is
a 403.
"""

from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..dependencies import get_token_service
from ..error_types import ErrorMessages
from ..exceptions import LoggedHTTPException, TokenInvalidError
from ..logging_config import get_logger
from .tokens import TokenService

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    token_service: TokenService = Depends(get_token_service),
) -> str:
    """Resolve the identity bound to the request's bearer token."""
    if credentials is None or not credentials.credentials:
        raise LoggedHTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ErrorMessages.ACCESS_TOKEN_REQUIRED,
        )

    try:
        return token_service.verify(credentials.credentials)
    except TokenInvalidError as e:
        raise LoggedHTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=ErrorMessages.INVALID_OR_EXPIRED_TOKEN,
        ) from e


__all__ = ["bearer_scheme", "get_current_identity"]
