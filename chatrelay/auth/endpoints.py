"""
Authentication endpoints for the chat relay.

/login exchanges a username and password for an access token; /register
creates an account and issues a token for it in the same call.
"""

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel

from ..dependencies import get_credential_store, get_token_service
from ..error_types import ErrorMessages
from ..exceptions import LoggedHTTPException, UserAlreadyExistsError, create_error_context
from ..logging_config import get_logger
from .credentials import CredentialStore
from .tokens import TokenService

logger = get_logger(__name__)

auth_router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    """Credentials body shared by /login and /register."""

    # Optional so a missing field is reported as 400 rather than a schema error
    username: str | None = None
    password: str | None = None


class TokenResponse(BaseModel):
    """Issued access token and the identity it carries."""

    token: str
    username: str


def _require_credentials(body: LoginRequest, request: Request, operation: str) -> tuple[str, str]:
    if not body.username or not body.password:
        context = create_error_context(request_id=request.url.path, metadata={"operation": operation})
        raise LoggedHTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorMessages.CREDENTIALS_REQUIRED,
            context=context,
        )
    return body.username, body.password


@auth_router.post("/login", response_model=TokenResponse)
async def login_user(
    body: LoginRequest,
    request: Request,
    credential_store: CredentialStore = Depends(get_credential_store),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """
    Authenticate a user and return an access token.

    Unknown users and wrong passwords get the same 401 response.
    """
    username, password = _require_credentials(body, request, "login_user")
    logger.info("Login attempt", username=username)

    identity = await credential_store.verify(username, password)
    if identity is None:
        context = create_error_context(user_id=username, request_id=request.url.path)
        raise LoggedHTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ErrorMessages.INVALID_CREDENTIALS,
            context=context,
        )

    logger.info("Login successful", username=identity)
    return TokenResponse(token=token_service.issue(identity), username=identity)


@auth_router.post("/register", response_model=TokenResponse)
async def register_user(
    body: LoginRequest,
    request: Request,
    credential_store: CredentialStore = Depends(get_credential_store),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Create an account and log it in."""
    username, password = _require_credentials(body, request, "register_user")
    logger.info("Registration attempt", username=username)

    try:
        identity = await credential_store.create(username, password)
    except UserAlreadyExistsError as e:
        context = create_error_context(user_id=username, request_id=request.url.path)
        raise LoggedHTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ErrorMessages.USERNAME_EXISTS,
            context=context,
        ) from e

    return TokenResponse(token=token_service.issue(identity), username=identity)
