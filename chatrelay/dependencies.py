"""
Dependency injection providers for the chat relay.

Every provider resolves its service from the ApplicationContainer that the
lifespan handler stores on app.state.
"""

from fastapi import Depends, Request

from .auth.credentials import CredentialStore
from .auth.tokens import TokenService
from .container import ApplicationContainer
from .persistence import MessageStore
from .realtime.connection_registry import ConnectionRegistry


def get_container(request: Request) -> ApplicationContainer:
    """
    Get the application container from request state.

    This is the base dependency that all other dependencies use.
    """
    if not hasattr(request.app.state, "container"):
        raise RuntimeError(
            "ApplicationContainer not found in app.state - ensure container is initialized in lifespan context"
        )
    return request.app.state.container


def get_token_service(container: ApplicationContainer = Depends(get_container)) -> TokenService:
    return container.token_service


def get_credential_store(container: ApplicationContainer = Depends(get_container)) -> CredentialStore:
    return container.credential_store


def get_message_store(container: ApplicationContainer = Depends(get_container)) -> MessageStore:
    return container.message_store


def get_connection_registry(container: ApplicationContainer = Depends(get_container)) -> ConnectionRegistry:
    return container.connection_registry
