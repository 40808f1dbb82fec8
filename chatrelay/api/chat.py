"""
Chat history and user listing endpoints.

Both require a bearer token issued by /login or /register.
"""

from typing import Any

from fastapi import APIRouter, Depends

from ..auth.credentials import CredentialStore
from ..auth.dependencies import get_current_identity
from ..dependencies import get_credential_store, get_message_store
from ..logging_config import get_logger
from ..persistence import MessageStore

logger = get_logger(__name__)

chat_router = APIRouter(tags=["chat"])


@chat_router.get("/history")
async def get_history(
    identity: str = Depends(get_current_identity),
    message_store: MessageStore = Depends(get_message_store),
) -> list[dict[str, Any]]:
    """
    Return the retained chat history, oldest first.

    The list holds at most the configured history capacity.
    """
    messages = await message_store.recent()
    logger.debug("History requested", username=identity, count=len(messages))
    return [message.to_dict() for message in messages]


@chat_router.get("/users")
async def list_users(
    identity: str = Depends(get_current_identity),
    credential_store: CredentialStore = Depends(get_credential_store),
) -> list[dict[str, str]]:
    """Return every registered username with its creation time."""
    users = await credential_store.list_users()
    return [user.to_dict() for user in users]
