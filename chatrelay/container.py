"""
Dependency container for the chat relay.

Owns every long-lived service and wires them together in dependency order.
The container is created by the lifespan handler and published on
app.state.container; request handlers pull services from there.
"""

from .auth.credentials import CredentialStore
from .auth.tokens import TokenService
from .config import AppConfig, get_config
from .database import DatabaseManager
from .error_types import CloseCode, CloseReason
from .logging_config import get_logger
from .persistence import MessageStore
from .realtime.connection_registry import ConnectionRegistry
from .realtime.message_broadcaster import MessageBroadcaster
from .realtime.message_validator import ChatFrameValidator
from .realtime.websocket_handler import SessionHandler

logger = get_logger(__name__)


class ApplicationContainer:
    """
    Holds the relay's services.

    Services are NOT created in __init__ beyond plain construction; call
    initialize() to connect the database and seed demo accounts.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or get_config()

        self.database_manager = DatabaseManager(self.config.database.url, echo=self.config.database.echo)
        self.token_service = TokenService(
            self.config.auth.jwt_secret,
            algorithm=self.config.auth.jwt_algorithm,
            expire_hours=self.config.auth.token_expire_hours,
        )
        self.credential_store = CredentialStore(self.database_manager)
        self.message_store = MessageStore(self.database_manager, capacity=self.config.chat.history_capacity)
        self.connection_registry = ConnectionRegistry()
        self.broadcaster = MessageBroadcaster(self.connection_registry, send_timeout=self.config.chat.send_timeout)
        self.session_handler = SessionHandler(
            self.token_service,
            self.connection_registry,
            self.broadcaster,
            self.message_store,
            ChatFrameValidator(max_text_length=self.config.chat.max_message_length),
        )

        self._initialized = False

    async def initialize(self) -> None:
        """Connect storage and prepare the schema; seeds demo users when enabled."""
        if self._initialized:
            return

        logger.info("Initializing ApplicationContainer", database_url=self.database_manager.safe_url())
        await self.database_manager.initialize()

        if self.config.auth.uses_default_secret:
            logger.warning("Using the default JWT secret; set AUTH_JWT_SECRET before deploying")

        if self.config.auth.seed_demo_users:
            await self.credential_store.seed_demo_users(self.config.auth.demo_password)

        self._initialized = True
        logger.info(
            "ApplicationContainer initialized",
            history_capacity=self.message_store.capacity,
            send_timeout=self.broadcaster.send_timeout,
        )

    async def shutdown(self) -> None:
        """Close live sessions, then storage, in reverse dependency order."""
        logger.info("Shutting down ApplicationContainer...")

        closed = await self.connection_registry.close_all(CloseCode.GOING_AWAY, CloseReason.SERVER_SHUTDOWN)
        logger.info("Closed live connections", count=closed)

        await self.message_store.close()
        await self.database_manager.close()

        self._initialized = False
        logger.info("ApplicationContainer shutdown complete")

    @property
    def is_initialized(self) -> bool:
        return self._initialized
