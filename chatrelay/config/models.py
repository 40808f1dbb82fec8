"""
Pydantic-based configuration models for the chat relay server.

Each section reads its own environment variables (prefix per section);
AppConfig composes them and also reads a local .env file.
"""

import json
from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from ..logging_config import detect_environment, get_logger

logger = get_logger(__name__)

DEFAULT_JWT_SECRET = "your-secret-key-change-in-production"


def _parse_env_list(candidate: Any) -> list[str]:
    """Parse a string from the environment as JSON list or CSV."""
    if candidate is None:
        return []
    if isinstance(candidate, list):
        return [str(item).strip() for item in candidate if str(item).strip()]
    s = str(candidate).strip()
    if not s:
        return []
    try:
        loaded = json.loads(s)
        if isinstance(loaded, list):
            return [str(item).strip() for item in loaded if str(item).strip()]
    except json.JSONDecodeError:
        pass
    return [item.strip() for item in s.split(",") if item.strip()]


class ServerConfig(BaseSettings):
    """Server network configuration."""

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("SERVER_PORT", "PORT", "port"),
        description="Server port",
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            logger.error("Invalid server port", port=v, valid_range="1-65535")
            raise ValueError("Port must be between 1 and 65535")
        return v

    model_config = {"env_prefix": "SERVER_", "case_sensitive": False, "extra": "ignore", "populate_by_name": True}


class DatabaseConfig(BaseSettings):
    """Database configuration for the durable message store and credential table."""

    url: str = Field(default="sqlite+aiosqlite:///data/chatrelay.db", description="SQLAlchemy async database URL")
    echo: bool = Field(default=False, description="Echo SQL statements to the log")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate the URL names an async driver."""
        if not v:
            raise ValueError("Database URL cannot be empty")
        if "+" not in v.split("://", 1)[0]:
            logger.error("Database URL validation failed - no async driver", url_preview=v[:50])
            raise ValueError("Database URL must name an async driver, e.g. sqlite+aiosqlite:// or postgresql+asyncpg://")
        return v

    model_config = {"env_prefix": "DATABASE_", "case_sensitive": False, "extra": "ignore"}


class AuthConfig(BaseSettings):
    """Token and credential configuration."""

    jwt_secret: str = Field(
        default=DEFAULT_JWT_SECRET,
        validation_alias=AliasChoices("AUTH_JWT_SECRET", "JWT_SECRET", "jwt_secret"),
        description="HMAC secret for signing identity tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    token_expire_hours: int = Field(default=24, description="Token validity window in hours")
    seed_demo_users: bool = Field(default=True, description="Create the alice/bob demo accounts at startup")
    demo_password: str = Field(default="password123", description="Password given to seeded demo accounts")

    @field_validator("token_expire_hours")
    @classmethod
    def validate_expiry(cls, v: int) -> int:
        """Validate token lifetime is positive."""
        if v < 1:
            raise ValueError("token_expire_hours must be at least 1")
        return v

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Only HMAC algorithms are supported with a shared secret."""
        v_upper = v.upper()
        if v_upper not in ("HS256", "HS384", "HS512"):
            raise ValueError(f"Unsupported JWT algorithm: {v}")
        return v_upper

    model_config = {"env_prefix": "AUTH_", "case_sensitive": False, "extra": "ignore", "populate_by_name": True}

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET


class ChatConfig(BaseSettings):
    """Chat relay behaviour."""

    history_capacity: int = Field(default=200, description="Maximum number of messages retained in history")
    send_timeout: float = Field(default=2.0, description="Seconds allowed for one outbound send before dropping")
    max_message_length: int = Field(default=4000, description="Maximum characters in a chat message")

    @field_validator("history_capacity", "max_message_length")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("send_timeout")
    @classmethod
    def validate_send_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("send_timeout must be greater than 0")
        return v

    model_config = {"env_prefix": "CHAT_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default_factory=detect_environment, description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    log_base: str = Field(default="logs", description="Base log directory")
    rotation_max_size: str = Field(default="10MB", description="Log rotation max size")
    rotation_backup_count: int = Field(default=5, description="Number of backup log files")
    disable_logging: bool = Field(default=False, description="Disable file logging")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate logging environment."""
        valid_environments = ["local", "unit_test", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}, got '{v}'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got '{v}'")
        return v_upper

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}

    def to_legacy_dict(self) -> dict:
        """Return the dict structure expected by logging_config.setup_logging."""
        return {
            "environment": self.environment,
            "level": self.level,
            "log_base": self.log_base,
            "rotation": {
                "max_size": self.rotation_max_size,
                "backup_count": self.rotation_backup_count,
            },
            "disable_logging": self.disable_logging,
        }


class CORSConfig(BaseSettings):
    """CORS configuration; permissive by default."""

    allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    allow_methods: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    allow_headers: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["Content-Type", "Authorization"])

    @field_validator("allow_origins", "allow_methods", "allow_headers", mode="before")
    @classmethod
    def parse_list(cls, v: Any) -> list[str]:
        return _parse_env_list(v)

    model_config = {"env_prefix": "CORS_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Access via get_config().
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}

    def to_legacy_dict(self) -> dict:
        """Flatten to the dict form consumed by setup_logging."""
        return {
            "host": self.server.host,
            "port": self.server.port,
            "database_url": self.database.url,
            "logging": self.logging.to_legacy_dict(),
            "history_capacity": self.chat.history_capacity,
        }
