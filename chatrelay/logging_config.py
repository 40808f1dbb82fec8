"""
Structlog-based logging configuration for the chat relay server.

This module provides a configurable logging system that supports multiple
environments (unit_test, local, production) with separate log files for
different categories of events.

All modules MUST use get_logger() from this module instead of
logging.getLogger(). Standard Python loggers do not accept the keyword
context our structlog-based calls pass.

CORRECT USAGE:
    from ..logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Message broadcast", author="alice", recipients=3)
"""

import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Logger name prefixes routed to each category file
LOG_CATEGORIES = {
    "server": ["chatrelay.app", "chatrelay.main", "chatrelay.container", "uvicorn"],
    "authentication": ["chatrelay.auth"],
    "realtime": ["chatrelay.realtime", "chatrelay.api.real_time"],
    "persistence": ["chatrelay.persistence", "chatrelay.database", "aiosqlite"],
    "access": ["chatrelay.middleware"],
}


def _resolve_log_base(log_base: str) -> Path:
    """
    Resolve log_base path to absolute path relative to project root.

    Args:
        log_base: Relative or absolute path to log directory

    Returns:
        Absolute path to log directory
    """
    log_path = Path(log_base)
    if log_path.is_absolute():
        return log_path

    current_dir = Path.cwd()
    for parent in [current_dir] + list(current_dir.parents):
        if (parent / "pyproject.toml").exists():
            return parent / log_path

    return current_dir / log_path


def _rotate_log_files(env_log_dir: Path) -> None:
    """
    Rotate existing log files by renaming them with timestamps.

    When the server starts, non-empty log files from the previous run are
    renamed so each server session starts with clean files.
    """
    if not env_log_dir.exists():
        return

    timestamp = datetime.now(UTC).strftime("%Y_%m_%d_%H%M%S")
    for log_file in env_log_dir.glob("*.log"):
        if log_file.stat().st_size == 0:
            continue
        rotated_path = log_file.parent / f"{log_file.stem}.log.{timestamp}"
        try:
            log_file.rename(rotated_path)
        except OSError as e:
            get_logger("chatrelay.logging").warning("Could not rotate log file", name=log_file.name, error=str(e))


def detect_environment() -> str:
    """
    Detect the current environment based on various indicators.

    Returns:
        Environment name: "unit_test", "local", or "production"
    """
    if "pytest" in sys.modules or "pytest" in sys.argv[0]:
        return "unit_test"

    env = os.getenv("CHATRELAY_ENV")
    if env:
        return env

    return "local"


def _parse_max_bytes(max_size: str | int) -> int:
    """Convert a size like "10MB" into bytes."""
    if not isinstance(max_size, str):
        return max_size
    if max_size.endswith("MB"):
        return int(max_size[:-2]) * 1024 * 1024
    if max_size.endswith("KB"):
        return int(max_size[:-2]) * 1024
    if max_size.endswith("B"):
        return int(max_size[:-1])
    return int(max_size)


def configure_structlog(
    environment: str | None = None,
    log_level: str = "INFO",
    log_config: dict[str, Any] | None = None,
) -> None:
    """
    Configure Structlog based on environment.

    Args:
        environment: Environment name (auto-detected if None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_config: Logging configuration dictionary
    """
    if environment is None:
        environment = detect_environment()

    processors = [
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "logger", "event"]),
    ]

    if log_config and not log_config.get("disable_logging", False):
        _setup_file_logging(environment, log_config, log_level)
    elif not logging.getLogger().handlers:
        logging.basicConfig(
            stream=sys.stdout,
            level=getattr(logging, str(log_level).upper(), logging.INFO),
            format="%(message)s",
        )

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        # Later configuration (file handlers) must apply to loggers created at import time.
        cache_logger_on_first_use=False,
    )


def _setup_file_logging(environment: str, log_config: dict[str, Any], log_level: str) -> None:
    """Set up file logging handlers for different log categories."""
    log_base = _resolve_log_base(log_config.get("log_base", "logs"))
    env_log_dir = log_base / environment
    env_log_dir.mkdir(parents=True, exist_ok=True)

    _rotate_log_files(env_log_dir)

    level = getattr(logging, str(log_level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    rotation_config = log_config.get("rotation", {})
    max_bytes = _parse_max_bytes(rotation_config.get("max_size", "10MB"))
    backup_count = rotation_config.get("backup_count", 5)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    def _handler(path: Path, handler_level: int) -> RotatingFileHandler:
        handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        return handler

    for log_file, prefixes in LOG_CATEGORIES.items():
        handler = _handler(env_log_dir / f"{log_file}.log", logging.DEBUG)
        for prefix in prefixes:
            category_logger = logging.getLogger(prefix)
            category_logger.addHandler(handler)
            category_logger.setLevel(level)
            # Propagate so the root handlers still see category records
            category_logger.propagate = True

    root_logger.addHandler(_handler(env_log_dir / "console.log", level))
    root_logger.addHandler(_handler(env_log_dir / "errors.log", logging.WARNING))


def get_logger(name: str) -> BoundLogger:
    """
    Get a Structlog logger with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured Structlog logger instance
    """
    return structlog.get_logger(name)


def bind_request_context(correlation_id: str, **kwargs: Any) -> None:
    """Bind request-scoped values so every log entry in this context carries them."""
    context_vars = {"correlation_id": correlation_id, **kwargs}
    bind_contextvars(**{k: v for k, v in context_vars.items() if v is not None})


def clear_request_context() -> None:
    """Clear the current request context from logging."""
    clear_contextvars()


def setup_logging(config: dict[str, Any]) -> None:
    """
    Set up logging configuration based on server config.

    Args:
        config: Server configuration dictionary with a "logging" section
    """
    logging_config = config.get("logging", {})
    environment = logging_config.get("environment") or detect_environment()
    log_level = logging_config.get("level", "INFO")

    if logging_config.get("disable_logging", False):
        configure_structlog(environment, log_level, {"disable_logging": True})
        return

    configure_structlog(environment, log_level, logging_config)
    _configure_uvicorn_logging()

    get_logger("chatrelay.logging").info(
        "Logging system initialized",
        environment=environment,
        log_level=log_level,
        log_base=logging_config.get("log_base", "logs"),
    )


def _configure_uvicorn_logging() -> None:
    """Route uvicorn's loggers through the root handlers configured above."""
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
