"""
Entry point for the chat relay server.

Run with `chatrelay-server`, or `uvicorn chatrelay.main:app`.
"""

import uvicorn

from .app.factory import create_app
from .config import get_config
from .logging_config import get_logger, setup_logging

config = get_config()
setup_logging(config.to_legacy_dict())

logger = get_logger(__name__)

app = create_app(config)


def main() -> None:
    """Run the server with the configured host and port."""
    logger.info("Starting uvicorn", host=config.server.host, port=config.server.port)
    uvicorn.run(
        "chatrelay.main:app",
        host=config.server.host,
        port=config.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
