#!/usr/bin/env python3
"""FastAPI server runner."""

import structlog
import uvicorn

from portal_core.api.app import create_app
from portal_core.config.loader import load_config
from portal_core.logging.setup import configure_from

logger = structlog.get_logger()


def main():
    """Run the FastAPI server."""
    config = load_config()
    configure_from(config.logging)

    logger.info("Starting FastAPI server", host=config.api.host, port=config.api.port)

    try:
        uvicorn.run(
            create_app(config),
            host=config.api.host,
            port=config.api.port,
            log_config=None  # Use our structlog setup
        )
    except Exception as e:
        logger.error("Failed to start server", error=str(e))
        raise


if __name__ == "__main__":
    main()
