from __future__ import annotations

import logging
import os
import sys

import uvicorn

from .app import create_app
from .config_loader import get_config_info, load_config_from_env


def setup_logging() -> None:
    """
    Configure logging for service deployment.

    Logs are formatted with timestamp, logger name, level and message and go
    to stdout so the process supervisor can capture them.
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    # httpx logs every request at INFO; gateway calls are already logged
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main() -> None:
    setup_logging()

    logger = logging.getLogger(__name__)
    logger.info("Starting Polaroid Gateway server")

    config = load_config_from_env()
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8765"))
    logger.info(f"Server configuration: host={host}, port={port}, config={get_config_info(config)}")
    if not config.api_configured:
        logger.warning("RUNNINGHUB_API_KEY is not set; generation requests will be rejected by the gateway")

    uvicorn.run(create_app(config), host=host, port=port)


if __name__ == "__main__":
    main()
