"""Configuration loader for the polaroid gateway - loads from environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .state import GatewayConfig


def _optional_timeout(value: str) -> Optional[float]:
    seconds = float(value)
    return seconds if seconds > 0 else None


def load_config_from_env() -> GatewayConfig:
    """
    Load GatewayConfig from environment variables.

    Loads .env file if present and reads configuration values.

    Environment Variables:
        API_BASE_URL: Gateway base URL (default: https://www.runninghub.cn)
        RUNNINGHUB_API_KEY: Gateway API key (required for generation)
        RUNNINGHUB_WEBAPP_ID: Web app that runs the workflow (default: 1912088541617422337)
        RUNNINGHUB_NODE_ID: Node receiving the uploaded image (default: 226)
        REQUEST_TIMEOUT: Per-request timeout in seconds (default: 30)
        RETRY_ATTEMPTS: Total attempts per gateway call (default: 3)
        RETRY_DELAY_MS: Delay between attempts in milliseconds (default: 1000)
        POLL_INTERVAL_MS: Status polling interval in milliseconds (default: 3000)
        POLL_MAX_FAILURES: Consecutive failed polls before giving up (default: 3)
        POLL_TIMEOUT_SECONDS: Overall polling limit, 0 disables it (default: 300)
        STORAGE_TYPE: "file", "memory" or "database" (default: file)
        DATA_DIR: Directory for gallery.json and reviews.json (default: data)
        GALLERY_LIMIT: Maximum saved gallery images (default: 30)
        SESSION_TTL_SECONDS: Seconds a finished workflow session is kept (default: 3600)
        LOCALE: Message locale, "en" or "zh" (default: en)
        APP_ENV: Environment name reported by health checks (default: development)

    Returns:
        GatewayConfig object with values from environment
    """
    load_dotenv()

    return GatewayConfig(
        api_base_url=os.getenv("API_BASE_URL", "https://www.runninghub.cn").rstrip("/"),
        api_key=os.getenv("RUNNINGHUB_API_KEY") or None,
        webapp_id=os.getenv("RUNNINGHUB_WEBAPP_ID", "1912088541617422337"),
        node_id=os.getenv("RUNNINGHUB_NODE_ID", "226"),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30.0")),
        # Retry and polling
        retry_attempts=int(os.getenv("RETRY_ATTEMPTS", "3")),
        retry_delay=float(os.getenv("RETRY_DELAY_MS", "1000")) / 1000.0,
        poll_interval=float(os.getenv("POLL_INTERVAL_MS", "3000")) / 1000.0,
        poll_max_failures=int(os.getenv("POLL_MAX_FAILURES", "3")),
        poll_timeout=_optional_timeout(os.getenv("POLL_TIMEOUT_SECONDS", "300")),
        # Storage settings
        storage_type=os.getenv("STORAGE_TYPE", "file").lower(),
        data_dir=Path(os.getenv("DATA_DIR", "data")),
        gallery_limit=int(os.getenv("GALLERY_LIMIT", "30")),
        session_ttl=float(os.getenv("SESSION_TTL_SECONDS", "3600")),
        locale=os.getenv("LOCALE", "en").lower(),
        environment=os.getenv("APP_ENV", "development"),
    )


def get_config_info(config: Optional[GatewayConfig] = None) -> dict:
    """
    Get current configuration info for debugging.

    Returns:
        Dictionary with current settings; the API key is only reported as set or not set
    """
    if config is None:
        config = load_config_from_env()

    info = config.describe()
    info.update(
        {
            "DATA_DIR": str(config.data_dir),
            "LOCALE": config.locale,
            "POLL_TIMEOUT_SECONDS": str(config.poll_timeout) if config.poll_timeout else "disabled",
        }
    )
    return info
