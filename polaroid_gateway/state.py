from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import httpx

from .gallery import GalleryRecorder
from .gateway_client import GatewayClient
from .reviews import ReviewStore
from .task_client import TaskClient, WorkflowSession

logger = logging.getLogger(__name__)


@dataclass
class GatewayConfig:
    # Remote gateway
    api_base_url: str = "https://www.runninghub.cn"
    api_key: Optional[str] = None
    webapp_id: str = "1912088541617422337"
    node_id: str = "226"
    request_timeout: float = 30.0
    # Retry and polling
    retry_attempts: int = 3
    retry_delay: float = 1.0
    poll_interval: float = 3.0
    poll_max_failures: int = 3
    poll_timeout: Optional[float] = 300.0
    # Storage settings
    storage_type: str = "file"  # "file" or "memory"/"database"
    data_dir: Path = Path("data")
    gallery_limit: int = 30
    # Finished workflow sessions are dropped this many seconds after they end
    session_ttl: float = 3600.0
    # Presentation
    locale: str = "en"
    environment: str = "development"

    def resolved_data_dir(self) -> Path:
        path = self.data_dir.resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def api_configured(self) -> bool:
        return bool(self.api_key)

    def describe(self) -> Dict[str, Optional[str]]:
        """Configuration summary safe to log or return; the API key is only reported as present."""
        return {
            "API_BASE_URL": self.api_base_url,
            "RUNNINGHUB_API_KEY": "set" if self.api_key else "not set",
            "RUNNINGHUB_WEBAPP_ID": self.webapp_id,
            "RUNNINGHUB_NODE_ID": self.node_id,
            "STORAGE_TYPE": self.storage_type,
            "APP_ENV": self.environment,
        }


@dataclass
class GatewayState:
    config: GatewayConfig
    gateway: GatewayClient
    recorder: GalleryRecorder
    reviews: ReviewStore
    task_client: TaskClient
    sessions: Dict[str, WorkflowSession] = field(default_factory=dict)
    http_transport: Optional[httpx.AsyncBaseTransport] = None

    def prune_sessions(self) -> List[str]:
        """Drop sessions whose workflow finished more than ``session_ttl`` seconds ago."""
        now = self.task_client.clock.monotonic()
        expired = []
        for session_id, session in self.sessions.items():
            handle = session.current
            if handle is None or handle.finished_at is None:
                continue
            if now - handle.finished_at >= self.config.session_ttl:
                expired.append(session_id)
        for session_id in expired:
            del self.sessions[session_id]
        if expired:
            logger.info(f"Expired {len(expired)} finished workflow sessions, {len(self.sessions)} remain")
        return expired
