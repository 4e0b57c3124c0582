"""
Backend Health Probe

Gates every remote read and write. A probe is a short GET of the
resource's health endpoint; anything but a timely 2xx means "unavailable".
"""

from typing import Optional

import httpx
import structlog

from finsync.services.backend.client import BackendClient, BackendClientError

logger = structlog.get_logger(__name__)


class HealthProbe:
    """Answers "can we talk to the backend right now?" without ever raising."""

    def __init__(self, client: BackendClient, timeout: Optional[float] = None):
        self._client = client
        self._timeout = timeout or client.settings.health_timeout_seconds
        self.last_result: Optional[bool] = None

    async def is_available(self, resource: Optional[str] = None) -> bool:
        try:
            await self._client.health(resource, timeout=self._timeout)
        except (BackendClientError, httpx.HTTPError, httpx.InvalidURL) as e:
            logger.info("backend_unavailable", resource=resource, error=str(e))
            self.last_result = False
            return False
        self.last_result = True
        return True
