import logging
from datetime import datetime, timezone

from tracker.api_client import APIClient
from tracker.models.schemas import ConnectivityState, ConnectivityStatus

logger = logging.getLogger(__name__)


class HealthMonitor:
    def __init__(self, api_client: APIClient):
        self._api = api_client
        self.state = ConnectivityState()

    async def check_health(self) -> ConnectivityState:
        """Probe the backend once. Never raises: every failure means disconnected."""
        try:
            data = await self._api.health_check()
            status = ConnectivityStatus.CONNECTED
            logger.info("Backend connected: %s", data)
        except Exception as exc:
            status = ConnectivityStatus.DISCONNECTED
            logger.warning("Backend connection failed: %s", exc)

        self.state = ConnectivityState(status=status, last_checked_at=datetime.now(timezone.utc))
        return self.state

    @property
    def is_disconnected(self) -> bool:
        return self.state.is_disconnected
