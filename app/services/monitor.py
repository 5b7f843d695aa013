"""
Live match monitoring: telemetry ingestion wired to the database, and the
appliance polling loop when credentials are configured.
"""

import asyncio
import logging
from typing import Dict, Optional

from app.models.schemas import DeviceInfo, MatchInfo
from app.services.database import DatabaseService, get_db_service
from app.utils.config import get_app_config, get_extrahop_credentials
from crucible.config import Config
from crucible.extrahop import ExtrahopClient, RequestRateLimiter
from crucible.ingestion import PollingLoop, SessionReport, TelemetryIngestor

logger = logging.getLogger(__name__)


class MatchMonitor:
    """
    Owns the TelemetryIngestor and the PollingLoop of the web service.

    Session ids of the ingestor are match ids, so its events and observations
    land in the match's rows. Without appliance credentials the monitor still
    runs; matches are then fed through the metrics endpoint only.
    """

    def __init__(
        self,
        db_service: Optional[DatabaseService] = None,
        config: Optional[Config] = None,
        client: Optional[ExtrahopClient] = None,
    ):
        """
        Args:
            db_service: Service database (injection dépendance)
            config: Classifier configuration
            client: Appliance client; built from the environment when None
        """
        self.db_service = db_service or get_db_service()
        self.config = config or get_app_config()
        self.ingestor = TelemetryIngestor.from_config(
            self.config,
            sink=self.db_service.record_session_event,
            observation_sink=self.db_service.record_observation,
        )

        self.client = client
        if self.client is None:
            credentials = get_extrahop_credentials(self.config)
            if credentials:
                api_url, api_key = credentials
                self.client = ExtrahopClient(
                    api_url,
                    api_key,
                    timeout=float(self.config.get("extrahop.timeout_seconds", 30)),
                    rate_limiter=RequestRateLimiter(
                        max_requests=int(self.config.get("extrahop.max_requests_per_minute", 100)),
                        window_seconds=60,
                    ),
                )

        self.polling: Optional[PollingLoop] = None
        if self.client is not None:
            self.polling = PollingLoop(
                self.client,
                self.ingestor,
                interval=float(self.config.get("ingestion.poll_interval_seconds", 1.0)),
            )

        # One writer per match for the metrics and end endpoints
        self._match_locks: Dict[int, asyncio.Lock] = {}

        self.is_running = False

    def match_lock(self, match_id: int) -> asyncio.Lock:
        lock = self._match_locks.get(match_id)
        if lock is None:
            lock = self._match_locks[match_id] = asyncio.Lock()
        return lock

    @property
    def polling_enabled(self) -> bool:
        return self.polling is not None

    async def start(self):
        """Démarre le polling et reprend le suivi des matchs en cours."""
        if self.is_running:
            return
        self.is_running = True

        if self.polling is None:
            logger.info("Appliance credentials not configured, polling disabled")
            return

        for match in await self.db_service.list_active_matches():
            device = await self.db_service.get_device(match.device_id)
            if device is not None:
                self.track(match, device)

        await self.polling.start()

    async def stop(self):
        if not self.is_running:
            return
        self.is_running = False

        if self.polling is not None:
            await self.polling.stop()
        if self.client is not None:
            await self.client.aclose()

    def track(self, match: MatchInfo, device: DeviceInfo) -> bool:
        """
        Poll the device of a match.

        Returns:
            True if the device is now polled for this match
        """
        if self.polling is None or device.extrahop_device_id is None:
            return False
        self.polling.register(device.extrahop_device_id, session_id=str(match.id))
        return True

    async def release(self, match: MatchInfo, device: Optional[DeviceInfo] = None) -> Optional[SessionReport]:
        """
        Stop polling for a match and close its ingestion session.

        Returns:
            SessionReport of the ingested samples, or None if none were ingested
        """
        if self.polling is not None and device is not None and device.extrahop_device_id is not None:
            if self.polling.sessions.get(device.extrahop_device_id) == str(match.id):
                self.polling.unregister(device.extrahop_device_id)
        return await self.ingestor.end_session(str(match.id))

    @property
    def active_sessions(self) -> int:
        return len(self.ingestor.active_sessions)


# Singleton instance
_monitor: Optional[MatchMonitor] = None


def get_monitor() -> MatchMonitor:
    """
    Retourne l'instance singleton du MatchMonitor.
    """
    global _monitor
    if _monitor is None:
        _monitor = MatchMonitor()
    return _monitor
