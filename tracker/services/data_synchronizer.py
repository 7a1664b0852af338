import asyncio
import logging

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tracker.api_client import APIClient
from tracker.errors import ConnectivityError, SyncError, describe_http_error, message_from_payload
from tracker.models.schemas import AggregateStats, ApiTrace, SyncResult, UsageLog
from tracker.services.health_monitor import HealthMonitor
from tracker.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

BACKEND_DOWN = "Backend server is not responding. Please check if the server is running."

_LOGS_ADAPTER = TypeAdapter(list[UsageLog])


class DataSynchronizer:
    """Fetches logs and stats as one unit and publishes the latest result.

    Calls may overlap (a manual refresh while the initial load is still in
    flight). Each call takes a generation number and only the most recently
    started call may publish; an older call that finishes later is returned
    to its caller but never replaces ``result``.
    """

    def __init__(
        self,
        api_client: APIClient,
        health_monitor: HealthMonitor,
        sessions: SessionManager,
    ):
        self._api = api_client
        self._health = health_monitor
        self._sessions = sessions
        self._generation = 0
        self._in_flight = 0
        self.result = SyncResult()
        self.last_trace: ApiTrace | None = None

    @property
    def is_syncing(self) -> bool:
        return self._in_flight > 0

    async def sync(self) -> SyncResult:
        self._generation += 1
        generation = self._generation
        self._in_flight += 1
        try:
            result, trace = await self._run(generation)
        finally:
            self._in_flight -= 1

        if generation != self._generation:
            logger.info(
                "Discarding sync #%d; sync #%d started after it", generation, self._generation
            )
            return result

        self.result = result
        self.last_trace = trace
        if result.ok:
            logger.info("Loaded %d log entries", len(result.logs))
        else:
            logger.error("Sync #%d failed: %s", generation, result.error)
        return result

    def reset(self):
        """Forget the published view, e.g. after logout."""
        self._generation += 1
        self.result = SyncResult(generation=self._generation)
        self.last_trace = None

    async def _run(self, generation: int) -> tuple[SyncResult, ApiTrace | None]:
        connectivity = await self._health.check_health()
        if connectivity.is_disconnected:
            return SyncResult.failed(ConnectivityError(BACKEND_DOWN), generation), None

        session = self._sessions.session
        logs_outcome, stats_outcome = await asyncio.gather(
            self._fetch("logs", self._api.get_logs(session)),
            self._fetch("stats", self._api.get_stats(session)),
            return_exceptions=True,
        )
        for outcome in (logs_outcome, stats_outcome):
            if isinstance(outcome, BaseException) and not isinstance(outcome, SyncError):
                raise outcome

        logs_payload = None if isinstance(logs_outcome, SyncError) else logs_outcome
        stats_payload = None if isinstance(stats_outcome, SyncError) else stats_outcome
        try:
            for outcome in (logs_outcome, stats_outcome):
                if isinstance(outcome, SyncError):
                    raise outcome
            logs = self._decode("logs", _LOGS_ADAPTER.validate_python, logs_payload.get("data") or [])
            stats = self._decode("stats", AggregateStats.model_validate, stats_payload.get("data"))
        except SyncError as exc:
            trace = ApiTrace(logs=logs_payload, stats=stats_payload, error=exc.to_dict())
            return SyncResult.failed(exc, generation), trace

        if stats.total_tokens != sum(log.total_tokens for log in logs):
            logger.warning(
                "Stats report %d tokens but logs sum to %d",
                stats.total_tokens,
                sum(log.total_tokens for log in logs),
            )
        trace = ApiTrace(logs=logs_payload, stats=stats_payload)
        return SyncResult(logs=logs, stats=stats, generation=generation), trace

    async def _fetch(self, endpoint: str, call) -> dict:
        fallback = f"Invalid response format from {endpoint} API"
        try:
            payload = await call
        except httpx.HTTPError as exc:
            logger.error("%s API error: %s", endpoint.capitalize(), exc)
            raise SyncError(endpoint, describe_http_error(exc, fallback)) from exc
        if payload.get("success") is not True:
            raise SyncError(endpoint, message_from_payload(payload, fallback))
        return payload

    def _decode(self, endpoint: str, validate, data):
        try:
            return validate(data)
        except PydanticValidationError as exc:
            logger.error("Malformed %s payload: %s", endpoint, exc)
            raise SyncError(endpoint, f"Malformed data from {endpoint} API") from exc
