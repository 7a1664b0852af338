import asyncio
import logging
from datetime import date

from tracker.api_client import APIClient
from tracker.config import Settings, get_settings
from tracker.models.schemas import (
    ApiTrace,
    ConnectivityState,
    PromptRequest,
    RegistrationForm,
    Session,
    SyncResult,
)
from tracker.services.data_synchronizer import DataSynchronizer
from tracker.services.health_monitor import HealthMonitor
from tracker.services.model_registry import ModelRegistry
from tracker.services.prompt_submitter import PromptSubmitter
from tracker.services.session_manager import SessionManager
from tracker.services.view_projector import export_filename, serialize_csv
from tracker.token_store import TokenStore

logger = logging.getLogger(__name__)


class TrackerController:
    """Everything the dashboard needs, behind one object."""

    def __init__(
        self,
        api_client: APIClient,
        sessions: SessionManager,
        health: HealthMonitor,
        synchronizer: DataSynchronizer,
        submitter: PromptSubmitter,
        registry: ModelRegistry,
    ):
        self.api_client = api_client
        self.sessions = sessions
        self.health = health
        self.synchronizer = synchronizer
        self.submitter = submitter
        self.registry = registry

    @property
    def backend_url(self) -> str:
        return self.api_client.base_url

    @property
    def session(self) -> Session:
        return self.sessions.session

    @property
    def connectivity(self) -> ConnectivityState:
        return self.health.state

    @property
    def result(self) -> SyncResult:
        return self.synchronizer.result

    @property
    def controls_disabled(self) -> bool:
        return not self.submitter.can_submit

    async def start(self) -> Session:
        """Restore the stored session and probe the backend, then load data."""
        session, _ = await asyncio.gather(
            self.sessions.restore(),
            self.health.check_health(),
        )
        if session.is_authenticated:
            await self.synchronizer.sync()
        return session

    async def login(self, email: str, password: str) -> Session:
        session = await self.sessions.login(email, password)
        await self.synchronizer.sync()
        return session

    async def register(self, profile: RegistrationForm) -> Session:
        session = await self.sessions.register(profile, self.health.state)
        await self.synchronizer.sync()
        return session

    def logout(self):
        self.sessions.logout()
        self.synchronizer.reset()

    async def refresh(self) -> SyncResult:
        logger.info("Manual refresh triggered")
        return await self.synchronizer.sync()

    async def submit(self, text: str, model_id: str) -> SyncResult | None:
        return await self.submitter.submit(PromptRequest(text=text, model_id=model_id))

    def export_csv(self, day: date) -> tuple[str, str]:
        return export_filename(day), serialize_csv(self.result.logs)

    def debug_trace(self) -> ApiTrace | None:
        """Whichever of the sync and prompt traces is newer."""
        traces = [
            t for t in (self.synchronizer.last_trace, self.submitter.last_trace) if t is not None
        ]
        return max(traces, key=lambda t: t.timestamp, default=None)


def build_controller(settings: Settings | None = None, transport=None) -> TrackerController:
    settings = settings or get_settings()
    api_client = APIClient(
        base_url=settings.backend_url,
        timeout=settings.request_timeout,
        health_timeout=settings.health_timeout,
        transport=transport,
    )
    registry = ModelRegistry(settings)
    sessions = SessionManager(api_client, TokenStore(settings.resolved_token_path))
    health = HealthMonitor(api_client)
    synchronizer = DataSynchronizer(api_client, health, sessions)
    submitter = PromptSubmitter(api_client, synchronizer, health, sessions, registry)
    return TrackerController(api_client, sessions, health, synchronizer, submitter, registry)
