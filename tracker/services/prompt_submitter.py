import logging

import httpx

from tracker.api_client import APIClient
from tracker.errors import (
    ConnectivityError,
    SubmissionError,
    ValidationError,
    describe_http_error,
    message_from_payload,
)
from tracker.models.schemas import ApiTrace, PromptRequest, SyncResult
from tracker.services.data_synchronizer import DataSynchronizer
from tracker.services.health_monitor import HealthMonitor
from tracker.services.model_registry import ModelRegistry
from tracker.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

PROCESSING_FAILED = "AI processing failed"


class PromptSubmitter:
    """Sends a prompt for processing, then resyncs logs and stats.

    ``draft`` mirrors the prompt input: cleared after a successful
    submission, kept as entered after a failed one so it can be retried.
    """

    def __init__(
        self,
        api_client: APIClient,
        synchronizer: DataSynchronizer,
        health_monitor: HealthMonitor,
        sessions: SessionManager,
        registry: ModelRegistry,
    ):
        self._api = api_client
        self._sync = synchronizer
        self._health = health_monitor
        self._sessions = sessions
        self._registry = registry
        self._submitting = False
        self.draft = ""
        self.last_trace: ApiTrace | None = None

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def can_submit(self) -> bool:
        return not (
            self._health.is_disconnected or self._submitting or self._sync.is_syncing
        )

    async def submit(self, request: PromptRequest) -> SyncResult | None:
        if not request.text.strip():
            return None
        if request.model_id not in self._registry:
            raise ValidationError(f"Unknown model: {request.model_id}")
        if self._health.is_disconnected:
            raise ConnectivityError("Backend server is disconnected. Prompts cannot be sent.")
        if self._submitting or self._sync.is_syncing:
            raise SubmissionError("Please wait for the current request to finish.")

        self.draft = request.text
        self._submitting = True
        try:
            logger.info("Sending prompt to %s", request.model_id)
            data = await self._process(request)
            self.last_trace = ApiTrace(process=data)
            # Reload everything so stats reflect the server's own cost figures
            result = await self._sync.sync()
        finally:
            self._submitting = False

        self.draft = ""
        return result

    async def _process(self, request: PromptRequest) -> dict:
        try:
            data = await self._api.process_prompt(
                self._sessions.session, request.text, request.model_id
            )
        except httpx.HTTPError as exc:
            message = describe_http_error(exc, PROCESSING_FAILED)
            self._record_failure(message)
            raise SubmissionError(message) from exc

        if data.get("success") is not True:
            message = message_from_payload(data, PROCESSING_FAILED)
            self._record_failure(message, data)
            raise SubmissionError(message)
        return data

    def _record_failure(self, message: str, data: dict | None = None):
        logger.error("Error processing prompt: %s", message)
        error = SubmissionError(message).to_dict()
        self.last_trace = ApiTrace(process=data, error=error)
