import logging
from typing import Optional

import httpx

from tracker.config import get_settings
from tracker.models.schemas import Session

logger = logging.getLogger(__name__)


def _auth_headers(token: Optional[str]) -> dict[str, str]:
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def _payload(r: httpx.Response) -> dict:
    """Decode a JSON object body; anything else decodes to an empty dict."""
    try:
        data = r.json()
    except ValueError:
        logger.warning("Non-JSON response from %s", r.request.url)
        return {}
    return data if isinstance(data, dict) else {}


class APIClient:
    """Thin async client for the usage-tracking REST API.

    Every authenticated call takes the Session explicitly and builds its
    bearer header from it. Non-2xx replies raise ``httpx.HTTPStatusError``;
    transport failures raise ``httpx.RequestError``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        health_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.health_timeout = (
            health_timeout if health_timeout is not None else settings.health_timeout
        )
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self._transport,
        )

    # --- Auth ---

    async def login(self, email: str, password: str) -> dict:
        async with self._client() as client:
            r = await client.post(
                f"{self.base_url}/auth/login",
                json={"email": email, "password": password},
            )
            r.raise_for_status()
            return _payload(r)

    async def register(self, name: str, email: str, password: str) -> dict:
        async with self._client() as client:
            r = await client.post(
                f"{self.base_url}/auth/register",
                json={"name": name, "email": email, "password": password},
            )
            r.raise_for_status()
            return _payload(r)

    async def get_profile(self, token: str) -> dict:
        async with self._client() as client:
            r = await client.get(
                f"{self.base_url}/auth/me", headers=_auth_headers(token)
            )
            r.raise_for_status()
            return _payload(r)

    # --- Health ---

    async def health_check(self) -> dict:
        async with self._client(self.health_timeout) as client:
            r = await client.get(f"{self.base_url}/health")
            r.raise_for_status()
            return _payload(r)

    # --- Usage data ---

    async def get_logs(self, session: Session) -> dict:
        async with self._client() as client:
            r = await client.get(
                f"{self.base_url}/logs", headers=_auth_headers(session.token)
            )
            r.raise_for_status()
            return _payload(r)

    async def get_stats(self, session: Session) -> dict:
        async with self._client() as client:
            r = await client.get(
                f"{self.base_url}/logs/stats", headers=_auth_headers(session.token)
            )
            r.raise_for_status()
            return _payload(r)

    # --- AI ---

    async def process_prompt(self, session: Session, prompt: str, model: str) -> dict:
        async with self._client() as client:
            r = await client.post(
                f"{self.base_url}/ai/process",
                json={"prompt": prompt, "model": model},
                headers=_auth_headers(session.token),
            )
            r.raise_for_status()
            return _payload(r)
