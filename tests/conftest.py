import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from tracker.api_client import APIClient
from tracker.config import Settings
from tracker.services.data_synchronizer import DataSynchronizer
from tracker.services.health_monitor import HealthMonitor
from tracker.services.model_registry import ModelRegistry
from tracker.services.prompt_submitter import PromptSubmitter
from tracker.services.session_manager import SessionManager
from tracker.token_store import TokenStore

API_BASE = "http://testserver/api"
TEST_TOKEN = "test-token"
EPOCH = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_log(
    n: int,
    total_tokens: int = 100,
    cost: float = 0.0002,
    response_time: int = 50,
    model: str = "gpt-3.5-turbo",
    prompt: str = "hello",
) -> dict:
    """A log as the server sends it: camelCase, Mongo-style ``_id``."""
    return {
        "_id": f"log-{n}",
        "timestamp": (EPOCH + timedelta(minutes=n)).isoformat(),
        "modelUsed": model,
        "promptTokens": total_tokens // 2,
        "completionTokens": total_tokens - total_tokens // 2,
        "totalTokens": total_tokens,
        "estimatedCost": cost,
        "responseTime": response_time,
        "prompt": prompt,
    }


class FakeBackend:
    """In-process stand-in for the usage-tracking API.

    The ``*_reply`` attributes override the normal reply of an endpoint so
    tests can inject malformed or failing responses.
    """

    def __init__(self):
        self.email = "ada@example.com"
        self.password = "secret"
        self.user = {"_id": "u1", "email": self.email, "name": "Ada"}
        self.users = {self.email: {"password": self.password, "user": self.user}}
        self.token = TEST_TOKEN
        self.logs: list[dict] = []
        self.health_status = 200
        self.login_reply: dict | None = None
        self.logs_reply: tuple[int, dict | str] | None = None
        self.stats_reply: tuple[int, dict | str] | None = None
        self.process_reply: tuple[int, dict | str] | None = None
        self.stats_offset = 0
        self._hold_logs: asyncio.Event | None = None
        self.logs_held = asyncio.Event()
        self._hold_profile: asyncio.Event | None = None
        self.profile_held = asyncio.Event()
        self.app = self._build_app()

    def add_log(self, **kwargs) -> dict:
        log = make_log(len(self.logs) + 1, **kwargs)
        self.logs.append(log)
        return log

    def hold_next_logs(self) -> asyncio.Event:
        """Park the next GET /logs until the returned event is set."""
        self._hold_logs = asyncio.Event()
        self.logs_held = asyncio.Event()
        return self._hold_logs

    def hold_next_profile(self) -> asyncio.Event:
        """Park the next GET /auth/me until the returned event is set."""
        self._hold_profile = asyncio.Event()
        self.profile_held = asyncio.Event()
        return self._hold_profile

    def stats(self) -> dict:
        count = len(self.logs)
        return {
            "totalTokens": sum(log["totalTokens"] for log in self.logs) + self.stats_offset,
            "totalCost": sum(log["estimatedCost"] for log in self.logs),
            "totalRequests": count,
            "avgResponseTime": (
                sum(log["responseTime"] for log in self.logs) / count if count else 0
            ),
        }

    def _authorized(self, request: Request) -> bool:
        return request.headers.get("authorization") == f"Bearer {self.token}"

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        def reply(override):
            status, body = override
            if isinstance(body, str):
                return PlainTextResponse(body, status_code=status)
            return JSONResponse(body, status_code=status)

        def unauthorized():
            return JSONResponse(
                {"success": False, "message": "Token is not valid"}, status_code=401
            )

        @app.post("/api/auth/login")
        async def login(request: Request):
            body = await request.json()
            if backend.login_reply is not None:
                return backend.login_reply
            account = backend.users.get(body.get("email"))
            if not account or account["password"] != body.get("password"):
                return JSONResponse(
                    {"success": False, "message": "Invalid credentials"}, status_code=401
                )
            return {"success": True, "token": backend.token, "user": account["user"]}

        @app.post("/api/auth/register")
        async def register(request: Request):
            body = await request.json()
            if body["email"] in backend.users:
                return JSONResponse(
                    {"success": False, "message": "User already exists"}, status_code=400
                )
            user = {"_id": f"u{len(backend.users) + 1}", "email": body["email"], "name": body["name"]}
            backend.users[body["email"]] = {"password": body["password"], "user": user}
            return {"success": True, "token": backend.token, "user": user}

        @app.get("/api/auth/me")
        async def me(request: Request):
            if backend._hold_profile is not None:
                gate, backend._hold_profile = backend._hold_profile, None
                backend.profile_held.set()
                await gate.wait()
            if not backend._authorized(request):
                return unauthorized()
            return {"success": True, "user": backend.user}

        @app.get("/api/health")
        async def health():
            if backend.health_status != 200:
                return JSONResponse({"status": "down"}, status_code=backend.health_status)
            return {"status": "ok"}

        @app.get("/api/logs")
        async def logs(request: Request):
            if not backend._authorized(request):
                return unauthorized()
            snapshot = sorted(backend.logs, key=lambda log: log["timestamp"], reverse=True)
            if backend._hold_logs is not None:
                gate, backend._hold_logs = backend._hold_logs, None
                backend.logs_held.set()
                await gate.wait()
            if backend.logs_reply is not None:
                return reply(backend.logs_reply)
            return {"success": True, "data": snapshot}

        @app.get("/api/logs/stats")
        async def stats(request: Request):
            if not backend._authorized(request):
                return unauthorized()
            if backend.stats_reply is not None:
                return reply(backend.stats_reply)
            return {"success": True, "data": backend.stats()}

        @app.post("/api/ai/process")
        async def process(request: Request):
            if not backend._authorized(request):
                return unauthorized()
            body = await request.json()
            if backend.process_reply is not None:
                return reply(backend.process_reply)
            log = backend.add_log(
                total_tokens=len(body["prompt"].split()) + 20,
                model=body["model"],
                prompt=body["prompt"],
            )
            return {"success": True, "data": {"response": "ok", "log": log}}

        return app


class RecordingTransport(httpx.AsyncBaseTransport):
    """Routes requests into the fake backend, recording each one.

    ``offline`` (or a path in ``unreachable``) makes the request fail the
    way a refused connection does.
    """

    def __init__(self, app: FastAPI):
        self._inner = httpx.ASGITransport(app=app)
        self.requests: list[tuple[str, str]] = []
        self.offline = False
        self.unreachable: set[str] = set()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        if self.offline or path in self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        return await self._inner.handle_async_request(request)

    def count(self, path: str) -> int:
        return sum(1 for _, p in self.requests if p == path)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def transport(backend):
    return RecordingTransport(backend.app)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        backend_url=API_BASE,
        token_path=str(tmp_path / "session" / "token"),
        request_timeout=5.0,
        health_timeout=5.0,
    )


@pytest.fixture
def api_client(test_settings, transport):
    return APIClient(
        base_url=test_settings.backend_url,
        timeout=test_settings.request_timeout,
        health_timeout=test_settings.health_timeout,
        transport=transport,
    )


@pytest.fixture
def token_store(test_settings):
    return TokenStore(test_settings.resolved_token_path)


@pytest.fixture
def registry(test_settings):
    return ModelRegistry(test_settings)


@pytest.fixture
def sessions(api_client, token_store):
    return SessionManager(api_client, token_store)


@pytest.fixture
def health(api_client):
    return HealthMonitor(api_client)


@pytest.fixture
def synchronizer(api_client, health, sessions):
    return DataSynchronizer(api_client, health, sessions)


@pytest.fixture
def submitter(api_client, synchronizer, health, sessions, registry):
    return PromptSubmitter(api_client, synchronizer, health, sessions, registry)


@pytest_asyncio.fixture
async def logged_in(sessions, backend, transport):
    session = await sessions.login(backend.email, backend.password)
    transport.requests.clear()
    return session
