"""Pytest configuration helpers.

Puts ``backend/`` on `sys.path` so tests can import the ``kataru`` package
without installing it, points settings at throwaway locations, and provides
an in-process fake of the D-ID / xAI / CDN endpoints built on
``httpx.MockTransport``.
"""
import os
import sys
import tempfile
from typing import Any

import httpx
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

os.environ.setdefault("MEDIA_VOLUME", tempfile.mkdtemp(prefix="kataru-media-"))
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")

from kataru.config import Settings  # noqa: E402
from kataru.database import create_engine_for, create_session_factory, init_db  # noqa: E402
from kataru.services.factory import build_orchestrator  # noqa: E402
from kataru.services.job_store import JobStore  # noqa: E402
from kataru.services.storage import LocalObjectStorage  # noqa: E402

DID_HOST = "did.test"
XAI_HOST = "xai.test"
CDN_HOST = "cdn.test"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video"


class FakeProviders:
    """Scriptable stand-in for both providers and the CDN hosting their results.

    Response lists are consumed front to back; the last entry sticks.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.did_submit: list[tuple[int, Any]] = [(201, {"id": "tlk_123", "status": "created"})]
        self.did_status: list[tuple[int, Any]] = [(200, {"id": "tlk_123", "status": "started"})]
        self.did_voices: tuple[int, Any] = (200, [])
        self.xai_submit: list[tuple[int, Any]] = [(200, {"request_id": "req_123"})]
        self.xai_result: list[tuple[int, Any]] = [(202, None)]
        self.video: tuple[int, bytes] = (200, VIDEO_BYTES)
        self.unreachable_hosts: set[str] = set()

    @staticmethod
    def _next(queue: list[tuple[int, Any]]) -> tuple[int, Any]:
        return queue.pop(0) if len(queue) > 1 else queue[0]

    @staticmethod
    def _respond(status: int, body: Any) -> httpx.Response:
        if body is None:
            return httpx.Response(status)
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.unreachable_hosts:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if host == DID_HOST:
            if request.method == "POST" and path == "/talks":
                return self._respond(*self._next(self.did_submit))
            if request.method == "GET" and path.startswith("/talks/"):
                return self._respond(*self._next(self.did_status))
            if request.method == "GET" and path == "/voices":
                return self._respond(*self.did_voices)
        if host == XAI_HOST:
            if request.method == "POST" and path == "/v1/videos/generations":
                return self._respond(*self._next(self.xai_submit))
            if request.method == "GET" and path.startswith("/v1/videos/"):
                return self._respond(*self._next(self.xai_result))
        if host == CDN_HOST:
            status, content = self.video
            return httpx.Response(status, content=content)
        return httpx.Response(404, json={"message": f"no route for {request.method} {request.url}"})

    def requests_to(self, host: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.host == host and (method is None or r.method == method)
        ]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        MEDIA_VOLUME=str(tmp_path / "media"),
        PUBLIC_BASE_URL="http://testserver",
        D_ID_API_URL=f"https://{DID_HOST}",
        D_ID_API_KEY="did-key",
        XAI_API_URL=f"https://{XAI_HOST}",
        XAI_API_KEY="xai-key",
    )


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> JobStore:
    return JobStore(session_factory)


@pytest.fixture
def storage(settings) -> LocalObjectStorage:
    return LocalObjectStorage(settings.MEDIA_VOLUME, settings.PUBLIC_BASE_URL)


@pytest.fixture
def fake() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
async def http_client(fake):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)) as client:
        yield client


@pytest.fixture
def orchestrator(settings, session_factory, storage, http_client):
    orch = build_orchestrator(settings, session_factory, storage=storage, http_client=http_client)
    orch.claim_wait_attempts = 200
    orch.claim_wait_interval = 0.01
    return orch
