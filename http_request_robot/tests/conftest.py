"""
Shared fixtures for the HTTP Request Robot tests.

Outbound HTTP is served by ``httpx.MockTransport`` handlers that record
every request they receive; databases are per-test SQLite files.
"""

import json

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.orm import sessionmaker

from http_request_robot.config import Settings
from http_request_robot.database import Base, build_engine, init_db


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def requests_to(self, fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if fragment in str(r.url)]


def json_response(data, status_code: int = 200, **kwargs) -> httpx.Response:
    return httpx.Response(status_code, json=data, **kwargs)


def default_handler(request: httpx.Request) -> httpx.Response:
    """Echo outbound requests; acknowledge callbacks."""
    if request.url.path.endswith("bizproc.event.send"):
        return json_response({"result": True})
    body = request.content.decode() if request.content else ""
    try:
        parsed = json.loads(body) if body else None
    except json.JSONDecodeError:
        parsed = body
    return json_response({"method": request.method, "json": parsed, "url": str(request.url)})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return RecordingTransport(default_handler)


@pytest_asyncio.fixture
async def client(transport):
    async with httpx.AsyncClient(transport=transport) as async_client:
        yield async_client


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path}/robot.db",
        client_id="app.client",
        client_secret="secret",
        quota_enabled=False,
        log_json=False,
    )


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database."""
    engine = build_engine(f"sqlite:///{tmp_path}/robot.db")
    init_db(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


def make_invocation(**overrides):
    """A well-formed invocation body with no auth injection or mappings."""
    payload = {
        "event_token": "evt-123",
        "properties": {
            "url": "https://httpbin.example/post",
            "method": "POST",
            "bodyType": "raw",
            "rawBody": '{"x":1}',
            "headers": [{"key": "Content-Type", "value": "application/json"}],
        },
        "auth": {
            "domain": "portal.bitrix24.com",
            "access_token": "portal-token",
            "member_id": "member-1",
        },
        "document_id": ["crm", "CCrmDocumentDeal", "DEAL_1"],
    }
    payload.update(overrides)
    return payload
