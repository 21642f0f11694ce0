"""Test configuration and fixtures."""
import httpx
import pytest
from fastapi.testclient import TestClient

from app import config, tasks
from app.database import init_db
from app.scrapers import ReelPayload, ResolutionFailure


@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Point every test at a fresh SQLite file with push disabled."""
    monkeypatch.setattr(config, "DATABASE_URL", None)
    monkeypatch.setattr(config, "SQLITE_PATH", str(tmp_path / "test.db"))
    monkeypatch.setattr(config, "VAPID_PUBLIC_KEY", None)
    monkeypatch.setattr(config, "VAPID_PRIVATE_KEY", None)
    init_db()
    return config.SQLITE_PATH


def make_payload(shortcode: str = "ABC123", **overrides) -> ReelPayload:
    fields = {
        "type": "video",
        "method": "direct",
        "shortcode": shortcode,
        "source_url": f"https://www.instagram.com/reel/{shortcode}/",
        "video_url": f"https://cdn.example.com/{shortcode}.mp4",
        "thumbnail": f"https://cdn.example.com/{shortcode}.jpg",
        "title": "A reel",
    }
    fields.update(overrides)
    return ReelPayload(**fields)


class FakeResolver:
    """Stands in for the scraper chain inside background tasks."""

    def __init__(self):
        self.calls: list[str] = []
        self.failure: ResolutionFailure | None = None
        self.error: Exception | None = None

    async def __call__(self, source_url: str) -> ReelPayload:
        self.calls.append(source_url)
        if self.error:
            raise self.error
        if self.failure:
            raise self.failure
        shortcode = source_url.rstrip("/").rsplit("/", 1)[-1]
        return make_payload(shortcode, source_url=source_url)


@pytest.fixture(autouse=True)
def resolver(monkeypatch):
    fake = FakeResolver()
    monkeypatch.setattr(tasks, "resolve_reel", fake)
    return fake


@pytest.fixture
def client():
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


def _register(client, username: str, role: str) -> str:
    response = client.post(
        "/api/auth/register",
        json={"username": username, "password": "secret123", "role": role},
    )
    assert response.status_code == 201, response.text
    return response.json()["token"]


@pytest.fixture
def sender_headers(client):
    return {"Authorization": f"Bearer {_register(client, 'sender1', 'sender')}"}


@pytest.fixture
def other_sender_headers(client):
    return {"Authorization": f"Bearer {_register(client, 'sender2', 'sender')}"}


@pytest.fixture
def viewer_headers(client):
    return {"Authorization": f"Bearer {_register(client, 'viewer1', 'viewer')}"}


@pytest.fixture
def mock_http(monkeypatch):
    """Route every httpx.AsyncClient created by the scrapers through a handler."""
    real_client = httpx.AsyncClient
    requests: list[httpx.Request] = []

    def install(handler):
        def recording(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        def factory(*args, **kwargs):
            kwargs["transport"] = httpx.MockTransport(recording)
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)
        return requests

    return install
