"""
Pytest fixtures shared across all test modules.

Registry service tests use an in-memory SQLite database with StaticPool so
all connections share a single in-memory DB.
Client core tests talk to either a scripted MockRegistry (httpx.MockTransport)
or the real FastAPI app through httpx.ASGITransport, and to a FakePlatform
standing in for the browser's push machinery.
"""

import asyncio
import json
import os
import re
from datetime import datetime, timedelta, timezone

# Set env vars BEFORE any pushsync module is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-min-32-chars-long!!"
os.environ["ALGORITHM"] = "HS256"
os.environ["REDIS_URL"] = ""
os.environ["VAPID_PUBLIC_KEY"] = ""
os.environ["VAPID_PRIVATE_KEY"] = ""
os.environ["SMTP_HOST"] = ""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pushsync.client.platform import PushPlatform  # noqa: E402
from pushsync.client.registry import DeliveryRegistryClient  # noqa: E402
from pushsync.core.events import PermissionState  # noqa: E402
from pushsync.core.keys import encode_server_key  # noqa: E402
from pushsync.core.security import create_access_token  # noqa: E402
from pushsync.database import Base, build_engine, get_db, init_db  # noqa: E402
from pushsync.main import app  # noqa: E402
from pushsync.models.user import User  # noqa: E402
from pushsync.schemas.preference import NotificationPreference  # noqa: E402
from pushsync.schemas.push import PushKeys, PushSubscription  # noqa: E402

# 65-byte uncompressed P-256 point, the shape real VAPID public keys have
TEST_VAPID_KEY = encode_server_key(b"\x04" + bytes(range(1, 65)))

# Single shared in-memory SQLite engine. StaticPool makes all
# connections share the same DB instance.
engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create tables before each test, drop after."""
    init_db(engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def override_db(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(override_db):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def user(db) -> User:
    return make_user(db, "testuser", "test@example.com")


@pytest.fixture()
def headers(user) -> dict:
    return auth_headers_for(user)


@pytest.fixture()
def vapid(monkeypatch):
    """Configure the registry service with a VAPID key pair."""
    from pushsync.config import settings

    monkeypatch.setattr(settings, "VAPID_PUBLIC_KEY", TEST_VAPID_KEY)
    monkeypatch.setattr(settings, "VAPID_PRIVATE_KEY", "test-private-key")
    return TEST_VAPID_KEY


@pytest.fixture()
def asgi_registry(override_db, user) -> DeliveryRegistryClient:
    """A real DeliveryRegistryClient wired to the FastAPI app in-process."""
    return DeliveryRegistryClient(
        base_url="http://testserver/api",
        token=create_access_token(user.id),
        transport=httpx.ASGITransport(app=app),
    )


@pytest.fixture()
def mock_registry() -> "MockRegistry":
    return MockRegistry()


@pytest.fixture()
def platform() -> "FakePlatform":
    return FakePlatform()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_user(db, username: str, email: str) -> User:
    u = User(username=username, email=email)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def notification_json(nid: int, *, kind="system", minutes_ago: int = 0, is_read=False, title=None) -> dict:
    created = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return {
        "id": nid,
        "kind": kind,
        "title": title or f"Notification {nid}",
        "body": "body",
        "isRead": is_read,
        "createdAt": created.isoformat(),
        "priority": "normal",
    }


class FakePlatform(PushPlatform):
    """In-memory stand-in for a browser's Notification + PushManager APIs."""

    def __init__(
        self,
        supported: bool = True,
        permission: PermissionState = PermissionState.DEFAULT,
        prompt_answer: PermissionState = PermissionState.GRANTED,
    ) -> None:
        self.supported = supported
        self.permission = permission
        self.prompt_answer = prompt_answer
        self.channel: PushSubscription | None = None
        self.opened_with: list[bytes] = []
        self.user_visible_only: bool | None = None
        self.close_calls = 0
        self.prompts = 0
        self.query_error: Exception | None = None
        self.open_error: Exception | None = None
        self.close_error: Exception | None = None
        self._counter = 0

    def is_supported(self) -> bool:
        return self.supported

    async def get_permission(self) -> PermissionState:
        if self.query_error:
            raise self.query_error
        return self.permission

    async def request_permission(self) -> PermissionState:
        self.prompts += 1
        if self.permission is PermissionState.DEFAULT:
            self.permission = self.prompt_answer
        return self.permission

    async def open_channel(self, application_server_key: bytes, *, user_visible_only: bool = True) -> PushSubscription:
        if self.open_error:
            raise self.open_error
        self.opened_with.append(application_server_key)
        self.user_visible_only = user_visible_only
        self._counter += 1
        self.channel = PushSubscription(
            endpoint=f"https://push.example.test/send/device-{self._counter}",
            keys=PushKeys(p256dh="BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u", auth="tBHItJI5svbpez7KI4CCXg"),
        )
        return self.channel

    async def close_channel(self) -> bool:
        self.close_calls += 1
        if self.close_error:
            raise self.close_error
        had_channel = self.channel is not None
        self.channel = None
        return had_channel

    async def get_active_channel(self) -> PushSubscription | None:
        if self.query_error:
            raise self.query_error
        return self.channel


class MockRegistry:
    """Scripted registry behind httpx.MockTransport.

    Records every request, can fail or hold individual routes, and keeps just
    enough state (preferences, notifications) to answer like the real one.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.vapid: dict = {"publicKey": TEST_VAPID_KEY, "available": True}
        self.preferences: dict = NotificationPreference().model_dump(by_alias=True, mode="json")
        self.notifications: list[dict] = []
        self._failures: dict[tuple[str, str], Exception | int] = {}
        self._gates: dict[tuple[str, str], asyncio.Event] = {}
        self._arrivals: dict[tuple[str, str], asyncio.Event] = {}
        self._answer_on_arrival: set[tuple[str, str]] = set()
        self.client = DeliveryRegistryClient(
            base_url="http://registry.test/api",
            token="test-token",
            transport=httpx.MockTransport(self.handle),
        )

    # -- scripting ---------------------------------------------------------

    def fail(self, method: str, path: str, error: Exception | int) -> None:
        self._failures[(method, path)] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def hold(self, method: str, path: str, answer_on_arrival: bool = False) -> asyncio.Event:
        """Block matching requests until the returned event is set.

        With ``answer_on_arrival`` the response is built when the request
        arrives, so it reflects the state from before the hold was released.
        """
        gate = asyncio.Event()
        self._gates[(method, path)] = gate
        self._arrivals[(method, path)] = asyncio.Event()
        if answer_on_arrival:
            self._answer_on_arrival.add((method, path))
        return gate

    def arrived(self, method: str, path: str) -> asyncio.Event:
        return self._arrivals[(method, path)]

    def calls(self, method: str, path_prefix: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.removeprefix("/api").startswith(path_prefix)
        ]

    # -- transport ---------------------------------------------------------

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        path = request.url.path.removeprefix("/api")

        early = None
        for (m, p), arrived in list(self._arrivals.items()):
            if m == method and path.startswith(p):
                if (m, p) in self._answer_on_arrival:
                    early = self._route(method, path, request)
                arrived.set()
                await self._gates[(m, p)].wait()
        if early is not None:
            return early

        for (m, p), error in self._failures.items():
            if m == method and path.startswith(p):
                if isinstance(error, int):
                    return httpx.Response(error, json={"detail": "scripted failure"})
                raise error

        return self._route(method, path, request)

    def _route(self, method: str, path: str, request: httpx.Request) -> httpx.Response:
        if path == "/push/vapid-key" and method == "GET":
            return httpx.Response(200, json=self.vapid)
        if path == "/push/subscriptions" and method == "POST":
            return httpx.Response(200, json={"status": "subscribed", "subscriptionId": 1})
        if path.startswith("/push/subscriptions/") and method == "DELETE":
            return httpx.Response(200, json={"status": "unsubscribed"})

        if path == "/notifications/preferences":
            if method == "PATCH":
                self.preferences.update(json.loads(request.content))
            return httpx.Response(200, json=self.preferences)

        if path == "/notifications" and method == "GET":
            limit = int(request.url.params.get("limit", 20))
            return httpx.Response(
                200,
                json={"notifications": self.notifications[:limit], "total": len(self.notifications)},
            )
        if path == "/notifications/read-all" and method == "POST":
            for n in self.notifications:
                n["isRead"] = True
            return httpx.Response(200, json={"status": "read"})
        if path == "/notifications/test" and method == "POST":
            return httpx.Response(200, json={"status": "sent"})

        match = re.fullmatch(r"/notifications/(\d+)(/read)?", path)
        if match:
            nid = int(match.group(1))
            record = next((n for n in self.notifications if n["id"] == nid), None)
            if record is None:
                return httpx.Response(404, json={"detail": "Notification not found"})
            if match.group(2) and method == "POST":
                record["isRead"] = True
                return httpx.Response(200, json=record)
            if method == "DELETE":
                self.notifications.remove(record)
                return httpx.Response(200, json={"status": "deleted"})

        return httpx.Response(404, json={"detail": "Not Found"})
