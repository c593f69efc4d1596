"""Shared fixtures: in-memory stores, recording publishers and a wired app."""

import os
import tempfile
from typing import Any

import pytest


os.environ["ENVIRONMENT"] = "testing"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["APP_NAME"] = "comment-system"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="comment-system-logs-")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from comment_system.config import get_settings  # noqa: E402


get_settings.cache_clear()

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from comment_system.auth.models import User  # noqa: E402
from comment_system.auth.repository import InMemoryUserRepository  # noqa: E402
from comment_system.auth.security import create_access_token, hash_password  # noqa: E402
from comment_system.auth.service import AuthService  # noqa: E402
from comment_system.comments.repository import InMemoryCommentRepository  # noqa: E402
from comment_system.comments.service import CommentService  # noqa: E402
from comment_system.main import create_app  # noqa: E402
from comment_system.notifications.publisher import PublishResult  # noqa: E402


class RecordingPublisher:
    """Publisher that keeps every event it is asked to publish."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def publish(
        self, channel: str, event: str, payload: dict[str, Any]
    ) -> PublishResult:
        self.events.append((channel, event, payload))
        return PublishResult(ok=True, receivers=1, duration_ms=0.1)

    @property
    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


class FailingPublisher:
    """Publisher whose transport is down."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ConnectionError("redis unreachable")
        self.calls = 0

    async def publish(
        self, channel: str, event: str, payload: dict[str, Any]
    ) -> PublishResult:
        self.calls += 1
        raise self.exc


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def comment_repo() -> InMemoryCommentRepository:
    return InMemoryCommentRepository()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def failing_publisher() -> FailingPublisher:
    return FailingPublisher()


@pytest.fixture
def comment_service(
    comment_repo: InMemoryCommentRepository,
    user_repo: InMemoryUserRepository,
    publisher: RecordingPublisher,
) -> CommentService:
    return CommentService(comments=comment_repo, users=user_repo, publisher=publisher)


@pytest.fixture
def auth_service(user_repo: InMemoryUserRepository) -> AuthService:
    return AuthService(users=user_repo)


async def _add_user(repo: InMemoryUserRepository, name: str, email: str) -> User:
    user = User(name=name, email=email, password_hash=hash_password("secret123"))
    await repo.insert(user)
    return user


@pytest.fixture
async def alice(user_repo: InMemoryUserRepository) -> User:
    return await _add_user(user_repo, "Alice", "alice@example.com")


@pytest.fixture
async def bob(user_repo: InMemoryUserRepository) -> User:
    return await _add_user(user_repo, "Bob", "bob@example.com")


@pytest.fixture
async def carol(user_repo: InMemoryUserRepository) -> User:
    return await _add_user(user_repo, "Carol", "carol@example.com")


@pytest.fixture
def headers_for():
    """Build an Authorization header carrying an access token for a user."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(
            {"sub": str(user.id), "email": user.email, "name": user.name}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def app(
    auth_service: AuthService,
    comment_service: CommentService,
    publisher: RecordingPublisher,
) -> FastAPI:
    """App with services injected directly (lifespan is not run)."""
    application = create_app()
    application.state.auth_service = auth_service
    application.state.comment_service = comment_service
    application.state.event_publisher = publisher
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def bare_client() -> TestClient:
    """Client for an app whose services were never wired."""
    return TestClient(create_app())


@pytest.fixture
def register(client: TestClient):
    """Register an account over HTTP; returns (user_json, auth headers)."""

    def _register(
        name: str, email: str, password: str = "secret123"
    ) -> tuple[dict[str, Any], dict[str, str]]:
        response = client.post(
            "/v1/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}

    return _register
