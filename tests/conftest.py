"""Pytest configuration and fixtures."""

import asyncio
import hmac
import os

# Point the application at a throwaway database before app modules load
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MAIL_BACKEND", "console")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.errors import NotificationFailure
from app.models.user import User  # noqa: F401
from app.services.auth import CredentialLifecycleEngine
from app.services.hasher import get_hasher
from app.services.jwt import SessionIssuer, get_session_issuer
from app.services.notifications import get_notification_gateway
from app.services.store import CredentialStore
from app.services.tokens import get_token_generator

TEST_PASSWORD = "password123"


class FakeHasher:
    """Cheap, deterministic stand-in for bcrypt.

    ``on_loop`` records, per call, whether it ran on an event-loop thread.
    """

    def __init__(self) -> None:
        self.on_loop: list[bool] = []

    def _track(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.on_loop.append(False)
        else:
            self.on_loop.append(True)

    def hash(self, plaintext: str) -> str:
        self._track()
        return "fake$" + plaintext[::-1]

    def verify(self, plaintext: str, hashed: str) -> bool:
        self._track()
        return hmac.compare_digest("fake$" + plaintext[::-1], hashed)


class ScriptedTokens:
    """Predictable tokens: verify-token-1, verify-token-2, ... and RST001, RST002, ..."""

    def __init__(self) -> None:
        self.verification_count = 0
        self.reset_count = 0

    def verification_token(self) -> str:
        self.verification_count += 1
        return f"verify-token-{self.verification_count}"

    def reset_code(self) -> str:
        self.reset_count += 1
        return f"RST{self.reset_count:03d}"


class RecordingNotifier:
    """Collects outgoing emails; set ``fail`` to simulate a transport outage."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    async def _record(self, kind: str, **fields) -> None:
        if self.fail:
            raise NotificationFailure()
        self.sent.append({"kind": kind, **fields})

    async def send_verification_email(self, email: str, token: str, first_name: str) -> None:
        await self._record("verification", email=email, token=token, first_name=first_name)

    async def send_password_reset_email(self, email: str, code: str, first_name: str) -> None:
        await self._record("reset", email=email, code=code, first_name=first_name)

    async def send_password_changed_email(self, email: str, first_name: str) -> None:
        await self._record("changed", email=email, first_name=first_name)

    def last(self, kind: str) -> dict:
        return [message for message in self.sent if message["kind"] == kind][-1]


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="hasher")
def hasher_fixture() -> FakeHasher:
    return FakeHasher()


@pytest.fixture(name="tokens")
def tokens_fixture() -> ScriptedTokens:
    return ScriptedTokens()


@pytest.fixture(name="notifier")
def notifier_fixture() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(name="sessions")
def sessions_fixture() -> SessionIssuer:
    return SessionIssuer(secret_key="test-secret-key", algorithm="HS256", expire_minutes=60)


@pytest.fixture(name="engine")
def engine_fixture(db_session: Session, hasher, tokens, notifier, sessions) -> CredentialLifecycleEngine:
    """Lifecycle engine over the test database and fake collaborators."""
    return CredentialLifecycleEngine(
        store=CredentialStore(db_session),
        hasher=hasher,
        tokens=tokens,
        notifier=notifier,
        sessions=sessions,
    )


@pytest.fixture(name="client")
def client_fixture(db_session: Session, hasher, tokens, notifier, sessions):
    """Create a test client with overridden dependencies and disabled rate limiting."""
    from app.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hasher] = lambda: hasher
    app.dependency_overrides[get_token_generator] = lambda: tokens
    app.dependency_overrides[get_notification_gateway] = lambda: notifier
    app.dependency_overrides[get_session_issuer] = lambda: sessions
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session, hasher, sessions) -> dict:
    """Insert a verified user and return its details with a session token."""
    store = CredentialStore(db_session)
    user = store.insert(
        email="test@example.com",
        password_hash=hasher.hash(TEST_PASSWORD),
        first_name="Test",
        last_name="User",
        verification_token="fixture-token",
    )
    store.mark_verified("fixture-token")

    return {
        "user_id": user.id,
        "email": user.email,
        "password": TEST_PASSWORD,
        "token": sessions.issue(user.id),
    }


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(test_user: dict) -> dict:
    return {"Authorization": f"Bearer {test_user['token']}"}
