"""Request-scoped dependencies: the lifecycle engine and the current user."""

from dataclasses import dataclass
from datetime import timedelta

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.errors import InvalidSession, NotFound
from app.services.auth import CredentialLifecycleEngine, SecretHasher
from app.services.hasher import get_hasher
from app.services.jwt import SessionIssuer, get_session_issuer
from app.services.notifications import NotificationGateway, get_notification_gateway
from app.services.store import CredentialStore
from app.services.tokens import TokenGenerator, get_token_generator


@dataclass
class CurrentUser:
    """Authenticated user context."""

    user_id: int
    email: str


def get_lifecycle_engine(
    db: Session = Depends(get_db),
    hasher: SecretHasher = Depends(get_hasher),
    tokens: TokenGenerator = Depends(get_token_generator),
    notifier: NotificationGateway = Depends(get_notification_gateway),
    sessions: SessionIssuer = Depends(get_session_issuer),
) -> CredentialLifecycleEngine:
    """Build the engine for one request from its injected collaborators."""
    return CredentialLifecycleEngine(
        store=CredentialStore(db),
        hasher=hasher,
        tokens=tokens,
        notifier=notifier,
        sessions=sessions,
        reset_ttl=timedelta(minutes=get_settings().RESET_TOKEN_TTL_MINUTES),
    )


def get_current_user(
    request: Request,
    engine: CredentialLifecycleEngine = Depends(get_lifecycle_engine),
) -> CurrentUser:
    """Resolve the Bearer token to an existing user. Raises InvalidSession (401)."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise InvalidSession("missing")

    user_id = engine.sessions.verify(auth_header[7:])
    try:
        user = engine.get_user(user_id)
    except NotFound:
        raise InvalidSession("invalid") from None

    return CurrentUser(user_id=user.id, email=user.email)
