"""Session token issuing and verification."""

from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import get_settings
from app.errors import InvalidSession


class SessionIssuer:
    """Signs and checks bearer tokens that bind a user id for a limited time."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 1440) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, user_id: int) -> str:
        """Create a signed token for the given user."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        """Return the user id in a valid token. Raises InvalidSession otherwise."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise InvalidSession("expired") from None
        except JWTError:
            raise InvalidSession("invalid") from None

        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise InvalidSession("invalid") from None


_session_issuer: SessionIssuer | None = None


def get_session_issuer() -> SessionIssuer:
    """Get singleton session issuer instance."""
    global _session_issuer
    if _session_issuer is None:
        settings = get_settings()
        _session_issuer = SessionIssuer(
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expire_minutes=settings.JWT_EXPIRE_MINUTES,
        )
    return _session_issuer
