"""Credential lifecycle: signup, verification, login, password reset/change, profile."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from starlette.concurrency import run_in_threadpool

from app.database import utcnow
from app.errors import (
    DuplicateAccount,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidToken,
    NotFound,
    NotificationFailure,
    UnverifiedAccount,
    ValidationError,
)
from app.models.user import User
from app.services.jwt import SessionIssuer
from app.services.notifications import NotificationGateway
from app.services.store import CredentialStore
from app.services.tokens import TokenGenerator

logger = logging.getLogger("credvault")

DEFAULT_RESET_TTL = timedelta(hours=1)


class SecretHasher(Protocol):
    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, hashed: str) -> bool: ...


@dataclass
class UserSummary:
    """Public view of a user record. Never carries the password hash or tokens."""

    id: int
    email: str
    first_name: str
    last_name: str
    is_verified: bool
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_verified=bool(user.is_verified),
            created_at=user.created_at,
        )


@dataclass
class LoginResult:
    """Result of a successful login."""

    user: UserSummary
    session_token: str


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialLifecycleEngine:
    """Enforces the account state machine on top of the credential store.

    Accounts start unverified with a verification token, become verified once that
    token is consumed, and may hold one live reset code at a time. Every write goes
    through the store; collaborators are injected so tests can swap them. The async
    operations run their store and hashing work in the threadpool.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: SecretHasher,
        tokens: TokenGenerator,
        notifier: NotificationGateway,
        sessions: SessionIssuer,
        reset_ttl: timedelta = DEFAULT_RESET_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.notifier = notifier
        self.sessions = sessions
        self.reset_ttl = reset_ttl
        self.clock = clock

    async def signup(self, email: str, password: str, first_name: str, last_name: str) -> int:
        """Create an unverified account and email its verification link.

        The record is committed before the email is sent. If sending fails,
        NotificationFailure propagates and the account stays in place.
        """
        email = normalize_email(email)
        first_name, last_name = first_name.strip(), last_name.strip()
        user_id, verification_token = await run_in_threadpool(
            self._create_account, email, password, first_name, last_name
        )

        try:
            await self.notifier.send_verification_email(email, verification_token, first_name)
        except NotificationFailure as exc:
            raise NotificationFailure(
                "Account created, but the verification email could not be sent. Please request a new one."
            ) from exc
        return user_id

    def _create_account(self, email: str, password: str, first_name: str, last_name: str) -> tuple[int, str]:
        if self.store.find_by_email(email) is not None:
            raise DuplicateAccount()

        verification_token = self.tokens.verification_token()
        user = self.store.insert(
            email=email,
            password_hash=self.hasher.hash(password),
            first_name=first_name,
            last_name=last_name,
            verification_token=verification_token,
        )
        logger.info("User %d signed up", user.id)
        return user.id, verification_token

    def login(self, email: str, password: str) -> LoginResult:
        """Authenticate a verified account and issue a session token."""
        user = self.store.find_by_email(normalize_email(email))
        if user is None:
            raise InvalidCredentials()

        # Checked before the password so unverified accounts never authenticate
        if not user.is_verified:
            raise UnverifiedAccount()

        if not self.hasher.verify(password, user.password_hash):
            raise InvalidCredentials()

        logger.info("User %d logged in", user.id)
        return LoginResult(user=UserSummary.from_user(user), session_token=self.sessions.issue(user.id))

    def verify_email(self, token: str) -> None:
        """Consume a verification token. Each token succeeds at most once."""
        if not token or not token.strip():
            raise InvalidToken()
        if not self.store.mark_verified(token):
            raise InvalidToken()
        logger.info("Email verified")

    async def request_password_reset(self, email: str) -> None:
        """Issue a reset code if the account exists. Never reveals whether it does."""
        issued = await run_in_threadpool(self._issue_reset_code, normalize_email(email))
        if issued is None:
            return

        user_id, address, first_name, code = issued
        try:
            await self.notifier.send_password_reset_email(address, code, first_name)
        except NotificationFailure:
            # Same outcome as for an unknown address
            logger.error("Reset email for user %d was not delivered", user_id)

    def _issue_reset_code(self, email: str) -> tuple[int, str, str, str] | None:
        user = self.store.find_by_email(email)
        if user is None:
            return None

        user_id, address, first_name = user.id, user.email, user.first_name
        code = self.tokens.reset_code()
        self.store.set_reset_token(user_id, code, self.clock() + self.reset_ttl)
        logger.info("Password reset requested for user %d", user_id)
        return user_id, address, first_name, code

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """Set a new password using a live reset code, consuming the code.

        Codes are short and may collide across accounts, so only the account the
        code was looked up for is written.
        """
        user = self.store.find_by_live_reset_token(token, self.clock()) if token else None
        if user is None:
            raise InvalidOrExpiredToken()

        password_hash = self.hasher.hash(new_password)
        # Token and expiry are re-checked so a concurrent confirm cannot apply twice
        if not self.store.reset_password(user.id, token, password_hash, self.clock()):
            raise InvalidOrExpiredToken()
        logger.info("Password reset completed for user %d", user.id)

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """Replace the password of a logged-in user after re-checking the current one.

        Outstanding reset codes are not cleared. The confirmation email is best
        effort: a delivery failure is logged and the change stands.
        """
        address, first_name = await run_in_threadpool(
            self._replace_password, user_id, current_password, new_password
        )

        try:
            await self.notifier.send_password_changed_email(address, first_name)
        except NotificationFailure:
            logger.error("Password change confirmation for user %d was not delivered", user_id)

    def _replace_password(self, user_id: int, current_password: str, new_password: str) -> tuple[str, str]:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound()

        if not self.hasher.verify(current_password, user.password_hash):
            raise InvalidCredentials("Current password is incorrect", status_code=400)

        address, first_name = user.email, user.first_name
        if not self.store.update_password(user_id, self.hasher.hash(new_password)):
            raise NotFound()
        logger.info("User %d changed password", user_id)
        return address, first_name

    def update_profile(
        self, user_id: int, first_name: str | None = None, last_name: str | None = None
    ) -> UserSummary:
        """Overwrite only the supplied name fields and return the updated summary."""
        errors = []
        if first_name is not None:
            first_name = first_name.strip()
            if not first_name:
                errors.append({"field": "firstName", "message": "First name cannot be empty"})
        if last_name is not None:
            last_name = last_name.strip()
            if not last_name:
                errors.append({"field": "lastName", "message": "Last name cannot be empty"})
        if errors:
            raise ValidationError(errors)

        if not self.store.update_profile(user_id, first_name=first_name, last_name=last_name):
            raise NotFound()
        return self.get_user(user_id)

    def get_user(self, user_id: int) -> UserSummary:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound()
        return UserSummary.from_user(user)

    async def resend_verification(self, email: str) -> None:
        """Re-send the pending verification link. Silent for unknown or verified accounts."""
        user = await run_in_threadpool(self.store.find_by_email, normalize_email(email))
        if user is None or user.is_verified or not user.verification_token:
            return
        try:
            await self.notifier.send_verification_email(user.email, user.verification_token, user.first_name)
        except NotificationFailure:
            logger.error("Verification email for user %d was not delivered", user.id)
            return
        logger.info("Verification email re-sent for user %d", user.id)
