"""Credential store: every query the lifecycle engine issues against ``users``."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import DuplicateAccount, StoreFailure
from app.models.user import User

logger = logging.getLogger("credvault")


class CredentialStore:
    """Parameterized reads and single-statement writes over the users table.

    Conditional writes (``mark_verified``, ``reset_password``) report whether a
    row was affected; a zero count means another request consumed the token first.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Store operation '%s' failed", operation)
            raise StoreFailure() from exc

    # --- Reads ---

    def find_by_email(self, email: str) -> User | None:
        with self._guard("find_by_email"):
            return self.db.scalar(select(User).where(User.email == email))

    def find_by_id(self, user_id: int) -> User | None:
        with self._guard("find_by_id"):
            return self.db.get(User, user_id, populate_existing=True)

    def find_by_verification_token(self, token: str) -> User | None:
        with self._guard("find_by_verification_token"):
            return self.db.scalar(select(User).where(User.verification_token == token))

    def find_by_live_reset_token(self, token: str, now: datetime) -> User | None:
        """Return the user holding ``token`` if it expires after ``now``."""
        with self._guard("find_by_live_reset_token"):
            return self.db.scalar(
                select(User).where(User.reset_token == token, User.reset_token_expires > now)
            )

    # --- Writes ---

    def insert(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        verification_token: str,
    ) -> User:
        user = User(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            is_verified=False,
            verification_token=verification_token,
        )
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateAccount() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Store operation 'insert' failed")
            raise StoreFailure() from exc
        with self._guard("insert"):
            self.db.refresh(user)
        return user

    def mark_verified(self, token: str) -> bool:
        """Consume a verification token. True only for the request that cleared it."""
        stmt = (
            update(User)
            .where(User.verification_token == token)
            .values(is_verified=True, verification_token=None)
            .execution_options(synchronize_session=False)
        )
        return self._execute("mark_verified", stmt)

    def set_reset_token(self, user_id: int, token: str, expires: datetime) -> bool:
        """Overwrite any previous reset token for the user."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(reset_token=token, reset_token_expires=expires)
            .execution_options(synchronize_session=False)
        )
        return self._execute("set_reset_token", stmt)

    def update_password(self, user_id: int, password_hash: str) -> bool:
        """Replace the hash only; reset-token fields are left as they are."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(password_hash=password_hash)
            .execution_options(synchronize_session=False)
        )
        return self._execute("update_password", stmt)

    def reset_password(self, user_id: int, token: str, password_hash: str, now: datetime) -> bool:
        """Replace one user's hash if they still hold the live reset token, and clear it."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.reset_token == token, User.reset_token_expires > now)
            .values(password_hash=password_hash, reset_token=None, reset_token_expires=None)
            .execution_options(synchronize_session=False)
        )
        return self._execute("reset_password", stmt)

    def update_profile(self, user_id: int, first_name: str | None = None, last_name: str | None = None) -> bool:
        """Write the supplied name fields. With nothing supplied, only checks the row exists."""
        values = {}
        if first_name is not None:
            values["first_name"] = first_name
        if last_name is not None:
            values["last_name"] = last_name
        if not values:
            return self.find_by_id(user_id) is not None
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self._execute("update_profile", stmt)

    def _execute(self, operation: str, stmt) -> bool:
        with self._guard(operation):
            result = self.db.execute(stmt)
            self.db.commit()
            return result.rowcount > 0
