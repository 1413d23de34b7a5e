"""Credential lifecycle errors.

Each error carries the HTTP status and the user-facing message the API returns
for it. Messages never include internal detail.
"""


class CredentialError(Exception):
    """Base class for every failure the lifecycle engine reports."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(CredentialError):
    """Malformed input, rejected before the store is touched."""

    status_code = 400
    message = "Validation failed"

    def __init__(self, errors: list[dict[str, str]] | None = None, message: str | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class DuplicateAccount(CredentialError):
    status_code = 400
    message = "User already exists with this email"


class InvalidCredentials(CredentialError):
    """Unknown email or wrong password. Both cases share one message."""

    status_code = 401
    message = "Invalid email or password"


class UnverifiedAccount(CredentialError):
    status_code = 403
    message = "Please verify your email before logging in"


class InvalidToken(CredentialError):
    status_code = 400
    message = "Invalid or expired verification token"


class InvalidOrExpiredToken(CredentialError):
    status_code = 400
    message = "Invalid or expired reset token"


class NotFound(CredentialError):
    status_code = 404
    message = "User not found"


class NotificationFailure(CredentialError):
    """Mail transport error. Raised after the triggering write has persisted."""

    status_code = 500
    message = "Email could not be sent"


class StoreFailure(CredentialError):
    """Persistence error. Detail is logged server-side only."""

    status_code = 500
    message = "Internal server error"


class InvalidSession(CredentialError):
    """Bearer token rejected. ``reason`` is 'expired', 'invalid' or 'missing'."""

    status_code = 401
    message = "Invalid or expired session"

    def __init__(self, reason: str = "invalid") -> None:
        self.reason = reason
        super().__init__()
