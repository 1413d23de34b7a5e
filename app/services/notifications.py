"""Transactional email for the credential lifecycle."""

import logging
from pathlib import Path
from typing import Protocol

from aiosmtplib import SMTPException
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from fastapi_mail.errors import ConnectionErrors

from app.config import Settings, get_settings
from app.errors import NotificationFailure

logger = logging.getLogger("credvault")

TEMPLATE_FOLDER = Path(__file__).resolve().parent.parent / "templates" / "email"

VERIFY_SUBJECT = "Verify Your Email - Credvault"
RESET_SUBJECT = "Password Reset Request - Credvault"
CHANGED_SUBJECT = "Password Changed Successfully - Credvault"


class NotificationGateway(Protocol):
    """Sends the three lifecycle emails. Raises NotificationFailure on transport errors."""

    async def send_verification_email(self, email: str, token: str, first_name: str) -> None: ...

    async def send_password_reset_email(self, email: str, code: str, first_name: str) -> None: ...

    async def send_password_changed_email(self, email: str, first_name: str) -> None: ...


def _link(base_url: str, path: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/{path}?token={token}"


class MailNotificationGateway:
    """Renders Jinja2 templates and delivers them over SMTP via fastapi-mail."""

    def __init__(self, config: ConnectionConfig, frontend_url: str) -> None:
        self.mailer = FastMail(config)
        self.frontend_url = frontend_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "MailNotificationGateway":
        config = ConnectionConfig(
            MAIL_USERNAME=settings.MAIL_USERNAME,
            MAIL_PASSWORD=settings.MAIL_PASSWORD,
            MAIL_FROM=settings.MAIL_FROM,
            MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
            MAIL_PORT=settings.MAIL_PORT,
            MAIL_SERVER=settings.MAIL_SERVER,
            MAIL_STARTTLS=settings.MAIL_STARTTLS,
            MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
            USE_CREDENTIALS=bool(settings.MAIL_USERNAME),
            VALIDATE_CERTS=True,
            TEMPLATE_FOLDER=TEMPLATE_FOLDER,
            TIMEOUT=settings.MAIL_TIMEOUT,
        )
        return cls(config, settings.FRONTEND_URL)

    async def send_verification_email(self, email: str, token: str, first_name: str) -> None:
        await self._send(
            email,
            VERIFY_SUBJECT,
            "verify_email.html",
            {"first_name": first_name, "verification_url": _link(self.frontend_url, "verify-email", token)},
        )

    async def send_password_reset_email(self, email: str, code: str, first_name: str) -> None:
        await self._send(
            email,
            RESET_SUBJECT,
            "reset_password.html",
            {
                "first_name": first_name,
                "code": code,
                "reset_url": _link(self.frontend_url, "reset-password", code),
            },
        )

    async def send_password_changed_email(self, email: str, first_name: str) -> None:
        await self._send(email, CHANGED_SUBJECT, "password_changed.html", {"first_name": first_name})

    async def _send(self, email: str, subject: str, template_name: str, body: dict) -> None:
        message = MessageSchema(
            subject=subject,
            recipients=[email],
            template_body=body,
            subtype=MessageType.html,
        )
        try:
            await self.mailer.send_message(message, template_name=template_name)
        except (ConnectionErrors, SMTPException, OSError) as exc:
            logger.error("Failed to send '%s' email to %s: %s", template_name, email, exc)
            raise NotificationFailure() from exc
        logger.info("Sent '%s' email", template_name)


class ConsoleNotificationGateway:
    """Development backend: writes each message and its link to the log."""

    def __init__(self, frontend_url: str) -> None:
        self.frontend_url = frontend_url

    async def send_verification_email(self, email: str, token: str, first_name: str) -> None:
        logger.info(
            "EMAIL to %s | %s | %s", email, VERIFY_SUBJECT, _link(self.frontend_url, "verify-email", token)
        )

    async def send_password_reset_email(self, email: str, code: str, first_name: str) -> None:
        logger.info(
            "EMAIL to %s | %s | code=%s | %s",
            email,
            RESET_SUBJECT,
            code,
            _link(self.frontend_url, "reset-password", code),
        )

    async def send_password_changed_email(self, email: str, first_name: str) -> None:
        logger.info("EMAIL to %s | %s", email, CHANGED_SUBJECT)


_notification_gateway: NotificationGateway | None = None


def get_notification_gateway() -> NotificationGateway:
    """Get singleton notification gateway for the configured MAIL_BACKEND."""
    global _notification_gateway
    if _notification_gateway is None:
        settings = get_settings()
        if settings.MAIL_BACKEND == "smtp":
            _notification_gateway = MailNotificationGateway.from_settings(settings)
        else:
            _notification_gateway = ConsoleNotificationGateway(settings.FRONTEND_URL)
    return _notification_gateway
