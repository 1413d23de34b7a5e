"""Tests for hashing, token minting, session tokens and mail delivery."""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone

import pytest
from fastapi_mail import ConnectionConfig
from jose import jwt

from app.errors import InvalidSession
from app.services.hasher import BcryptHasher
from app.services.jwt import SessionIssuer
from app.services.notifications import (
    RESET_SUBJECT,
    TEMPLATE_FOLDER,
    VERIFY_SUBJECT,
    ConsoleNotificationGateway,
    MailNotificationGateway,
)
from app.services.tokens import TokenGenerator


class TestBcryptHasher:
    """Tests for the password hasher."""

    def test_hash_and_verify(self):
        hasher = BcryptHasher(rounds=4)
        hashed = hasher.hash("secret1")
        assert hashed != "secret1"
        assert hashed.startswith("$2b$04$")
        assert hasher.verify("secret1", hashed)
        assert not hasher.verify("secret2", hashed)

    def test_salted(self):
        hasher = BcryptHasher(rounds=4)
        assert hasher.hash("secret1") != hasher.hash("secret1")

    def test_malformed_hash_does_not_verify(self):
        assert BcryptHasher(rounds=4).verify("secret1", "not-a-bcrypt-hash") is False


class TestTokenGenerator:
    """Tests for verification tokens and reset codes."""

    def test_verification_token_format(self):
        token = TokenGenerator().verification_token()
        assert re.fullmatch(r"[0-9a-f]{64}", token)

    def test_reset_code_format(self):
        code = TokenGenerator().reset_code()
        assert re.fullmatch(r"[A-Za-z0-9]{6}", code)

    def test_tokens_are_unique(self):
        generator = TokenGenerator()
        assert len({generator.verification_token() for _ in range(50)}) == 50


class TestSessionIssuer:
    """Tests for session token issuing and verification."""

    def test_round_trip(self):
        issuer = SessionIssuer(secret_key="k", expire_minutes=5)
        assert issuer.verify(issuer.issue(7)) == 7

    def test_expired(self):
        token = SessionIssuer(secret_key="k", expire_minutes=-1).issue(7)
        with pytest.raises(InvalidSession) as exc_info:
            SessionIssuer(secret_key="k").verify(token)
        assert exc_info.value.reason == "expired"

    def test_wrong_key(self):
        token = SessionIssuer(secret_key="k").issue(7)
        with pytest.raises(InvalidSession) as exc_info:
            SessionIssuer(secret_key="other").verify(token)
        assert exc_info.value.reason == "invalid"

    def test_garbage(self):
        with pytest.raises(InvalidSession):
            SessionIssuer(secret_key="k").verify("invalid.token.here")

    def test_missing_subject(self):
        token = jwt.encode({"exp": datetime.now(timezone.utc) + timedelta(minutes=5)}, "k", algorithm="HS256")
        with pytest.raises(InvalidSession):
            SessionIssuer(secret_key="k").verify(token)


def suppressed_gateway() -> MailNotificationGateway:
    config = ConnectionConfig(
        MAIL_USERNAME="",
        MAIL_PASSWORD="",
        MAIL_FROM="no-reply@example.com",
        MAIL_PORT=587,
        MAIL_SERVER="localhost",
        MAIL_STARTTLS=False,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=False,
        TEMPLATE_FOLDER=TEMPLATE_FOLDER,
        SUPPRESS_SEND=1,
    )
    return MailNotificationGateway(config, "https://app.example.com/")


def html_bodies(message) -> list[bytes]:
    return [part.get_payload(decode=True) for part in message.walk() if part.get_content_type() == "text/html"]


class TestMailNotificationGateway:
    """Tests for templated email with sending suppressed."""

    def test_verification_email(self):
        gateway = suppressed_gateway()

        async def send():
            with gateway.mailer.record_messages() as outbox:
                await gateway.send_verification_email("a@example.com", "tok123", "Ada")
            return outbox

        outbox = asyncio.run(send())
        assert len(outbox) == 1
        assert outbox[0]["To"] == "a@example.com"
        assert outbox[0]["Subject"] == VERIFY_SUBJECT
        assert any(b"https://app.example.com/verify-email?token=tok123" in body for body in html_bodies(outbox[0]))
        assert any(b"Hello Ada" in body for body in html_bodies(outbox[0]))

    def test_reset_email_contains_code(self):
        gateway = suppressed_gateway()

        async def send():
            with gateway.mailer.record_messages() as outbox:
                await gateway.send_password_reset_email("a@example.com", "Ab3xY9", "Ada")
            return outbox

        outbox = asyncio.run(send())
        assert outbox[0]["Subject"] == RESET_SUBJECT
        assert any(b"Ab3xY9" in body for body in html_bodies(outbox[0]))


class TestConsoleNotificationGateway:
    """Tests for the development mail backend."""

    def test_logs_verification_link(self, caplog):
        gateway = ConsoleNotificationGateway("http://localhost:5500")
        with caplog.at_level(logging.INFO, logger="credvault"):
            asyncio.run(gateway.send_verification_email("a@example.com", "tok123", "Ada"))
        assert "http://localhost:5500/verify-email?token=tok123" in caplog.text
