"""Configuration settings for Credvault."""

import os
import secrets
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class RateLimitConfig:
    """Global request budget per client address."""

    window_seconds: int = 15 * 60
    max_requests: int = 100

    def as_limit_string(self) -> str:
        """Render as a slowapi/limits rate string, e.g. '100 per 900 seconds'."""
        return f"{self.max_requests} per {self.window_seconds} seconds"


@dataclass(frozen=True)
class BoundaryConfig:
    """HTTP boundary options: CORS and rate limiting."""

    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cors_credentials: bool = True


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./credvault.db")

    # JWT
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_EXPIRE_MINUTES: int = int(os.getenv("JWT_EXPIRE_MINUTES", "1440"))

    # Credentials
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
    RESET_TOKEN_TTL_MINUTES: int = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "60"))

    # Mail
    MAIL_BACKEND: str = os.getenv("MAIL_BACKEND", "console")
    MAIL_SERVER: str = os.getenv("MAIL_SERVER", "")
    MAIL_PORT: int = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME: str = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD: str = os.getenv("MAIL_PASSWORD", "")
    MAIL_FROM: str = os.getenv("MAIL_FROM", "no-reply@example.com")
    MAIL_FROM_NAME: str = os.getenv("MAIL_FROM_NAME", "Credvault")
    MAIL_STARTTLS: bool = _env_bool("MAIL_STARTTLS", "true")
    MAIL_SSL_TLS: bool = _env_bool("MAIL_SSL_TLS", "false")
    MAIL_TIMEOUT: int = int(os.getenv("MAIL_TIMEOUT", "10"))
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5500")

    # HTTP boundary
    CORS_ALLOWED_ORIGINS: list[str] = _env_list("CORS_ALLOWED_ORIGINS", "*")
    CORS_CREDENTIALS: bool = _env_bool("CORS_CREDENTIALS", "true")
    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))
    RATE_LIMIT_MAX: int = int(os.getenv("RATE_LIMIT_MAX", "100"))

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = _env_bool("DEBUG", "false")

    def __init__(self) -> None:
        self._generated_secret = not self.JWT_SECRET_KEY
        if self._generated_secret:
            self.JWT_SECRET_KEY = secrets.token_urlsafe(32)

    def boundary(self) -> BoundaryConfig:
        """Collect the CORS and rate limit options into one object."""
        return BoundaryConfig(
            allowed_origins=list(self.CORS_ALLOWED_ORIGINS),
            rate_limit=RateLimitConfig(
                window_seconds=self.RATE_LIMIT_WINDOW_SECONDS,
                max_requests=self.RATE_LIMIT_MAX,
            ),
            cors_credentials=self.CORS_CREDENTIALS,
        )

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if self._generated_secret:
            errors.append("JWT_SECRET_KEY is not set - using auto-generated key (not persistent across restarts)")
        if self.MAIL_BACKEND == "smtp" and not self.MAIL_SERVER:
            errors.append("MAIL_BACKEND is 'smtp' but MAIL_SERVER is not set")
        if self.MAIL_BACKEND not in ("smtp", "console"):
            errors.append(f"Unknown MAIL_BACKEND '{self.MAIL_BACKEND}' - falling back to console")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
