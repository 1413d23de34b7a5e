"""Pydantic schemas for authentication and account endpoints."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator

from app.services.auth import UserSummary
from app.services.hasher import MAX_PASSWORD_BYTES

PASSWORD_MIN_LENGTH = 6

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Password = Annotated[str, Field(min_length=PASSWORD_MIN_LENGTH)]


def check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(_Request):
    email: EmailStr
    password: Password
    first_name: Name = Field(alias="firstName")
    last_name: Name = Field(alias="lastName")

    @field_validator("password")
    @classmethod
    def password_fits_hasher(cls, value: str) -> str:
        return check_password_bytes(value)


class LoginRequest(_Request):
    email: EmailStr
    password: str = Field(min_length=1)


class EmailRequest(_Request):
    email: EmailStr


class ResetPasswordRequest(_Request):
    token: str = Field(min_length=1)
    new_password: Password = Field(alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def password_fits_hasher(cls, value: str) -> str:
        return check_password_bytes(value)


class ChangePasswordRequest(_Request):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: Password = Field(alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def password_fits_hasher(cls, value: str) -> str:
        return check_password_bytes(value)


class UpdateProfileRequest(_Request):
    first_name: Name | None = Field(default=None, alias="firstName")
    last_name: Name | None = Field(default=None, alias="lastName")


class Envelope(BaseModel):
    """Response wrapper shared by every endpoint."""

    success: bool
    message: str
    data: dict[str, Any] | None = None
    errors: list[dict[str, Any]] | None = None


def user_payload(user: UserSummary) -> dict[str, Any]:
    """Serialize a user summary with the API's camelCase keys."""
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "isVerified": user.is_verified,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }
