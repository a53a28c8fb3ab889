"""Schemas for authentication endpoints."""

import re
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

BCRYPT_MAX_BYTES = 72


def _validate_password_strength(v: str) -> str:
    """Shared password validation logic."""
    if not re.search(r"[A-Za-z]", v) or not re.search(r"\d", v):
        raise ValueError("Password must include at least one letter and one number.")
    if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long.")
    return v


def _normalize_email(v: str) -> str:
    return v.strip().lower()


class UserRegister(BaseModel):
    """Schema for user registration."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v) if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _validate_password_strength(v)


class UserSignIn(BaseModel):
    """Schema for credentials sign-in."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    callback_url: str | None = Field(
        default=None, validation_alias=AliasChoices("callbackUrl", "callback_url")
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class SessionClaims(BaseModel):
    """Identity fields carried by a session token.

    This is the only shape a session is read or written as.
    """

    id: str
    email: str
    name: str
    role: str = "user"


class UserOut(BaseModel):
    """Sanitized user returned to clients (never includes hashes or tokens)."""

    id: str
    email: str
    name: str | None = None
    role: str
    is_verified: bool
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class RegisterResponse(BaseModel):
    """Schema for registration response."""

    success: bool = True
    message: str
    email_sent: bool
    user: UserOut


class SignInResponse(BaseModel):
    """Schema for a successful sign-in."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: SessionClaims
    redirect: str = "/"


class MessageResponse(BaseModel):
    """Schema for simple message response."""

    message: str


class VerifyEmailRequest(BaseModel):
    """Schema for email verification."""

    token: str = Field(min_length=1)


class ResendVerificationRequest(BaseModel):
    """Schema for resending verification email."""

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v) if isinstance(v, str) else v


class ForgotPasswordRequest(BaseModel):
    """Schema for requesting password reset."""

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v) if isinstance(v, str) else v


class ResetPasswordRequest(BaseModel):
    """Schema for resetting password with token."""

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _validate_password_strength(v)


class ChangePasswordRequest(BaseModel):
    """Schema for changing password while logged in."""

    current_password: str
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        return _validate_password_strength(v)
