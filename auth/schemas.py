"""
auth/schemas.py -- Request and response models for the auth boundary.

These Pydantic v2 models are the contract with whatever shell calls the auth
core (the management CLI in main.py today). They are intentionally separate
from the dataclasses in auth/models.py, which own the internal domain
representation. Callers map between the two with the from_* factories.

Timestamps serialize as ISO 8601 with a UTC offset, so they round-trip
through JSON without losing the timezone.

Password rules are limited to "non-empty and at most 72 bytes" (bcrypt's input
limit). There is no complexity policy.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import LoginResult, Role, User
from auth.passwords import MAX_PASSWORD_BYTES


def _check_password(value: str) -> str:
    if not value:
        raise ValueError("password must not be empty")
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class CreateUserRequest(BaseModel):
    """Input for create_user. Username and name are whitespace-stripped;
    the password is taken verbatim."""

    username: str = Field(min_length=1, max_length=255)
    password: str
    name: str = Field(min_length=1, max_length=255)
    role: Role = Role.CASHIER

    @field_validator("username", "name", mode="before")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password(value)


class UpdateUserRequest(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=255)
    role: Role
    is_active: bool

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value


class ResetPasswordRequest(BaseModel):
    id: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password(value)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of a user. There is deliberately no password field."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    name: str
    role: Role
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            name=user.name,
            role=user.role,
            is_active=user.is_active,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserOut
    token: str

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(user=UserOut.from_user(result.user), token=result.token)


class ErrorDetail(BaseModel):
    """Machine-readable error payload built from an AuthError."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    context: dict = Field(default_factory=dict)
