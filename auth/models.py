"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (data containers with trivial derived properties only).
The store owns SQL and the service owns the session state machine; these types
only carry shape.

Timestamps are timezone-aware UTC datetimes. The store's column type does the
text round-trip, so nothing above the store ever parses a timestamp string.

Layer rule: no imports from core/ or main.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from auth.errors import OperationalError


class Role(str, Enum):
    """Two-valued user role, persisted as its literal text."""

    ADMIN = "ADMIN"
    CASHIER = "CASHIER"

    @classmethod
    def from_db(cls, value: str) -> Role:
        """Map stored role text back to the enum.

        Unknown text is treated as a corrupt row rather than silently
        downgraded to CASHIER.
        """
        try:
            return cls(value)
        except ValueError:
            raise OperationalError(f"Unrecognized role value in users table: {value!r}") from None


@dataclass
class User:
    """A POS user account as exposed to callers. Never carries the hash."""

    id: str
    username: str
    name: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_login: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass
class UserCredentials:
    """A user plus its bcrypt hash. Only the credential store and the auth
    service handle this type; it must not cross the service boundary."""

    user: User
    password_hash: str


@dataclass
class Session:
    """An issued bearer session.

    expires_at is fixed at creation (absolute expiry). last_activity moves on
    every successful validation and is informational only.
    """

    id: str
    user_id: str
    token: str
    expires_at: datetime
    last_activity: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class LoginResult:
    """Successful login: the authenticated user and the freshly issued token."""

    user: User
    token: str
