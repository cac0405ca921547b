"""
auth/errors.py -- Exception taxonomy for the auth core.

Only four things can go wrong from a caller's point of view:
  NotFound           -- update/reset referenced a user id that does not exist.
  DuplicateUsername  -- create_user with a username that is already taken.
  PasswordTooLong    -- create/reset with a password over bcrypt's 72-byte input
                        limit. Rejected before hashing, never truncated.
  OperationalError   -- the store is unavailable, an I/O call failed, or a row
                        could not be mapped (e.g. unknown role text).

Authentication negatives (bad password, inactive user, missing or expired
token) are NOT errors. The service returns None for those so the error channel
cannot be used to tell the cases apart.

Layer rule: stdlib only.
"""

from __future__ import annotations

from typing import Any, Optional


class AuthError(Exception):
    """Base class for every error the auth core raises on purpose.

    code is a stable machine-readable identifier the host shell can switch on;
    the message is for humans and may change.
    """

    code: str = "auth_error"

    def __init__(self, message: str = "", *, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.context:
            payload["context"] = dict(self.context)
        return payload


class NotFound(AuthError):
    code = "not_found"


class DuplicateUsername(AuthError):
    code = "duplicate_username"


class OperationalError(AuthError):
    """Opaque store failure. The original driver exception is chained as __cause__."""

    code = "operational_error"


class PasswordTooLong(AuthError):
    code = "password_too_long"
