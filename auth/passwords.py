"""
auth/passwords.py -- Password hashing, token and id generation.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). The cost factor comes
       from Settings.bcrypt_rounds (default 12). bcrypt.checkpw compares in
       constant time, and the _dummy_hash() helper lets the service run a
       full-cost check when the username is unknown or the account is inactive,
       so response time does not reveal which case occurred.

  Session tokens: secrets.token_urlsafe(32) gives 256 bits of entropy. Tokens
       are opaque bearer credentials stored as-is in the UNIQUE token column;
       they carry no claims and are only meaningful to this store.

  Ids: uuid4 text for users and sessions.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import secrets
import uuid
from functools import lru_cache

import bcrypt

# bcrypt only looks at the first 72 bytes of its input. The boundary schemas
# reject longer passwords so nothing is silently truncated.
MAX_PASSWORD_BYTES = 72

_TOKEN_BYTES = 32


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    # One per cost setting, computed on first use.
    return hash_password("posauth_timing_dummy", rounds)


def burn_verification(plain: str, rounds: int = 12) -> None:
    """Spend the same bcrypt work as a real verification and discard the result."""
    verify_password(plain, _dummy_hash(rounds))


def generate_token() -> str:
    return secrets.token_urlsafe(_TOKEN_BYTES)


def generate_id() -> str:
    return str(uuid.uuid4())
