"""
tests/conftest.py -- Shared fixtures for the auth core tests.

This module provides:
  - FakeClock: a controllable UTC clock injected into Database so expiry can
    be tested without sleeping
  - settings: Settings pointed at an in-memory SQLite store with a low bcrypt
    cost (4 rounds) so hashing does not dominate test time
  - db / service: a fresh store per test

In-memory URLs use StaticPool inside Database, so every thread in a test sees
the same database. Tests that need a real file (the CLI, the threaded tests)
build their own Database against tmp_path.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest

from auth.db import Database
from auth.service import AuthService
from core.config import Settings

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable returning a fixed aware datetime until advanced."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", bcrypt_rounds=4, session_ttl_hours=24)


@pytest.fixture
def db(settings: Settings, clock: FakeClock) -> Generator[Database, None, None]:
    database = Database(settings.resolved_database_url(), clock=clock)
    yield database
    database.close()


@pytest.fixture
def service(db: Database, settings: Settings) -> AuthService:
    return AuthService(db, settings)
