"""Unit tests for auth/bootstrap.py -- first-run default administrator.

Covers:
- First call creates exactly one active ADMIN named per settings
- Second call is a no-op (idempotent across restarts)
- Configured username/password/name are honoured
- A WARNING is logged only when the account is actually created
"""

import logging

from auth.bootstrap import ensure_default_admin
from auth.db import Database
from auth.models import Role
from auth.passwords import verify_password
from auth.store import UserStore


def test_first_run_creates_admin(service, settings):
    created = ensure_default_admin(service.users, settings)
    assert created is not None
    assert created.username == "admin"
    assert created.name == "Administrator"
    assert created.role is Role.ADMIN
    assert created.is_active is True


def test_second_run_is_noop(service, settings):
    ensure_default_admin(service.users, settings)
    assert ensure_default_admin(service.users, settings) is None
    admins = [u for u in service.list_users() if u.username == "admin"]
    assert len(admins) == 1


def test_survives_restart(tmp_path, settings, clock):
    url = f"sqlite:///{tmp_path / 'pos.db'}"
    for _ in range(2):
        db = Database(url, clock=clock)
        try:
            ensure_default_admin(UserStore(db, bcrypt_rounds=4), settings)
        finally:
            db.close()
    db = Database(url, clock=clock)
    try:
        assert UserStore(db).count() == 1
    finally:
        db.close()


def test_uses_configured_credentials(service, settings):
    custom = settings.model_copy(
        update={
            "default_admin_username": "owner",
            "default_admin_password": "s3cret",
            "default_admin_name": "Shop Owner",
        }
    )
    ensure_default_admin(service.users, custom)
    creds = service.users.get_by_username("owner")
    assert creds.user.name == "Shop Owner"
    assert verify_password("s3cret", creds.password_hash)
    assert service.users.get_by_username("admin") is None


def test_warns_only_on_creation(service, settings, caplog):
    with caplog.at_level(logging.WARNING, logger="posauth.bootstrap"):
        ensure_default_admin(service.users, settings)
        ensure_default_admin(service.users, settings)
    warnings = [r for r in caplog.records if r.name == "posauth.bootstrap"]
    assert len(warnings) == 1
    assert "admin" in warnings[0].getMessage()
