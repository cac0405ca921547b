"""
auth/bootstrap.py -- First-run default administrator.

ensure_default_admin() runs once per process start, before the host shell
accepts any other operation. The store persists across restarts, so the call
must be a no-op after the first successful run.
"""

from __future__ import annotations

import logging

from auth.models import User
from auth.store import UserStore
from core.config import Settings

logger = logging.getLogger("posauth.bootstrap")


def ensure_default_admin(store: UserStore, settings: Settings) -> User | None:
    """Create the default admin if missing. Returns the new user or None."""
    created = store.create_default_admin(
        username=settings.default_admin_username,
        password=settings.default_admin_password,
        name=settings.default_admin_name,
    )
    if created is not None:
        logger.warning(
            "Default administrator %r was created with the initial password. Change it after first login.",
            created.username,
        )
    return created
