"""
auth/service.py -- Login, session validation and logout.

Each session token is in one of three states:
  valid    -- row exists, not expired, owning user active
  expired  -- row exists, now >= expires_at
  absent   -- no row, or the owning user is deactivated

There is no background sweep. Expiry is detected lazily in validate_session(),
which deletes the expired row it finds. Expiry is absolute: it is fixed at
login and never extended by activity.

Every negative outcome (unknown username, wrong password, inactive user,
missing or expired token) is a None return, not an exception, and login
always spends one full bcrypt check [C1] so callers cannot tell the cases
apart by error type or timing. Store failures surface as OperationalError and
are not retried here.

The user-management calls (create/update/reset/list) are thin pass-throughs to
UserStore so the host shell has one object to talk to.

Layer rule: may import core.config for Settings; no imports from main.py.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta

from auth import passwords
from auth.db import Database
from auth.models import LoginResult, Role, User
from auth.store import SessionStore, UserStore
from core.config import Settings

logger = logging.getLogger("posauth.auth")


class AuthService:
    """Entry point for every caller-facing auth operation.

    Usage:
        db = Database(settings.resolved_database_url())
        service = AuthService(db, settings)
        result = service.login("alice", "pw1")
        if result is not None:
            user = service.validate_session(result.token)
    """

    def __init__(self, db: Database, settings: Settings) -> None:
        self._db = db
        self.settings = settings
        self.session_ttl = timedelta(hours=settings.session_ttl_hours)
        self.users = UserStore(db, bcrypt_rounds=settings.bcrypt_rounds)
        self.sessions = SessionStore(db)

    # ------------------------------------------------------------------
    # Session state machine
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> LoginResult | None:
        """Check credentials and issue a new session.

        Prior sessions for the same user stay valid; multiple concurrent
        sessions per user are allowed.

        Stamping last_login and inserting the session are two separate units
        of work. A crash between them leaves last_login updated with no session,
        which is acceptable.
        """
        creds = self.users.get_by_username(username)
        if creds is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            passwords.burn_verification(password, self.settings.bcrypt_rounds)
            logger.debug("Login rejected")
            return None
        if not creds.user.is_active:
            passwords.burn_verification(password, self.settings.bcrypt_rounds)
            logger.debug("Login rejected")
            return None
        if not passwords.verify_password(password, creds.password_hash):
            logger.debug("Login rejected")
            return None

        now = self._db.now()
        self.users.record_login(creds.user.id, now)
        session = self.sessions.create(creds.user.id, self.session_ttl)
        logger.info("User %r logged in (session %s)", creds.user.username, session.id)
        return LoginResult(user=replace(creds.user, last_login=now, updated_at=now), token=session.token)

    def validate_session(self, token: str) -> User | None:
        """Return the session's user if the token is valid, else None.

        A deactivated user's sessions are rejected but left in place; an
        expired session is deleted on sight. A successful check moves
        last_activity and nothing else.
        """
        with self._db.exclusive():
            found = self.sessions.find_by_token(token)
            if found is None:
                return None
            session, user = found
            if not user.is_active:
                return None
            if session.is_expired(self._db.now()):
                self.sessions.delete(token)
                logger.info("Session %s for user %r expired and was removed", session.id, user.username)
                return None
            self.sessions.touch(token)
        return user

    def logout(self, token: str) -> None:
        """Delete the session. A token that is already gone is not an error."""
        if self.sessions.delete(token):
            logger.info("Session logged out")

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------

    def list_users(self) -> list[User]:
        return self.users.list_all()

    def create_user(self, username: str, password: str, name: str, role: Role) -> User:
        return self.users.create_user(username, password, name, role)

    def update_user(self, user_id: str, name: str, role: Role, is_active: bool) -> None:
        self.users.update_user(user_id, name, role, is_active)

    def reset_password(self, user_id: str, new_password: str) -> None:
        self.users.reset_password(user_id, new_password)
