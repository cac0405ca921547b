"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper.
UserStore (the credential store) and SessionStore are the repositories;
_row_to_user / _row_to_session are the mappers. The auth service never
touches SQL directly.

Both stores share one auth.db.Database, so every method below is a single
serialized unit of work (see Database.connect()).

Security:
  All queries use bound parameters. No f-strings in SQL.
  The password hash leaves this module only inside UserCredentials, and only
  via get_by_username(), which the auth service uses for login.

Layer rule: no imports from core/ or main.py.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from auth import passwords
from auth.db import Database, sessions, users
from auth.errors import DuplicateUsername, NotFound, PasswordTooLong
from auth.models import Role, Session, User, UserCredentials

logger = logging.getLogger("posauth.store")

# Columns selected whenever a User is materialized without its hash.
_USER_COLUMNS = (
    users.c.id,
    users.c.username,
    users.c.name,
    users.c.role,
    users.c.is_active,
    users.c.last_login,
    users.c.created_at,
    users.c.updated_at,
)


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their bcrypt hashes.

    Usage:
        store = UserStore(db, bcrypt_rounds=12)
        alice = store.create_user("alice", "pw1", "Alice", Role.CASHIER)
        creds = store.get_by_username("alice")
    """

    def __init__(self, db: Database, bcrypt_rounds: int = 12) -> None:
        self._db = db
        self.bcrypt_rounds = bcrypt_rounds

    def create_default_admin(
        self,
        username: str = "admin",
        password: str = "admin123",
        name: str = "Administrator",
    ) -> User | None:
        """Insert the default administrator unless a user with that username exists.

        Returns the new User, or None when the account was already present.
        The existence check and insert run in one locked transaction, so two
        racing callers still produce exactly one row.
        """
        if self._username_taken(username):
            return None
        password_hash = self._hash(password)
        with self._db.connect() as conn:
            exists = conn.execute(select(users.c.id).where(users.c.username == username)).first()
            if exists is not None:
                return None
            user = self._insert(conn, username, password_hash, name, Role.ADMIN)
        logger.info("Created default administrator account %r", username)
        return user

    def create_user(self, username: str, password: str, name: str, role: Role) -> User:
        """Insert a new active user.

        Raises DuplicateUsername if the name is taken, PasswordTooLong if the
        password is over 72 bytes.
        """
        duplicate = DuplicateUsername(f"Username {username!r} already exists", context={"username": username})
        if self._username_taken(username):
            raise duplicate
        # Hash outside the lock; bcrypt is the slow part of this call. The
        # UNIQUE constraint catches a concurrent insert of the same name.
        password_hash = self._hash(password)
        with self._db.connect() as conn:
            try:
                user = self._insert(conn, username, password_hash, name, role)
            except IntegrityError:
                raise duplicate from None
        logger.info("Created user %r with role %s", username, role.value)
        return user

    def _hash(self, plain: str) -> str:
        """bcrypt-hash plain, rejecting input bcrypt would refuse or truncate."""
        if len(plain.encode("utf-8")) > passwords.MAX_PASSWORD_BYTES:
            raise PasswordTooLong(f"Password must be at most {passwords.MAX_PASSWORD_BYTES} bytes")
        return passwords.hash_password(plain, self.bcrypt_rounds)

    def _username_taken(self, username: str) -> bool:
        with self._db.connect() as conn:
            return conn.execute(select(users.c.id).where(users.c.username == username)).first() is not None

    def _insert(self, conn, username: str, password_hash: str, name: str, role: Role) -> User:
        now = self._db.now()
        user = User(
            id=passwords.generate_id(),
            username=username,
            name=name,
            role=role,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        conn.execute(
            users.insert().values(
                id=user.id,
                username=user.username,
                password=password_hash,
                name=user.name,
                role=user.role.value,
                is_active=1,
                last_login=None,
                created_at=now,
                updated_at=now,
            )
        )
        return user

    def update_user(self, user_id: str, name: str, role: Role, is_active: bool) -> None:
        """Update name, role and active flag. The password is left untouched.

        Raises NotFound if user_id does not exist.
        """
        with self._db.connect() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(name=name, role=role.value, is_active=1 if is_active else 0, updated_at=self._db.now())
            )
        if result.rowcount == 0:
            raise NotFound(f"User {user_id!r} not found", context={"id": user_id})

    def reset_password(self, user_id: str, new_password: str) -> None:
        """Replace the stored hash.

        Raises PasswordTooLong before looking up the user, NotFound if user_id
        does not exist.
        """
        password_hash = self._hash(new_password)
        with self._db.connect() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(password=password_hash, updated_at=self._db.now())
            )
        if result.rowcount == 0:
            raise NotFound(f"User {user_id!r} not found", context={"id": user_id})
        logger.info("Password reset for user %s", user_id)

    def record_login(self, user_id: str, at: datetime) -> None:
        """Stamp last_login and updated_at after a successful password check."""
        with self._db.connect() as conn:
            conn.execute(users.update().where(users.c.id == user_id).values(last_login=at, updated_at=at))

    def get_by_username(self, username: str) -> UserCredentials | None:
        """Exact, case-sensitive lookup including the hash. Login use only."""
        with self._db.connect() as conn:
            row = conn.execute(select(*_USER_COLUMNS, users.c.password).where(users.c.username == username)).first()
        if row is None:
            return None
        return UserCredentials(user=_row_to_user(row), password_hash=row.password)

    def get_by_id(self, user_id: str) -> User | None:
        with self._db.connect() as conn:
            row = conn.execute(select(*_USER_COLUMNS).where(users.c.id == user_id)).first()
        return _row_to_user(row) if row is not None else None

    def list_all(self) -> list[User]:
        """Return all users, newest created first."""
        with self._db.connect() as conn:
            rows = conn.execute(
                select(*_USER_COLUMNS).order_by(users.c.created_at.desc(), users.c.username)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def count(self) -> int:
        with self._db.connect() as conn:
            return conn.execute(select(func.count()).select_from(users)).scalar_one()


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for issued session tokens.

    There is no background expiry. Expired rows are removed by the auth
    service when it meets them during validation, or in bulk by
    purge_expired() when an operator asks for it.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self, user_id: str, ttl: timedelta) -> Session:
        """Issue a fresh session for user_id expiring ttl from now."""
        now = self._db.now()
        session = Session(
            id=passwords.generate_id(),
            user_id=user_id,
            token=passwords.generate_token(),
            expires_at=now + ttl,
            last_activity=now,
            created_at=now,
        )
        with self._db.connect() as conn:
            conn.execute(
                sessions.insert().values(
                    id=session.id,
                    user_id=session.user_id,
                    token=session.token,
                    expires_at=session.expires_at,
                    last_activity=session.last_activity,
                    created_at=session.created_at,
                )
            )
        return session

    def find_by_token(self, token: str) -> tuple[Session, User] | None:
        """Return the session joined with its owning user, or None."""
        stmt = (
            select(
                sessions.c.id.label("session_id"),
                sessions.c.user_id,
                sessions.c.token,
                sessions.c.expires_at,
                sessions.c.last_activity,
                sessions.c.created_at.label("session_created_at"),
                *_USER_COLUMNS,
            )
            .select_from(sessions.join(users, sessions.c.user_id == users.c.id))
            .where(sessions.c.token == token)
        )
        with self._db.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            return None
        return _row_to_session(row), _row_to_user(row)

    def touch(self, token: str) -> None:
        """Move last_activity to now. expires_at is never changed."""
        with self._db.connect() as conn:
            conn.execute(sessions.update().where(sessions.c.token == token).values(last_activity=self._db.now()))

    def delete(self, token: str) -> bool:
        """Remove the session. Returns False if there was nothing to remove."""
        with self._db.connect() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.token == token))
        return result.rowcount > 0

    def purge_expired(self) -> int:
        """Delete every session whose expiry has passed. Returns rows removed."""
        with self._db.connect() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.expires_at <= self._db.now()))
        if result.rowcount:
            logger.info("Purged %d expired session(s)", result.rowcount)
        return result.rowcount

    def count_for_user(self, user_id: str) -> int:
        with self._db.connect() as conn:
            return conn.execute(
                select(func.count()).select_from(sessions).where(sessions.c.user_id == user_id)
            ).scalar_one()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        name=row.name,
        role=Role.from_db(row.role),
        is_active=bool(row.is_active),
        last_login=row.last_login,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.session_id,
        user_id=row.user_id,
        token=row.token,
        expires_at=row.expires_at,
        last_activity=row.last_activity,
        created_at=row.session_created_at,
    )
