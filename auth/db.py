"""
auth/db.py -- SQLAlchemy Core schema and the serialized connection wrapper.

Uses SQLAlchemy Core (not ORM) so the dataclasses in auth/models.py remain the
authoritative domain representation. UserStore and SessionStore in
auth/store.py are the repositories; this module only owns the tables, the
engine and the locking discipline.

Concurrency:
  SQLite does not tolerate unsynchronized concurrent writers, so every unit of
  work goes through Database.connect(), which holds a process-wide RLock for
  the duration of one engine.begin() transaction. The lock is re-entrant so the
  auth service can group several store calls under Database.exclusive().

Error mapping:
  Any SQLAlchemyError escaping a unit of work is re-raised as
  auth.errors.OperationalError with the driver error chained. Stores that need
  a more specific error (e.g. DuplicateUsername on the UNIQUE constraint) catch
  IntegrityError inside the block, before it reaches the wrapper.

Timestamps:
  UTCDateTime stores aware datetimes as fixed-width ISO 8601 text
  (microseconds + "+00:00"), so values compare correctly both in Python and
  lexicographically in SQL.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    create_engine,
    event,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from auth.errors import OperationalError

logger = logging.getLogger("posauth.store")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Column types
# ---------------------------------------------------------------------------


class UTCDateTime(TypeDecorator):
    """Aware datetime <-> ISO 8601 text, normalized to UTC."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> str | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetimes cannot be stored; attach a timezone first")
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

    def process_result_value(self, value: str | None, dialect) -> datetime | None:
        if value is None:
            return None
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            # Rows written by older builds without an offset are UTC.
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash, never plaintext
    Column("name", String(255), nullable=False),
    Column("role", String(16), nullable=False),  # "ADMIN" | "CASHIER"
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("last_login", UTCDateTime),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", UTCDateTime, nullable=False),
    Column("last_activity", UTCDateTime, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Index("idx_sessions_user_id", "user_id"),
    Index("idx_sessions_token", "token"),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journaling and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON is what makes the sessions
    ON DELETE CASCADE actually fire.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _is_memory_url(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class Database:
    """Engine + mutual-exclusion wrapper shared by the user and session stores.

    Usage:
        db = Database("sqlite:////var/lib/pos/pos.db")
        with db.connect() as conn:
            conn.execute(...)
        db.close()

    clock is injectable so tests can move time forward without sleeping.
    """

    def __init__(self, db_url: str, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock
        self._lock = threading.RLock()
        kwargs: dict = {}
        if db_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_url(db_url):
                # One shared connection, otherwise each pooled connection
                # would see its own blank in-memory database.
                kwargs["poolclass"] = StaticPool
        try:
            self.engine: Engine = create_engine(db_url, **kwargs)
            if db_url.startswith("sqlite"):
                event.listen(self.engine, "connect", _set_sqlite_pragmas)
            with self._lock:
                metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise OperationalError(f"Could not open auth store: {exc}") from exc
        logger.debug("Auth store ready at %s", self.engine.url.render_as_string(hide_password=True))

    def now(self) -> datetime:
        return self.clock()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the store lock across several units of work."""
        with self._lock:
            yield

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """One serialized transaction: commit on success, rollback on error."""
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    yield conn
            except SQLAlchemyError as exc:
                logger.error("Auth store operation failed: %s", exc.__class__.__name__)
                raise OperationalError(str(exc)) from exc

    def close(self) -> None:
        self.engine.dispose()
