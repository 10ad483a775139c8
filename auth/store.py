"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_credential are the mappers.
Route and dependency code never touches SQL directly.

Two logical collections:
  users        -- identities (id, email, display_name, created_at)
  credentials  -- bcrypt password hashes, one row per user

Identifiers:
  User ids are uuid4().hex strings. get_by_id() checks the format explicitly
  before querying (is_valid_user_id) and treats a malformed id as "not found".
  A token can carry any JSON value in its userId claim, so a malformed id is
  an expected input here, not a programming error.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  One Engine (and its connection pool) is shared by every in-flight request.
  Each method checks out its own connection, so concurrent reads need no
  locking here. SQLite runs in WAL mode so readers never block on writers.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Credential, User

logger = logging.getLogger("usergate.auth.store")

_DEFAULT_DB_URL = "sqlite:///usergate.db"

_USER_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("display_name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_credentials = Table(
    "credentials",
    _metadata,
    Column("user_id", String(32), ForeignKey("users.id"), primary_key=True),
    Column("hashed_password", Text, nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_user_id() -> str:
    return uuid.uuid4().hex


def is_valid_user_id(value: object) -> bool:
    """Return True if value is addressable as a users.id primary key."""
    return isinstance(value, str) and _USER_ID_PATTERN.match(value) is not None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Credential records.

    Usage:
        store = UserStore()
        uid = store.create_user(User(email="a@x.com", display_name="A"), hash_password("secret"))
        user = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User, hashed_password: str | None = None) -> str:
        """Insert a user (and optionally its credential) and return the new id.

        Both rows are written in one transaction so a user never exists with a
        half-written credential. Raises sqlalchemy.exc.IntegrityError if the
        email is already registered.
        """
        user_id = new_user_id()
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    display_name=user.display_name,
                    created_at=_now_iso(),
                )
            )
            if hashed_password is not None:
                conn.execute(_credentials.insert().values(user_id=user_id, hashed_password=hashed_password))
        return user_id

    def delete_user(self, user_id: str) -> bool:
        """Delete a user and its credential. Returns True if the user existed."""
        with self.engine.begin() as conn:
            conn.execute(_credentials.delete().where(_credentials.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def get_by_id(self, user_id: object) -> User | None:
        """Look up a user by primary key. Returns None if not found.

        A value that cannot be a users.id (wrong type or format) is logged and
        reported as not found rather than sent to the database.
        """
        if not is_valid_user_id(user_id):
            logger.warning("Received invalid user id")
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_credential(self, user_id: str) -> Credential | None:
        """Return the stored password hash for a user, or None if none exists."""
        with self.engine.connect() as conn:
            row = conn.execute(_credentials.select().where(_credentials.c.user_id == user_id)).fetchone()
        return _row_to_credential(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        created_at=row.created_at,
    )


def _row_to_credential(row) -> Credential:
    return Credential(user_id=row.user_id, hashed_password=row.hashed_password)
