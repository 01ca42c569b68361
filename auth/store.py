"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_profile are the mappers.
Route and service code never touches SQL directly.

Projection:
  Every read that can reach a response selects _PUBLIC_COLUMNS only, so the
  password hash never leaves this module except through get_by_email() and
  create_user(), which the auth service needs for sign-in and sign-up.

Errors:
  Missing rows raise NotFound. A UNIQUE(email) violation raises DuplicateEmail
  -- two concurrent sign-ups with the same email resolve here, at the
  constraint, not in application code. Any other SQLAlchemyError is logged
  and re-raised as DataAccessError. Nothing is retried.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import ROLE_USER, User, UserProfile
from auth.tokens import DEFAULT_BCRYPT_ROUNDS, hash_password
from core.errors import DataAccessError, DuplicateEmail, NotFound

logger = logging.getLogger("acquisitions.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("role", String(50), nullable=False, server_default=ROLE_USER),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_PUBLIC_COLUMNS = (
    _users.c.id,
    _users.c.name,
    _users.c.email,
    _users.c.role,
    _users.c.created_at,
    _users.c.updated_at,
)

# Columns update_user() accepts. Anything else is a programming error.
_UPDATABLE = {"name", "email", "password", "role"}


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


def _is_email_conflict(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: users.email"
    # Postgres: 'duplicate key value violates unique constraint "users_email_key"'
    return "email" in str(exc.orig).lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User rows.

    Usage:
        store = UserStore("sqlite:///./acquisitions.db")
        user = store.create_user("Ada", "ada@example.com", hash_password("secret123"))
        profile = store.get_user(user.id)
        store.close()
    """

    def __init__(self, db_url: str, bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        self.bcrypt_rounds = bcrypt_rounds
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, name: str, email: str, hashed_password: str, role: str = ROLE_USER) -> User:
        """Insert a new user and return the full row (hash included).

        Raises DuplicateEmail if the email is already taken.
        """
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=name,
                        email=email,
                        password=hashed_password,
                        role=role,
                        created_at=now,
                        updated_at=now,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            if _is_email_conflict(exc):
                raise DuplicateEmail() from exc
            logger.error("Error creating user %s: %s", email, exc)
            raise DataAccessError("Failed to create user") from exc
        except SQLAlchemyError as exc:
            logger.error("Error creating user %s: %s", email, exc)
            raise DataAccessError("Failed to create user") from exc

        return User(
            id=user_id,
            name=name,
            email=email,
            hashed_password=hashed_password,
            role=role,
            created_at=now,
            updated_at=now,
        )

    def update_user(self, user_id: int, fields: dict[str, Any]) -> UserProfile:
        """Apply a partial update and return the updated profile.

        A plaintext `password` in `fields` is hashed before it is stored.
        updated_at is always stamped, even when the values are unchanged.

        Raises NotFound if the user does not exist, DuplicateEmail if a new
        email collides with another account.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")

        self.get_user(user_id)

        values = dict(fields)
        if "password" in values:
            values["password"] = hash_password(values["password"], self.bcrypt_rounds)
        values["updated_at"] = _now_iso()

        try:
            with self.engine.begin() as conn:
                conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
        except IntegrityError as exc:
            if _is_email_conflict(exc):
                raise DuplicateEmail() from exc
            logger.error("Error updating user %s: %s", user_id, exc)
            raise DataAccessError("Failed to update user") from exc
        except SQLAlchemyError as exc:
            logger.error("Error updating user %s: %s", user_id, exc)
            raise DataAccessError("Failed to update user") from exc

        logger.info("User %s updated (%s)", user_id, ", ".join(sorted(fields)))
        return self.get_user(user_id)

    def delete_user(self, user_id: int) -> UserProfile:
        """Permanently delete a user and return the profile it had.

        Raises NotFound if the user does not exist.
        """
        profile = self.get_user(user_id)
        try:
            with self.engine.begin() as conn:
                conn.execute(_users.delete().where(_users.c.id == user_id))
        except SQLAlchemyError as exc:
            logger.error("Error deleting user %s: %s", user_id, exc)
            raise DataAccessError("Failed to delete user") from exc

        logger.info("User %s deleted", user_id)
        return profile

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_users(self) -> list[UserProfile]:
        """Return every user's profile, ordered by id."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(select(*_PUBLIC_COLUMNS).order_by(_users.c.id)).fetchall()
        except SQLAlchemyError as exc:
            logger.error("Error getting users: %s", exc)
            raise DataAccessError("Failed to list users") from exc
        return [_row_to_profile(r) for r in rows]

    def get_user(self, user_id: int) -> UserProfile:
        """Return one user's profile. Raises NotFound if there is no such user."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(*_PUBLIC_COLUMNS).where(_users.c.id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Error getting user %s: %s", user_id, exc)
            raise DataAccessError("Failed to get user") from exc
        if row is None:
            raise NotFound()
        return _row_to_profile(row)

    def get_by_email(self, email: str) -> User | None:
        """Look up the full row (hash included) by exact email. None if absent."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Error getting user by email %s: %s", email, exc)
            raise DataAccessError("Failed to get user") from exc
        return _row_to_user(row) if row is not None else None

    def ping(self) -> bool:
        """Run a trivial query to check the database is reachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_profile(row) -> UserProfile:
    return UserProfile(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.password,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
