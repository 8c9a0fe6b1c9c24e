"""
auth/store.py -- SQLAlchemy Core persistence layer for credential records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user is
the mapper. Service code never touches SQL directly.

Atomicity:
  Every multi-field transition is one UPDATE statement: arming a reset token
  (hash + expiry), disarming it, and rotating a password (new hash +
  password_changed_at + cleared reset fields). A crash or disconnect either
  applies the whole statement or none of it.

  rotate_password() optionally takes the reset hash the caller validated. The
  WHERE clause then re-checks hash and expiry, making reset consumption a
  compare-and-set: if a newer forgot-password request overwrote the hash in the
  meantime, zero rows match and the caller reports an invalid token.

Security:
  All queries use bound parameters. No f-strings in SQL.

Timestamps are stored as fixed-width UTC ISO strings (core.clock.to_iso), so
string comparison in SQL equals time comparison.

Layer rule: no imports from api/ or mail/.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine

from auth.models import Role, User
from core.clock import to_iso, utc_now

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
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.user.value),
    Column("password_changed_at", String(32)),
    Column("reset_token_hash", String(64), index=True),  # SHA-256 hex
    Column("reset_token_expires_at", String(32)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

# Fields a profile update may touch. Anything else goes through a dedicated method.
_PROFILE_FIELDS = frozenset({"name", "email"})


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
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for credential records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        uid = store.create_user(User(name="Ana", email="ana@x.com", hashed_password=digest))
        user = store.get_by_email("ana@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new credential and return its assigned ID.

        created_at comes from the record when the caller stamped it (services
        pass their own clock); direct inserts fall back to the current time.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=Role(user.role).value,
                    password_changed_at=user.password_changed_at,
                    is_active=1 if user.is_active else 0,
                    created_at=user.created_at or to_iso(utc_now()),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a credential by exact (already lower-cased) email."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_reset_hash(self, token_hash: str, now: datetime) -> User | None:
        """Return the credential holding this reset hash if it has not expired yet."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(
                    (_users.c.reset_token_hash == token_hash) & (_users.c.reset_token_expires_at > to_iso(now))
                )
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all credentials ordered by email. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Reset token state
    # ------------------------------------------------------------------

    def arm_reset(self, user_id: int, token_hash: str, expires_at: datetime) -> bool:
        """Store a reset hash and its expiry, replacing any previous pair.

        The replaced token becomes unusable the moment this commits.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(reset_token_hash=token_hash, reset_token_expires_at=to_iso(expires_at))
            )
            conn.commit()
        return result.rowcount > 0

    def clear_reset(self, user_id: int, token_hash: str) -> bool:
        """Clear the reset pair, but only if it still holds token_hash.

        A newer request may have re-armed the record since; that state belongs
        to someone else and is left alone. Returns True if a row was cleared.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.reset_token_hash == token_hash))
                .values(reset_token_hash=None, reset_token_expires_at=None)
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Password rotation
    # ------------------------------------------------------------------

    def rotate_password(
        self,
        user_id: int,
        hashed_password: str,
        changed_at: datetime,
        *,
        expected_reset_hash: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Replace the password hash and clear any reset state in one statement.

        With expected_reset_hash set, the update only applies while the record
        still holds that hash with an expiry after `now`. Returns True if the
        row was updated.
        """
        condition = _users.c.id == user_id
        if expected_reset_hash is not None:
            condition = (
                condition
                & (_users.c.reset_token_hash == expected_reset_hash)
                & (_users.c.reset_token_expires_at > to_iso(now or utc_now()))
            )
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(condition)
                .values(
                    hashed_password=hashed_password,
                    password_changed_at=to_iso(changed_at),
                    reset_token_hash=None,
                    reset_token_expires_at=None,
                )
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Profile / lifecycle
    # ------------------------------------------------------------------

    def update_profile(self, user_id: int, **fields) -> bool:
        """Update name and/or email.

        Unknown keys raise ValueError rather than being silently ignored, which
        keeps password and role changes out of this path. Raises IntegrityError
        if the new email belongs to another record.
        """
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {unknown!r}")
        if not fields:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def set_active(self, user_id: int, active: bool) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(is_active=1 if active else 0))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a record. Outstanding session tokens for it stop working."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        password_changed_at=row.password_changed_at,
        reset_token_hash=row.reset_token_hash,
        reset_token_expires_at=row.reset_token_expires_at,
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )
