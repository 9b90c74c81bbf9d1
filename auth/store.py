"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and route code never touches SQL directly.

Uniqueness:
  email and username carry UNIQUE constraints. create_user() and
  update_user() issue a single INSERT/UPDATE and translate IntegrityError into
  DuplicateError, so two concurrent registrations with the same email cannot
  both succeed. There is no check-then-write window.

Refresh tokens:
  Valid refresh-token ids (JWT jti) live in their own table, one row per
  token. remove_refresh_token() is a conditional DELETE whose rowcount tells
  the caller whether it consumed the token, which makes rotation safe against
  concurrent replay. Rows per user are capped at max_refresh_tokens; the
  oldest rows are evicted first and expired rows are pruned on every add.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.exceptions import DuplicateError, NotFoundError
from auth.models import ROLES, User
from auth.passwords import PasswordHasher

logger = logging.getLogger("wateraccounts.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(255), nullable=False, server_default=""),
    Column("last_name", String(255), nullable=False, server_default=""),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("last_login", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("jti", String(64), primary_key=True),
    Column("user_id", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)

# Fields update_user() accepts. "password" is hashed into hashed_password.
_UPDATABLE_FIELDS = {"email", "username", "first_name", "last_name", "role", "is_active", "password"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


# Fixed-width timestamps so string comparison in SQL matches time order.
def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their refresh-token ids.

    Usage:
        store = UserStore("sqlite:///accounts.db", PasswordHasher())
        user = store.create_user(email="jane@x.com", username="jane", password="secret1")
        store.get_by_email("jane@x.com")
        store.close()
    """

    def __init__(self, db_url: str, hasher: PasswordHasher, max_refresh_tokens: int = 10) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self.hasher = hasher
        self.max_refresh_tokens = max_refresh_tokens

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        return self._get_one(_users.c.id == user_id)

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        return self._get_one(_users.c.email == email)

    def get_by_username(self, username: str) -> User | None:
        return self._get_one(_users.c.username == username)

    def _get_one(self, clause) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(clause)).fetchone()
            if row is None:
                return None
            tokens = self._token_ids(conn, row.id)
        return _row_to_user(row, tokens)

    def create_user(
        self,
        email: str,
        username: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        role: str = "user",
    ) -> User:
        """Hash the password, insert a new user, and return the stored record.

        The INSERT is the uniqueness check: a taken email or username raises
        DuplicateError naming the conflicting field.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        user_id = uuid.uuid4().hex
        now = _now_iso()
        hashed = self.hasher.hash(password)
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        email=email,
                        username=username,
                        hashed_password=hashed,
                        first_name=first_name,
                        last_name=last_name,
                        role=role,
                        is_active=1,
                        last_login=None,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            duplicate = self._find_duplicate(email=email, username=username)
            if duplicate is None:
                raise
            raise duplicate from exc
        logger.info("Created user %s", user_id)
        return self.get_by_id(user_id)

    def update_user(self, user_id: str, **fields) -> User:
        """Shallow-merge fields into an existing user and return the result.

        Accepted fields: email, username, first_name, last_name, role,
        is_active, password. A plaintext password is re-hashed before storage.
        Raises NotFoundError if user_id is absent, DuplicateError if an email or
        username change collides with another account.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        if "role" in fields and fields["role"] not in ROLES:
            raise ValueError(f"Unknown role: {fields['role']!r}")
        values = dict(fields)
        if "password" in values:
            values["hashed_password"] = self.hasher.hash(values.pop("password"))
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        values["updated_at"] = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
        except IntegrityError as exc:
            duplicate = self._find_duplicate(email=fields.get("email"), username=fields.get("username"), exclude_id=user_id)
            if duplicate is None:
                raise
            raise duplicate from exc
        if result.rowcount == 0:
            raise NotFoundError(user_id)
        return self.get_by_id(user_id)

    def record_login(self, user_id: str) -> None:
        """Stamp the current UTC timestamp as last_login for the given user."""
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=now, updated_at=now))
        if result.rowcount == 0:
            raise NotFoundError(user_id)

    def _find_duplicate(
        self,
        email: str | None,
        username: str | None,
        exclude_id: str | None = None,
    ) -> DuplicateError | None:
        """Work out which unique column an IntegrityError tripped on.

        Returns None when neither email nor username is held by another row.
        """
        if email is not None:
            other = self.get_by_email(email)
            if other is not None and other.id != exclude_id:
                return DuplicateError("email")
        if username is not None:
            other = self.get_by_username(username)
            if other is not None and other.id != exclude_id:
                return DuplicateError("username")
        return None

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def add_refresh_token(self, user_id: str, jti: str, expires_at: datetime) -> None:
        """Record jti as a valid refresh token for user_id.

        Expired ids for the user are dropped first. If the user then holds more
        than max_refresh_tokens ids, the oldest are evicted.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.expires_at <= now)
                )
            )
            conn.execute(
                _refresh_tokens.insert().values(
                    jti=jti,
                    user_id=user_id,
                    created_at=now,
                    expires_at=_to_iso(expires_at),
                )
            )
            keep = (
                select(_refresh_tokens.c.jti)
                .where(_refresh_tokens.c.user_id == user_id)
                .order_by(_refresh_tokens.c.created_at.desc(), _refresh_tokens.c.jti.desc())
                .limit(self.max_refresh_tokens)
            )
            evicted = conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.jti.not_in(keep))
                )
            ).rowcount
        if evicted:
            logger.info("Evicted %d old refresh token(s) for user %s", evicted, user_id)

    def remove_refresh_token(self, user_id: str, jti: str) -> bool:
        """Delete one refresh token id. Returns True if this call removed it."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _refresh_tokens.delete().where((_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.jti == jti))
            )
        return result.rowcount > 0

    def remove_all_refresh_tokens(self, user_id: str) -> int:
        """Delete every refresh token id for user_id. Returns the number removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.user_id == user_id))
        return result.rowcount

    def has_refresh_token(self, user_id: str, jti: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_refresh_tokens.c.jti).where(
                    (_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.jti == jti)
                )
            ).fetchone()
        return row is not None

    def get_refresh_token_ids(self, user_id: str) -> set[str]:
        with self.engine.connect() as conn:
            return self._token_ids(conn, user_id)

    @staticmethod
    def _token_ids(conn: Connection, user_id: str) -> set[str]:
        rows = conn.execute(select(_refresh_tokens.c.jti).where(_refresh_tokens.c.user_id == user_id)).fetchall()
        return {r.jti for r in rows}

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, refresh_tokens: set[str]) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        role=row.role,
        is_active=bool(row.is_active),
        last_login=row.last_login,
        created_at=row.created_at,
        updated_at=row.updated_at,
        refresh_tokens=refresh_tokens,
    )
