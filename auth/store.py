"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_refresh_token are the
mappers. Route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Refresh tokens are stored as HMAC hashes only (see auth/tokens.py).

Timestamps:
  All timestamps are ISO 8601 UTC strings written with a fixed microsecond
  precision, so lexicographic order equals chronological order and the purge
  query can compare them as plain strings.

DB path: auth/sessionkeeper_auth.db unless DATABASE_URL is set.

Layer rule: no imports from api/ or session/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import RefreshToken, User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'sessionkeeper_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="member"),
    Column("created_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("last_login", Text),  # ISO 8601 timestamp of last successful login
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("is_revoked", Integer, nullable=False, server_default="0"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    The status route is hit twice a second per open session; WAL lets those
    reads proceed while a login or rotation is writing.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_iso(moment: datetime) -> str:
    """Format an aware datetime as a fixed-width UTC ISO string."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and RefreshToken entities.

    Every write runs in its own transaction (engine.begin()), so there is no
    commit bookkeeping in the query methods.

    Usage:
        store = UserStore()
        uid = store.create_user(User(username="alice", hashed_password=hash_password("secret")))
        store.create_refresh_token(RefreshToken(user_id=uid, token_hash=h, expires_at=iso))
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        is_sqlite = db_url.startswith("sqlite")
        self.engine: Engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False} if is_sqlite else {},
        )
        if is_sqlite:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------

    def _first(self, statement):
        with self.engine.connect() as conn:
            return conn.execute(statement).fetchone()

    def _insert(self, statement) -> int:
        with self.engine.begin() as conn:
            return conn.execute(statement).inserted_primary_key[0]

    def _modify(self, statement) -> int:
        """Run an UPDATE or DELETE and return the number of rows it touched."""
        with self.engine.begin() as conn:
            return conn.execute(statement).rowcount

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        return self._first(select(_users.c.id).limit(1)) is not None

    def create_user(self, user: User) -> int:
        """Insert a user and return its ID. Duplicate usernames raise IntegrityError."""
        return self._insert(
            _users.insert().values(
                username=user.username,
                hashed_password=user.hashed_password,
                role=user.role,
                is_active=int(user.is_active),
                created_at=_now_iso(),
            )
        )

    def get_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive match."""
        row = self._first(_users.select().where(_users.c.username == username))
        return None if row is None else _row_to_user(row)

    def get_by_id(self, user_id: int) -> User | None:
        row = self._first(_users.select().where(_users.c.id == user_id))
        return None if row is None else _row_to_user(row)

    def set_active(self, user_id: int, is_active: bool) -> bool:
        """Enable or disable a user. False if user_id does not exist.

        A disabled user's refresh tokens stay in place but no longer renew.
        """
        return self._modify(_users.update().where(_users.c.id == user_id).values(is_active=int(is_active))) > 0

    def update_last_login(self, user_id: int) -> None:
        self._modify(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    @staticmethod
    def _token_values(token: RefreshToken) -> dict:
        return {
            "user_id": token.user_id,
            "token_hash": token.token_hash,
            "expires_at": token.expires_at,
            "created_at": _now_iso(),
            "is_revoked": 0,
        }

    def create_refresh_token(self, token: RefreshToken) -> int:
        return self._insert(_refresh_tokens.insert().values(**self._token_values(token)))

    def get_refresh_token(self, token_hash: str) -> RefreshToken | None:
        """Look up a non-revoked refresh token by hash. Expiry is NOT checked here.

        The caller decides how to treat an expired record: the status query
        reports it as expired, the extend-session path may accept it within
        the grace window.
        """
        row = self._first(
            _refresh_tokens.select().where(
                (_refresh_tokens.c.token_hash == token_hash) & (_refresh_tokens.c.is_revoked == 0)
            )
        )
        return None if row is None else _row_to_refresh_token(row)

    def rotate_refresh_token(self, old_hash: str, new_token: RefreshToken) -> int:
        """Replace one refresh token with another in a single transaction.

        The old record is deleted rather than revoked so a stolen copy of the
        old cookie cannot even be reported as "revoked" to a prober.
        """
        with self.engine.begin() as conn:
            conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token_hash == old_hash))
            result = conn.execute(_refresh_tokens.insert().values(**self._token_values(new_token)))
            return result.inserted_primary_key[0]

    def revoke_refresh_token(self, token_hash: str) -> bool:
        """Mark a refresh token revoked. True only if an active token was revoked."""
        statement = (
            _refresh_tokens.update()
            .where((_refresh_tokens.c.token_hash == token_hash) & (_refresh_tokens.c.is_revoked == 0))
            .values(is_revoked=1)
        )
        return self._modify(statement) > 0

    def purge_refresh_tokens(self, older_than: datetime | None = None) -> int:
        """Delete revoked tokens and tokens that expired before older_than (default: now).

        Returns the number of rows removed.
        """
        cutoff = to_iso(older_than or datetime.now(timezone.utc))
        return self._modify(
            _refresh_tokens.delete().where(
                (_refresh_tokens.c.expires_at < cutoff) | (_refresh_tokens.c.is_revoked == 1)
            )
        )

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
        last_login=row.last_login,
        is_active=bool(row.is_active),
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        expires_at=row.expires_at,
        created_at=row.created_at,
        is_revoked=bool(row.is_revoked),
    )
