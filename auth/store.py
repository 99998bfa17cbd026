"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore (credential store) and SessionStore (session store) are the
repositories; _row_to_user / _row_to_session are the mappers. Route,
dependency and session-manager code never touches SQL directly.

Both stores are constructed around an Engine built once at startup by
create_store_engine() and passed in explicitly. There is no module-level
client: the engine's lifetime is the process lifetime, owned by the app
lifespan (or by the CLI / test fixture that created it).

Security:
  All queries use bound parameters. No f-strings in SQL.
  Sessions are keyed by token_hash (UNIQUE), never by the raw token.

Timestamps are stored as fixed-width UTC ISO 8601 strings
(timespec="microseconds"), so lexicographic order equals time order and the
expiry sweep can compare them in SQL.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Role, Session, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("full_name", String(255)),
    Column("role", String(10), nullable=False),  # "ADMIN", "GURU", "SISWA"
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex
    # Weak reference: no FOREIGN KEY, no cascade. Orphans fail validation.
    Column("user_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str) -> Engine:
    """Build the Engine shared by UserStore and SessionStore.

    check_same_thread=False because FastAPI runs sync route handlers in a
    thread pool; connections are still used by one thread at a time.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_iso(moment: datetime) -> str:
    """Render a timezone-aware datetime as a fixed-width UTC ISO string."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        engine = create_store_engine("sqlite:///classhub.db")
        store = UserStore(engine)
        store.create_user(User(username="admin1", password_hash=hash_password("s3cret"), role=Role.ADMIN))
        user = store.get_by_username("admin1")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine, tables=[_users])

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    password_hash=user.password_hash,
                    full_name=user.full_name,
                    role=Role(user.role).value,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, roles: tuple[Role, ...] = ()) -> list[User]:
        """Return users ordered by username, optionally restricted to some roles."""
        query = _users.select().order_by(_users.c.username)
        if roles:
            query = query.where(_users.c.role.in_([r.value for r in roles]))
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Sessions owned by the user are left in place; validation of those
        sessions fails closed because the user lookup returns None.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for Session rows keyed by token hash."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine, tables=[_sessions])

    def create(self, session: Session) -> int:
        """Insert a session row and return its ID.

        Raises sqlalchemy.exc.IntegrityError on a duplicate token hash, which
        with 256-bit tokens only happens if the caller reuses a token.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.insert().values(
                    token_hash=session.token_hash,
                    user_id=session.user_id,
                    created_at=session.created_at,
                    expires_at=session.expires_at,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_hash(self, token_hash: str) -> Session | None:
        """Return the session row for token_hash, expired or not. None if absent."""
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token_hash == token_hash)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_by_hash(self, token_hash: str) -> bool:
        """Delete the row for token_hash. Returns False if there was none."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.token_hash == token_hash))
            conn.commit()
        return result.rowcount > 0

    def delete_expired(self, now_iso: str) -> int:
        """Delete every row with expires_at <= now_iso. Returns rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= now_iso))
            conn.commit()
        return result.rowcount

    def count_for_user(self, user_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_sessions).where(_sessions.c.user_id == user_id)
            ).scalar()
        return result or 0


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        full_name=row.full_name,
        role=Role(row.role),
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        token_hash=row.token_hash,
        user_id=row.user_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )
