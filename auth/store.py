"""
auth/store.py -- SQLAlchemy Core persistence for users and live sessions.

Pattern: Repository + Data Mapper. UserStore and SessionRegistry are the
repositories; _row_to_user / _row_to_session are the mappers. Route and
service code never touches SQL directly.

Both repositories receive an Engine rather than building one, so they share
the process-wide connection pool (see core/database.py). Nothing here caches
rows: every authentication re-reads current state, which is what makes
logout and supersession take effect on the very next request.

Security:
  All queries use bound parameters. No f-strings in SQL.

Single session per account:
  replace_for_user() deletes every row for the user and inserts the new one
  inside a single transaction, and active_sessions has UNIQUE(user_id). Two
  concurrent logins for one account therefore cannot both leave a row: the
  loser hits IntegrityError and retries once, superseding the winner (last
  login wins).

Layer rule: no imports from api/ or knowledge/.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Role, Session, User
from core.config import now_iso

logger = logging.getLogger("knowledgegate.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

active_sessions = Table(
    "active_sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("session_token", Text, nullable=False),
    Column("ip_address", String(45)),
    Column("user_agent", Text),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    UniqueConstraint("user_id", name="uq_session_user"),
    UniqueConstraint("session_token", name="uq_session_token"),
)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(engine)
        store.create_user(User(email="ops@example.org", role=Role.superadmin, password_hash=hash_password("...")))
        user = store.get_active_by_email("ops@example.org")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                users.insert().values(
                    email=user.email,
                    password_hash=user.password_hash,
                    role=Role(user.role).value,
                    is_active=1 if user.is_active else 0,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up any user (active or not) by exact email."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_active_by_email(self, email: str) -> User | None:
        """Look up a user by email among active accounts only. Used by login."""
        with self.engine.connect() as conn:
            row = conn.execute(
                users.select().where((users.c.email == email) & (users.c.is_active == 1))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def set_active(self, user_id: int, is_active: bool) -> bool:
        """Flip the is_active flag. Returns False if user_id does not exist."""
        with self.engine.connect() as conn:
            result = conn.execute(
                users.update().where(users.c.id == user_id).values(is_active=1 if is_active else 0)
            )
            conn.commit()
        return result.rowcount > 0

    def count_admins(self) -> int:
        """Return the number of admin and superadmin accounts."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(users)
                .where(users.c.role.in_([Role.admin.value, Role.superadmin.value]))
            ).scalar()
        return result or 0


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionRegistry:
    """Repository for server-side session rows.

    A bearer token only authenticates while find_active() returns its row.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    def replace_for_user(self, session: Session) -> int:
        """Delete all sessions for session.user_id and insert this one atomically.

        Returns the new row ID.
        """
        try:
            return self._replace(session)
        except IntegrityError:
            # A concurrent login for the same account committed between our
            # delete and insert. Run again so this login supersedes it.
            logger.warning("Concurrent login detected for user_id=%s; retrying session replace", session.user_id)
            return self._replace(session)

    def _replace(self, session: Session) -> int:
        with self.engine.begin() as conn:
            removed = conn.execute(active_sessions.delete().where(active_sessions.c.user_id == session.user_id))
            result = conn.execute(
                active_sessions.insert().values(
                    user_id=session.user_id,
                    session_token=session.session_token,
                    ip_address=session.ip_address,
                    user_agent=session.user_agent,
                    created_at=now_iso(),
                    expires_at=session.expires_at,
                )
            )
            superseded = removed.rowcount
            session_id = result.inserted_primary_key[0]
        if superseded:
            logger.info("Superseded %d prior session(s) for user_id=%s", superseded, session.user_id)
        return session_id

    def find_active(self, user_id: int, token: str, now: str | None = None) -> Session | None:
        """Return the unexpired session for this exact (user_id, token) pair.

        Sessions of deactivated users are treated as absent.
        """
        cutoff = now or now_iso()
        query = (
            select(active_sessions, users.c.email.label("owner_email"))
            .join(users, users.c.id == active_sessions.c.user_id)
            .where(
                (active_sessions.c.user_id == user_id)
                & (active_sessions.c.session_token == token)
                & (active_sessions.c.expires_at > cutoff)
                & (users.c.is_active == 1)
            )
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_by_token(self, token: str) -> bool:
        """Remove the session holding token. Returns False if none existed."""
        with self.engine.connect() as conn:
            result = conn.execute(active_sessions.delete().where(active_sessions.c.session_token == token))
            conn.commit()
        return result.rowcount > 0

    def count_for_user(self, user_id: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(active_sessions).where(active_sessions.c.user_id == user_id)
            ).scalar()
        return result or 0

    def list_active(self, now: str | None = None) -> list[Session]:
        """Return all unexpired sessions with their owner's email, newest first."""
        cutoff = now or now_iso()
        query = (
            select(active_sessions, users.c.email.label("owner_email"))
            .join(users, users.c.id == active_sessions.c.user_id)
            .where(active_sessions.c.expires_at > cutoff)
            .order_by(active_sessions.c.created_at.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_session(r) for r in rows]

    def purge_expired(self, now: str | None = None) -> int:
        """Delete expired sessions. Returns the number of rows removed."""
        cutoff = now or now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(active_sessions.delete().where(active_sessions.c.expires_at <= cutoff))
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        role=Role(row.role),
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        session_token=row.session_token,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
        expires_at=row.expires_at,
        owner_email=getattr(row, "owner_email", None),
    )
