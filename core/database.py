"""
core/database.py -- SQLAlchemy engine factory.

One Engine is built at startup (api/main.py lifespan, or main.py for CLI
commands) and handed to every store. Stores never create engines of their
own, so tests can point all of them at one throwaway database and the
connection pool stays bounded process-wide.

Usage:
    engine = create_db_engine("sqlite:///./knowledgegate.db")
    users = UserStore(engine)
    sessions = SessionRegistry(engine)
    engine.dispose()
"""

from __future__ import annotations

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str, pool_size: int = 10) -> Engine:
    """Return an Engine for db_url.

    SQLite needs check_same_thread=False because FastAPI runs sync handlers in
    a thread pool. Server databases get an explicit pool bound instead.
    """
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _set_wal_mode)
        return engine
    return create_engine(db_url, pool_size=pool_size, pool_pre_ping=True)


def ping(engine: Engine) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
