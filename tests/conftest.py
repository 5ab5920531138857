"""
tests/conftest.py -- Shared test fixtures for KnowledgeGate tests.

This module provides:
  - engine / users / sessions / knowledge: stores on a per-test SQLite file
  - accounts: one superadmin and two admins, all sharing PASSWORD
  - client: TestClient on the real app with a patched lifespan
  - login_as: logs an account in over HTTP and returns its bearer token

Design: each test gets its own database file under tmp_path. TestClient runs
sync route handlers in a thread pool, so an on-disk file (shared by every
pooled connection) is simpler than a shared-cache in-memory URI.

Environment variables must be set before any auth/core import:
  DEBUG          -- lets get_settings() auto-generate SECRET_KEY
  ALLOWED_HOSTS  -- TrustedHostMiddleware must accept TestClient's "testserver"
  LOGIN_RATE_LIMIT -- read once when the login route is decorated
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from types import SimpleNamespace

# CRITICAL: Set env before any auth/core import; get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ["ALLOWED_HOSTS"] = '["testserver", "localhost", "127.0.0.1"]'
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"
os.environ["ADMIN_EMAIL_DOMAIN"] = ""

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role, User
from auth.store import SessionRegistry, UserStore
from auth.tokens import hash_password
from core.config import now_iso
from core.database import create_db_engine
from knowledge.attachments import AttachmentStore
from knowledge.service import KnowledgeService
from knowledge.store import KnowledgeStore, admin_requests

PASSWORD = "Corr3ct-Horse!"

# bcrypt is deliberately slow; hash once for every seeded account.
_PASSWORD_HASH = hash_password(PASSWORD)

MAX_UPLOAD_BYTES = 1024


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'knowledgegate.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def users(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def sessions(engine, users) -> SessionRegistry:
    return SessionRegistry(engine)


@pytest.fixture
def knowledge_store(engine, users) -> KnowledgeStore:
    # users fixture first: pending/history queries join the users table.
    return KnowledgeStore(engine)


@pytest.fixture
def attachments(tmp_path) -> AttachmentStore:
    return AttachmentStore(tmp_path / "uploads")


@pytest.fixture
def knowledge(knowledge_store, attachments) -> KnowledgeService:
    return KnowledgeService(knowledge_store, attachments, max_upload_bytes=MAX_UPLOAD_BYTES)


@pytest.fixture
def add_admin_request(engine, knowledge_store) -> Callable[..., None]:
    """Insert a role-upgrade row the way the external workflow writes it."""

    def _add(requester_id: int, requested_role: str, status: str = "pending") -> None:
        with engine.connect() as conn:
            conn.execute(
                admin_requests.insert().values(
                    requester_id=requester_id,
                    requested_role=requested_role,
                    status=status,
                    created_at=now_iso(),
                )
            )
            conn.commit()

    return _add


@pytest.fixture
def password() -> str:
    """Plaintext password of every seeded account."""
    return PASSWORD


@pytest.fixture
def accounts(users) -> SimpleNamespace:
    """Seed one superadmin and two admins. Attributes are (id, email) namespaces."""

    def _create(email: str, role: Role) -> SimpleNamespace:
        uid = users.create_user(User(email=email, role=role, password_hash=_PASSWORD_HASH))
        return SimpleNamespace(id=uid, email=email, role=role)

    return SimpleNamespace(
        superadmin=_create("chief@example.org", Role.superadmin),
        admin=_create("analyst@example.org", Role.admin),
        other_admin=_create("second.analyst@example.org", Role.admin),
    )


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(engine, users: UserStore, sessions: SessionRegistry, knowledge: KnowledgeService):
    """Return an async context manager that replaces the real lifespan.

    Wires the per-test stores into app.state. The purge_task is a
    long-sleeping coroutine (a real asyncio.Task is needed for .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.users = users
        app.state.sessions = sessions
        app.state.knowledge = knowledge
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def client(engine, users, sessions, knowledge, accounts) -> Generator[TestClient, None, None]:
    """TestClient on the real app with isolated stores and seeded accounts."""
    app.router.lifespan_context = _patch_lifespan(engine, users, sessions, knowledge)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def login_as(client) -> Callable[[str], str]:
    """Return a function that logs an email in and yields its bearer token.

    The cookie jar is emptied afterwards: the cookie takes precedence over
    the Authorization header, so tests that switch between accounts pass
    the token explicitly.
    """

    def _login(email: str, password: str = PASSWORD) -> str:
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, f"Login failed for {email}: {resp.text}"
        token = resp.cookies["auth_token"]
        client.cookies.clear()
        return token

    return _login


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_header() -> Callable[[str], dict[str, str]]:
    return bearer
