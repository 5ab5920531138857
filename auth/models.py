"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these own the domain shape.

Layer rule: no imports from api/ or knowledge/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles.

    There is no ordering between roles. A superadmin does not satisfy an
    admin-only gate; see auth/authorizer.py.
    """

    admin = "admin"
    superadmin = "superadmin"


@dataclass
class User:
    """An account that can log in.

    Users are created by a superadmin (or the CLI for the first one) and are
    never deleted. is_active=False excludes the account from login and makes
    any session it still holds fail authentication.
    """

    email: str
    role: Role
    password_hash: str
    id: int | None = None
    is_active: bool = True
    created_at: str | None = None


@dataclass
class Session:
    """One live authenticated client, backed by a row in active_sessions.

    session_token is the exact bearer token handed to the client. A request is
    only authenticated while a row with that token, that user_id and a future
    expires_at exists. Deleting the row revokes the token immediately.

    owner_email is filled in only by listing queries that join users.
    """

    user_id: int
    session_token: str
    expires_at: str  # ISO 8601
    ip_address: str | None = None
    user_agent: str | None = None
    id: int | None = None
    created_at: str | None = None
    owner_email: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Claims recovered from a signature-verified bearer token."""

    user_id: int
    role: Role
    issuer: str
    expires_at: int  # epoch seconds, the JWT exp claim


@dataclass(frozen=True)
class Identity:
    """The authenticated caller attached to a request."""

    user_id: int
    role: Role
    token: str
