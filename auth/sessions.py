"""
auth/sessions.py -- Login and logout.

login() is the only place a session row is created. It enforces one live
session per account by replacing every existing row for the user in the same
transaction as the insert (SessionRegistry.replace_for_user).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from auth.models import Session, User
from auth.store import SessionRegistry, UserStore
from auth.tokens import authenticate_user, create_access_token
from core.config import get_settings, to_iso, utc_now
from core.errors import InvalidCredentials

logger = logging.getLogger("knowledgegate.auth")


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str
    expires_at: str  # ISO 8601, identical for the token and the session row
    expires_in: int  # seconds


def login(
    users: UserStore,
    sessions: SessionRegistry,
    email: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LoginResult:
    """Check credentials, supersede prior sessions, and open a new one.

    Raises InvalidCredentials for an unknown/inactive email or a wrong
    password. The two cases are indistinguishable to the caller.
    """
    user = authenticate_user(users, email, password)
    if user is None:
        logger.info("Failed login attempt from %s", ip_address or "unknown")
        raise InvalidCredentials()

    duration = get_settings().token_expire_seconds
    issued = utc_now()
    token = create_access_token(user.id, user.role, expire_seconds=duration, issued_at=issued)
    expires_at = to_iso(issued + timedelta(seconds=duration))

    sessions.replace_for_user(
        Session(
            user_id=user.id,
            session_token=token,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    logger.info("User %s logged in from %s", user.id, ip_address or "unknown")
    return LoginResult(user=user, token=token, expires_at=expires_at, expires_in=duration)


def logout(sessions: SessionRegistry, token: str) -> None:
    """Revoke the session holding token. Logging out twice is not an error."""
    if sessions.delete_by_token(token):
        logger.info("Session revoked by logout")
