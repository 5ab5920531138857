"""
auth/tokens.py -- Token codec, password hashing, and cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id, role, issuer, expiry and
       a random jti. decode_access_token() returns None on any failure; the
       authenticator turns that into InvalidToken. A valid signature is NOT
       enough to authenticate: the session registry must also hold a row for
       the exact token (see auth/authenticator.py).

  Passwords: bcrypt used directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered.

  SECRET_KEY: sourced from core.config.get_settings(), read once at import.

Layer rule: no imports from api/ or knowledge/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Role, TokenClaims
from core.config import get_settings, utc_now

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("knowledgegate.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

AUTH_COOKIE = "auth_token"

# bcrypt refuses longer input. Account-creation paths reject it up front.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Current bcrypt releases raise ValueError above MAX_PASSWORD_BYTES; callers validate first.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at import so the first login is not measurably slower.
_DUMMY_HASH: str = hash_password("knowledgegate_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair against active accounts only.

    Always runs bcrypt whether or not the account exists:
    - Unknown or inactive email: bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any failure.
    """
    user = store.get_active_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: int,
    role: Role | str,
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed, time-bounded bearer token.

    Args:
        user_id:        Numeric user ID (also written as the string `sub`).
        role:           The account role at issue time.
        expire_seconds: Validity window. 0 means Settings.token_expire_seconds.
        issued_at:      Issue time. Defaults to now; tests pass a past time
                        to produce an already-expired token.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    issued = issued_at or utc_now()
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "role": Role(role).value,
        "iss": _settings.token_issuer,
        "iat": issued,
        "exp": issued + timedelta(seconds=duration),
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims | None:
    """Verify signature, expiry and issuer. Returns the claims or None.

    No side effects: a rejected token is simply None.
    """
    try:
        payload = jwt.decode(
            token,
            _settings.secret_key,
            algorithms=[_ALGORITHM],
            issuer=_settings.token_issuer,
        )
    except JWTError:
        return None
    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        return None
    try:
        role = Role(payload.get("role"))
    except ValueError:
        return None
    return TokenClaims(user_id=user_id, role=role, issuer=payload["iss"], expires_at=int(payload["exp"]))


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly, SameSite=Strict cookie.

    max_age matches the token and session row expiry so all three lapse together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="strict",
        secure=_settings.secure_cookies,
        max_age=duration,
        path="/",
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(
        AUTH_COOKIE,
        path="/",
        httponly=True,
        samesite="strict",
        secure=_settings.secure_cookies,
    )
