"""
auth/authenticator.py -- Turn a presented bearer token into an Identity.

Two checks, both required:
  1. Stateless: the token codec verifies signature, issuer and embedded expiry.
  2. Stateful: the session registry must hold an unexpired row for this exact
     token and user.

The second check is what makes revocation immediate. Logout, expiry of the
row, or a newer login for the same account deletes the row, and the token
stops working on the next request even though its signature is still good.

Transport placement (cookie vs Authorization header) is not handled here;
see auth/dependencies.py.
"""

from __future__ import annotations

import logging

from auth.models import Identity
from auth.store import SessionRegistry
from auth.tokens import decode_access_token
from core.errors import InvalidToken, MissingToken, SessionNotFound

logger = logging.getLogger("knowledgegate.auth")


def authenticate(token: str | None, sessions: SessionRegistry) -> Identity:
    """Return the caller's Identity or raise.

    Raises:
        MissingToken:    no token presented (401).
        InvalidToken:    the codec rejects the token (403).
        SessionNotFound: the token verifies but no live session backs it (403).
    """
    if not token:
        raise MissingToken()

    claims = decode_access_token(token)
    if claims is None:
        logger.info("Rejected token: signature, issuer or expiry check failed")
        raise InvalidToken()

    if sessions.find_active(claims.user_id, token) is None:
        logger.info("Rejected token for user_id=%s: no live session", claims.user_id)
        raise SessionNotFound()

    return Identity(user_id=claims.user_id, role=claims.role, token=token)
