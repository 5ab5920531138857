"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token placement is a transport concern handled only here:
  1. Session cookie ("auth_token") -- set by POST /auth/login. Takes precedence.
  2. Authorization: Bearer <token> header -- API clients.

Whatever the placement, the token goes through auth.authenticator.authenticate(),
which requires both a valid signature and a live session row. Failures raise
core.errors exceptions; api/main.py renders them and clears the cookie.

require_role() wraps get_current_identity() with the exact-match role gate.

Layer rule: no imports from knowledge/.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.authenticator import authenticate
from auth.authorizer import authorize
from auth.models import Identity, Role
from auth.tokens import AUTH_COOKIE


def extract_token(request: Request) -> str | None:
    """Return the presented token, cookie first, or None."""
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_identity(request: Request) -> Identity:
    """Require a live session. Runs the full two-step check on every request.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = authenticate(extract_token(request), request.app.state.sessions)
    request.state.identity = identity
    return identity


def require_role(role: Role):
    """Build a dependency that admits only identities holding exactly `role`."""

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        return authorize(identity, role)

    dependency.__name__ = f"require_{role.value}"
    return dependency


require_admin = require_role(Role.admin)
require_superadmin = require_role(Role.superadmin)
