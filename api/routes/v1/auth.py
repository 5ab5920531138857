"""
api/routes/v1/auth.py -- Authentication, session, and account endpoints.

Routes:
  POST /api/v1/auth/login            -- password login; sets session cookie
  POST /api/v1/auth/logout           -- revokes the session row; clears cookie
  GET  /api/v1/auth/me               -- current user summary
  GET  /api/v1/auth/sessions         -- live sessions (superadmin)
  GET  /api/v1/auth/admin-requests   -- pending role-upgrade requests (superadmin)
  POST /api/v1/auth/admins           -- create an admin account (superadmin)

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  Login responses carry Cache-Control: no-store.
  The token is only ever delivered as an httpOnly cookie.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    AdminCreate,
    AdminRequestRow,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SessionListResponse,
    SessionRow,
    UserSummary,
)
from auth import sessions as session_lifecycle
from auth.dependencies import get_current_identity, require_superadmin
from auth.models import Identity, User
from auth.store import SessionRegistry, UserStore
from auth.tokens import clear_auth_cookie, hash_password, set_auth_cookie
from core.config import get_settings
from core.errors import ConflictError, NotFound
from knowledge.service import KnowledgeService

# Auth policy:
# - POST /auth/login:           public, rate-limited
# - POST /auth/logout:          requires a live session
# - GET  /auth/me:              requires a live session
# - GET  /auth/sessions:        superadmin
# - GET  /auth/admin-requests:  superadmin
# - POST /auth/admins:          superadmin
router = APIRouter()


@limiter.limit(get_settings().login_rate_limit)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and open a session.

    Any previous session for the account is revoked first. Wrong email and
    wrong password produce the same 401 "bad_credentials" error.
    """
    result = session_lifecycle.login(
        request.app.state.users,
        request.app.state.sessions,
        body.email,
        body.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    resp = JSONResponse(
        content=LoginResponse(
            user=UserSummary.from_user(result.user),
            expires_at=result.expires_at,
            expires_in=result.expires_in,
        ).model_dump(mode="json"),
    )
    set_auth_cookie(resp, result.token, result.expires_in)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, identity: Identity = Depends(get_current_identity)) -> JSONResponse:
    """Delete the caller's session row and clear the cookie."""
    session_lifecycle.logout(request.app.state.sessions, identity.token)
    resp = JSONResponse(content={"message": "Logout successful"})
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/me", response_model=UserSummary)
def me(request: Request, identity: Identity = Depends(get_current_identity)) -> UserSummary:
    users: UserStore = request.app.state.users
    user = users.get_by_id(identity.user_id)
    if user is None:
        raise NotFound("User not found.")
    return UserSummary.from_user(user)


# ---------------------------------------------------------------------------
# Superadmin
# ---------------------------------------------------------------------------


@router.get("/auth/sessions", response_model=SessionListResponse)
def list_sessions(request: Request, identity: Identity = Depends(require_superadmin)) -> SessionListResponse:
    """Return every unexpired session with its owner's email."""
    sessions: SessionRegistry = request.app.state.sessions
    rows = [SessionRow.from_session(s) for s in sessions.list_active()]
    return SessionListResponse(count=len(rows), sessions=rows)


@router.get("/auth/admin-requests", response_model=list[AdminRequestRow])
def list_admin_requests(request: Request, identity: Identity = Depends(require_superadmin)) -> list[AdminRequestRow]:
    knowledge: KnowledgeService = request.app.state.knowledge
    return [AdminRequestRow.from_domain(r) for r in knowledge.store.list_pending_admin_requests()]


@router.post("/auth/admins", response_model=UserSummary)
def create_admin(
    request: Request,
    body: AdminCreate,
    identity: Identity = Depends(require_superadmin),
) -> UserSummary:
    """Create an admin or superadmin account."""
    users: UserStore = request.app.state.users
    if users.get_by_email(body.email) is not None:
        raise ConflictError("Admin with this email already exists.")
    try:
        user_id = users.create_user(
            User(email=body.email, role=body.role, password_hash=hash_password(body.password))
        )
    except IntegrityError as exc:
        raise ConflictError("Admin with this email already exists.") from exc
    created = users.get_by_id(user_id)
    return UserSummary.from_user(created)
