"""
API request and response models for KnowledgeGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py and knowledge/models.py, which
own the internal domain representation. Route handlers map between the two.

Admin creation rules (email shape, optional domain restriction, password
complexity) live here because they are input-format rules, not lifecycle
rules. Knowledge request field rules live in knowledge/service.py because the
submission endpoint is multipart and the rules must hold for any caller.
"""

import re
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Role, Session, User
from auth.tokens import MAX_PASSWORD_BYTES
from core.config import get_settings
from knowledge.models import AdminRequest, HistoryEntry, KnowledgeRequest, PendingRequest

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
FILE_ROUTE = "/api/v1/knowledge-files/"

_PASSWORD_RULES: list[tuple[str, str]] = [
    (r"[A-Z]", "Password must contain at least one uppercase letter"),
    (r"[a-z]", "Password must contain at least one lowercase letter"),
    (r"[0-9]", "Password must contain at least one number"),
    (r"[^A-Za-z0-9]", "Password must contain at least one special character"),
]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    param: str
    msg: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    errors: list[FieldError] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class UserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.id, email=user.email, role=user.role)


class LoginResponse(BaseModel):
    """Body of a successful login. The token itself travels only as a cookie."""

    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    user: UserSummary
    expires_at: str
    expires_in: int


class SessionRow(BaseModel):
    """One row of GET /auth/sessions."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: Optional[str]
    ip: Optional[str]
    device: Optional[str]
    login_time: Optional[str]
    expires_at: str

    @classmethod
    def from_session(cls, session: Session) -> "SessionRow":
        return cls(
            id=session.id,
            email=session.owner_email,
            ip=session.ip_address,
            device=session.user_agent,
            login_time=session.created_at,
            expires_at=session.expires_at,
        )


class SessionListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
    sessions: list[SessionRow]


class AdminCreate(BaseModel):
    """Request body for POST /auth/admins."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    role: Role

    @field_validator("email")
    @classmethod
    def check_domain(cls, value: str) -> str:
        value = value.lower()
        domain = get_settings().admin_email_domain.lower().lstrip("@")
        if domain and not value.endswith(f"@{domain}"):
            raise ValueError(f"Only @{domain} email addresses are allowed")
        return value

    @field_validator("password")
    @classmethod
    def check_complexity(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        for pattern, message in _PASSWORD_RULES:
            if not re.search(pattern, value):
                raise ValueError(message)
        return value


class AdminRequestRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    type: str
    date: str

    @classmethod
    def from_domain(cls, request: AdminRequest) -> "AdminRequestRow":
        return cls(id=request.id, name=request.requester_email, type=request.requested_role, date=request.created_at)


# ---------------------------------------------------------------------------
# Knowledge requests
# ---------------------------------------------------------------------------


class KnowledgeRequestCreated(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Knowledge request submitted for approval"
    id: int
    status: str


class OwnKnowledgeRequestRow(BaseModel):
    """One row of GET /knowledge-requests.

    pdf content is never echoed: content is None and file_url points at the
    ownership-checked download route instead.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    type: str
    status: str
    description: Optional[str]
    date: str
    decision_date: Optional[str]
    content: Optional[str]
    file_url: Optional[str]

    @classmethod
    def from_domain(cls, request: KnowledgeRequest) -> "OwnKnowledgeRequestRow":
        name = request.attachment_name
        return cls(
            id=request.id,
            title=request.title,
            type=request.type.value,
            status=request.status.value,
            description=request.description,
            date=request.created_at,
            decision_date=request.decision_at,
            content=None if name is not None else request.content,
            file_url=f"{FILE_ROUTE}{quote(name)}" if name is not None else None,
        )


class PendingKnowledgeRequestRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    type: str
    description: Optional[str]
    content: Optional[str]
    file_url: Optional[str]
    created_at: str
    admin_email: str

    @classmethod
    def from_domain(cls, pending: PendingRequest) -> "PendingKnowledgeRequestRow":
        request = pending.request
        name = request.attachment_name
        return cls(
            id=request.id,
            title=request.title,
            type=request.type.value,
            description=request.description,
            content=None if name is not None else request.content,
            file_url=f"{FILE_ROUTE}{quote(name)}" if name is not None else None,
            created_at=request.created_at,
            admin_email=pending.admin_email,
        )


class DecisionResponse(BaseModel):
    """Response for POST /knowledge-requests/{id}/{action}.

    file_path is handed back for the downstream indexing step.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    id: int
    status: str
    decision_by: int
    decision_at: str
    file_path: Optional[str] = None


class HistoryRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    type: str
    status: str
    decision: str
    created_at: str
    decision_at: Optional[str]
    admin_email: str
    decision_by: Optional[int]
    decided_by: Optional[str]

    @classmethod
    def from_domain(cls, entry: HistoryEntry) -> "HistoryRow":
        request = entry.request
        return cls(
            id=request.id,
            title=request.title,
            type=request.type.value,
            status=request.status.value,
            decision=entry.decision,
            created_at=request.created_at,
            decision_at=request.decision_at,
            admin_email=entry.admin_email,
            decision_by=request.decision_by,
            decided_by=entry.decided_by_email,
        )


class CountResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
