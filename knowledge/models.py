"""
knowledge/models.py -- Domain dataclasses for the knowledge approval workflow.

These are data containers. The transition rules live in knowledge/store.py
(guarded UPDATE) and knowledge/service.py (validation, attachment handling).

Status lifecycle:
  pending --approve--> approved   (terminal)
  pending --reject---> rejected   (terminal)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ATTACHMENT_TAG = "PDF:"


class ContentType(str, Enum):
    text = "text"
    link = "link"
    pdf = "pdf"


class RequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class DecisionAction(str, Enum):
    approve = "approve"
    reject = "reject"

    @property
    def status(self) -> RequestStatus:
        return RequestStatus.approved if self is DecisionAction.approve else RequestStatus.rejected


@dataclass(frozen=True)
class Decision:
    """The terminal state of a decided request."""

    status: RequestStatus
    decided_by: int
    decided_at: str  # ISO 8601


@dataclass
class KnowledgeRequest:
    """A proposed knowledge artifact awaiting (or past) superadmin review.

    For pdf requests, content is the attachment tag "PDF:<stored filename>"
    and file_path is the stored file's location. For text and link requests,
    content holds the text or URL and file_path is None.

    id is None before the record is written to the database.
    """

    admin_id: int
    title: str
    type: ContentType
    content: str
    description: str | None = None
    file_path: str | None = None
    status: RequestStatus = RequestStatus.pending
    decision_by: int | None = None
    decision_at: str | None = None
    id: int | None = None
    created_at: str = ""

    @property
    def decision(self) -> Decision | None:
        if self.status is RequestStatus.pending or self.decision_by is None:
            return None
        return Decision(status=self.status, decided_by=self.decision_by, decided_at=self.decision_at or "")

    @property
    def attachment_name(self) -> str | None:
        """Stored filename for pdf requests, None otherwise."""
        if self.type is not ContentType.pdf:
            return None
        return attachment_name(self.content)


@dataclass
class PendingRequest:
    """A pending request as seen by a reviewing superadmin."""

    request: KnowledgeRequest
    admin_email: str


@dataclass
class HistoryEntry:
    """A decided request with both parties resolved to email addresses."""

    request: KnowledgeRequest
    admin_email: str
    decided_by_email: str | None

    @property
    def decision(self) -> str:
        return self.request.status.value.upper()


@dataclass
class AdminRequest:
    """Read-only view of a pending role-upgrade request."""

    id: int
    requester_email: str
    requested_role: str
    created_at: str


def attachment_tag(filename: str) -> str:
    return f"{ATTACHMENT_TAG}{filename}"


def attachment_name(content: str) -> str | None:
    if not content.startswith(ATTACHMENT_TAG):
        return None
    return content[len(ATTACHMENT_TAG) :]
