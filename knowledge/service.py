"""
knowledge/service.py -- Knowledge request lifecycle operations.

Role gating happens before these methods are reached (api/ routes depend on
auth.dependencies.require_admin / require_superadmin). What lives here is
everything that does not depend on transport: field validation, the two-phase
PDF write with compensating cleanup, the guarded decision transition, and the
per-call ownership check on attachment downloads.

Submission of a pdf request:
  stage file -> insert row -> promote file
  Any failure after staging removes the file (and the row, if it was
  inserted) before InternalError is raised. There is never a stored file
  without a row or a row pointing at a file that is not there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from core.errors import ConflictError, Forbidden, InternalError, InvalidAction, NotFound, ValidationError
from knowledge.attachments import AttachmentStore
from knowledge.models import (
    ContentType,
    DecisionAction,
    HistoryEntry,
    KnowledgeRequest,
    PendingRequest,
    attachment_tag,
)
from knowledge.store import KnowledgeStore

logger = logging.getLogger("knowledgegate.knowledge")

TITLE_MIN = 5
TITLE_MAX = 255
DESCRIPTION_MAX = 500

_URL = TypeAdapter(AnyUrl)


@dataclass(frozen=True)
class Upload:
    """One uploaded file as received from the transport layer."""

    filename: str
    data: bytes


class KnowledgeService:
    def __init__(self, store: KnowledgeStore, attachments: AttachmentStore, max_upload_bytes: int) -> None:
        self.store = store
        self.attachments = attachments
        self.max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit(
        self,
        admin_id: int,
        title: str | None,
        type: str | None,
        description: str | None = None,
        content: str | None = None,
        uploads: list[Upload] | None = None,
    ) -> KnowledgeRequest:
        """Validate and persist a new pending request owned by admin_id.

        Raises ValidationError for any rule violation (with per-field errors
        for title/type/description), InternalError if storage fails.
        """
        content_type = _validate_fields(title, type, description)
        description = description or None

        if content_type is ContentType.pdf:
            return self._submit_pdf(admin_id, title, description, uploads or [])

        content = (content or "").strip()
        if not content:
            raise ValidationError("Content is required.", errors=[{"param": "content", "msg": "Content is required"}])
        if content_type is ContentType.link and not _is_url(content):
            raise ValidationError("Invalid URL format.", errors=[{"param": "content", "msg": "Invalid URL format"}])

        request = KnowledgeRequest(
            admin_id=admin_id, title=title, type=content_type, content=content, description=description
        )
        try:
            request.id = self.store.create(request)
        except Exception as exc:
            logger.exception("Failed to store knowledge request for admin_id=%s", admin_id)
            raise InternalError("Failed to process request.") from exc
        logger.info("Knowledge request %s (%s) submitted by admin_id=%s", request.id, content_type.value, admin_id)
        return self.store.get(request.id) or request

    def _submit_pdf(
        self, admin_id: int, title: str, description: str | None, uploads: list[Upload]
    ) -> KnowledgeRequest:
        if len(uploads) != 1:
            raise ValidationError("PDF file is required.", errors=[{"param": "file", "msg": "Exactly one PDF file is required"}])
        upload = uploads[0]
        if Path(upload.filename or "").suffix.lower() != ".pdf":
            raise ValidationError("Only PDF files are allowed.", errors=[{"param": "file", "msg": "Only PDF files are allowed"}])
        if not upload.data:
            raise ValidationError("PDF file is empty.", errors=[{"param": "file", "msg": "PDF file is empty"}])
        if len(upload.data) > self.max_upload_bytes:
            raise ValidationError(
                "PDF file is too large.",
                errors=[{"param": "file", "msg": f"Maximum size is {self.max_upload_bytes} bytes"}],
            )

        name = self.attachments.generate_name(upload.filename)
        request = KnowledgeRequest(
            admin_id=admin_id,
            title=title,
            type=ContentType.pdf,
            content=attachment_tag(name),
            description=description,
            file_path=str(self.attachments.root / name),
        )

        request_id: int | None = None
        try:
            self.attachments.stage(name, upload.data)
            request_id = self.store.create(request)
            self.attachments.promote(name)
        except Exception as exc:
            logger.exception("PDF submission failed for admin_id=%s; cleaning up %s", admin_id, name)
            self.attachments.discard(name)
            if request_id is not None:
                try:
                    self.store.delete(request_id)
                except Exception:
                    logger.exception("Could not remove knowledge request %s after failed submission", request_id)
            raise InternalError("Failed to process request.") from exc

        logger.info("Knowledge request %s (pdf) submitted by admin_id=%s", request_id, admin_id)
        return self.store.get(request_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_own(self, owner_id: int) -> list[KnowledgeRequest]:
        return self.store.list_for_owner(owner_id)

    def list_pending(self) -> list[PendingRequest]:
        return self.store.list_pending()

    def history(self) -> list[HistoryEntry]:
        return self.store.list_history()

    # ------------------------------------------------------------------
    # Decide
    # ------------------------------------------------------------------

    def decide(self, request_id: int, action: str, decided_by: int) -> KnowledgeRequest:
        """Approve or reject a pending request.

        Raises InvalidAction for any action other than approve/reject,
        NotFound for an unknown id, ConflictError if already decided.
        Returns the updated request; its file_path feeds downstream indexing.
        """
        try:
            decision = DecisionAction(action)
        except ValueError:
            raise InvalidAction() from None

        if not self.store.decide(request_id, decision.status, decided_by):
            current = self.store.get(request_id)
            if current is None:
                raise NotFound("Knowledge request not found.")
            raise ConflictError(f"Request already {current.status.value}.")

        logger.info("Knowledge request %s %s by user_id=%s", request_id, decision.status.value, decided_by)
        return self.store.get(request_id)

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def retrieve_attachment(self, filename: str, requester_id: int) -> Path:
        """Return the stored path for filename if requester_id owns its request.

        The ownership lookup runs on every call.
        """
        path = self.attachments.resolve(filename)
        if not path.is_file():
            raise NotFound("File not found.")
        owner_id = self.store.get_owner_of_attachment(filename)
        if owner_id is None or owner_id != requester_id:
            logger.warning("User %s denied access to attachment %s", requester_id, filename)
            raise Forbidden("Unauthorized access.")
        return path


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_fields(title: str | None, type: str | None, description: str | None) -> ContentType:
    errors: list[dict] = []
    if not title or not TITLE_MIN <= len(title) <= TITLE_MAX:
        errors.append({"param": "title", "msg": f"Title must be {TITLE_MIN}-{TITLE_MAX} characters"})
    content_type: ContentType | None = None
    try:
        content_type = ContentType(type)
    except ValueError:
        errors.append({"param": "type", "msg": "Invalid content type"})
    if description and len(description) > DESCRIPTION_MAX:
        errors.append({"param": "description", "msg": f"Description too long (max {DESCRIPTION_MAX} chars)"})
    if errors:
        raise ValidationError(errors=errors)
    return content_type


def _is_url(value: str) -> bool:
    try:
        _URL.validate_python(value)
    except PydanticValidationError:
        return False
    return True
