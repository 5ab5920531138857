"""
knowledge/store.py -- SQLAlchemy Core persistence for knowledge requests.

Pattern: Repository + Data Mapper, same as auth/store.py. Receives the shared
Engine; owns the knowledge_requests table and reads the admin_requests table
that the role-upgrade workflow (an external collaborator) writes.

Decisions are a guarded transition: decide() issues a single
  UPDATE ... WHERE id = :id AND status = 'pending'
so two superadmins deciding the same request concurrently cannot both win.
A zero rowcount tells the caller the request is missing or already terminal.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from auth.store import users
from core.config import now_iso
from knowledge.models import (
    AdminRequest,
    ContentType,
    HistoryEntry,
    KnowledgeRequest,
    PendingRequest,
    RequestStatus,
    attachment_tag,
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

knowledge_requests = Table(
    "knowledge_requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("admin_id", Integer, nullable=False, index=True),
    Column("title", String(255), nullable=False),
    Column("type", String(10), nullable=False),
    Column("content", Text, nullable=False),
    Column("description", String(500)),
    Column("file_path", Text),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("decision_by", Integer),
    Column("decision_at", String(32)),
    Column("created_at", String(32), nullable=False),
)

admin_requests = Table(
    "admin_requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("requester_id", Integer, nullable=False),
    Column("requested_role", String(20), nullable=False),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class KnowledgeStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Knowledge requests
    # ------------------------------------------------------------------

    def create(self, request: KnowledgeRequest) -> int:
        """Insert a new pending request and return its ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                knowledge_requests.insert().values(
                    admin_id=request.admin_id,
                    title=request.title,
                    type=request.type.value,
                    content=request.content,
                    description=request.description,
                    file_path=request.file_path,
                    status=RequestStatus.pending.value,
                    created_at=request.created_at or now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def delete(self, request_id: int) -> bool:
        """Remove a request row. Only used to roll back a failed submission."""
        with self.engine.connect() as conn:
            result = conn.execute(knowledge_requests.delete().where(knowledge_requests.c.id == request_id))
            conn.commit()
        return result.rowcount > 0

    def get(self, request_id: int) -> KnowledgeRequest | None:
        with self.engine.connect() as conn:
            row = conn.execute(knowledge_requests.select().where(knowledge_requests.c.id == request_id)).fetchone()
        return _row_to_request(row) if row is not None else None

    def list_for_owner(self, admin_id: int) -> list[KnowledgeRequest]:
        """Return every request submitted by admin_id, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                knowledge_requests.select()
                .where(knowledge_requests.c.admin_id == admin_id)
                .order_by(knowledge_requests.c.created_at.desc(), knowledge_requests.c.id.desc())
            ).fetchall()
        return [_row_to_request(r) for r in rows]

    def list_pending(self) -> list[PendingRequest]:
        """Return pending requests across all owners, newest first."""
        query = (
            select(knowledge_requests, users.c.email.label("admin_email"))
            .join(users, users.c.id == knowledge_requests.c.admin_id)
            .where(knowledge_requests.c.status == RequestStatus.pending.value)
            .order_by(knowledge_requests.c.created_at.desc(), knowledge_requests.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [PendingRequest(request=_row_to_request(r), admin_email=r.admin_email) for r in rows]

    def decide(self, request_id: int, status: RequestStatus, decided_by: int) -> bool:
        """Move a pending request to a terminal status.

        Returns True if the row transitioned, False if it does not exist or
        is no longer pending.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                knowledge_requests.update()
                .where(
                    (knowledge_requests.c.id == request_id)
                    & (knowledge_requests.c.status == RequestStatus.pending.value)
                )
                .values(status=status.value, decision_by=decided_by, decision_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def get_owner_of_attachment(self, filename: str) -> int | None:
        """Return admin_id of the pdf request whose content tag names filename."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(knowledge_requests.c.admin_id).where(
                    (knowledge_requests.c.content == attachment_tag(filename))
                    & (knowledge_requests.c.type == ContentType.pdf.value)
                )
            ).fetchone()
        return row.admin_id if row is not None else None

    def list_history(self) -> list[HistoryEntry]:
        """Return decided requests, most recent decision first."""
        submitter = users.alias("submitter")
        decider = users.alias("decider")
        query = (
            select(
                knowledge_requests,
                submitter.c.email.label("admin_email"),
                decider.c.email.label("decided_by_email"),
            )
            .join(submitter, submitter.c.id == knowledge_requests.c.admin_id)
            .outerjoin(decider, decider.c.id == knowledge_requests.c.decision_by)
            .where(
                knowledge_requests.c.status.in_([RequestStatus.approved.value, RequestStatus.rejected.value])
            )
            .order_by(knowledge_requests.c.decision_at.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [
            HistoryEntry(
                request=_row_to_request(r),
                admin_email=r.admin_email,
                decided_by_email=r.decided_by_email,
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Role-upgrade requests (read-only)
    # ------------------------------------------------------------------

    def list_pending_admin_requests(self) -> list[AdminRequest]:
        query = (
            select(admin_requests, users.c.email.label("requester_email"))
            .join(users, users.c.id == admin_requests.c.requester_id)
            .where(admin_requests.c.status == "pending")
            .order_by(admin_requests.c.created_at.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [
            AdminRequest(
                id=r.id,
                requester_email=r.requester_email,
                requested_role=r.requested_role,
                created_at=r.created_at,
            )
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_request(row) -> KnowledgeRequest:
    return KnowledgeRequest(
        id=row.id,
        admin_id=row.admin_id,
        title=row.title,
        type=ContentType(row.type),
        content=row.content,
        description=row.description,
        file_path=row.file_path,
        status=RequestStatus(row.status),
        decision_by=row.decision_by,
        decision_at=row.decision_at,
        created_at=row.created_at,
    )
