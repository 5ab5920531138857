"""
api/routes/v1/knowledge.py -- Knowledge request lifecycle endpoints.

Routes (GET /knowledge-requests/pending is registered before the
parameterised decision route so "pending" is never captured as an id):
  POST /knowledge-requests                     -- submit (admin, multipart)
  GET  /knowledge-requests                     -- caller's own requests
  GET  /knowledge-requests/pending             -- all pending (superadmin)
  POST /knowledge-requests/{id}/{action}       -- approve | reject (superadmin)
  GET  /knowledge-files/{filename}             -- PDF download, owner only

File uploads:
  The submit route reads at most max_upload_bytes + 1 bytes per file so an
  oversize upload is detected without buffering all of it. Storage work runs
  in the thread pool because the stores are synchronous.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from api.models import (
    DecisionResponse,
    KnowledgeRequestCreated,
    OwnKnowledgeRequestRow,
    PendingKnowledgeRequestRow,
)
from auth.dependencies import get_current_identity, require_admin, require_superadmin
from auth.models import Identity
from knowledge.service import KnowledgeService, Upload

# Auth policy:
# - POST /knowledge-requests:                admin (exact match, superadmin refused)
# - GET  /knowledge-requests:                any live session
# - GET  /knowledge-requests/pending:        superadmin
# - POST /knowledge-requests/{id}/{action}:  superadmin
# - GET  /knowledge-files/{filename}:        any live session + ownership check
router = APIRouter()


@router.post("/knowledge-requests", response_model=KnowledgeRequestCreated)
async def submit_knowledge_request(
    request: Request,
    title: Optional[str] = Form(None),
    content_type: Optional[str] = Form(None, alias="type"),
    description: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    file: Optional[list[UploadFile]] = File(None),
    identity: Identity = Depends(require_admin),
) -> KnowledgeRequestCreated:
    """Submit a text, link, or pdf knowledge request for review."""
    knowledge: KnowledgeService = request.app.state.knowledge
    uploads: list[Upload] = []
    for upload in file or []:
        data = await upload.read(knowledge.max_upload_bytes + 1)
        uploads.append(Upload(filename=upload.filename or "", data=data))

    created = await run_in_threadpool(
        knowledge.submit,
        identity.user_id,
        title,
        content_type,
        description,
        content,
        uploads,
    )
    return KnowledgeRequestCreated(id=created.id, status=created.status.value)


@router.get("/knowledge-requests", response_model=list[OwnKnowledgeRequestRow])
def list_own_requests(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> list[OwnKnowledgeRequestRow]:
    knowledge: KnowledgeService = request.app.state.knowledge
    return [OwnKnowledgeRequestRow.from_domain(r) for r in knowledge.list_own(identity.user_id)]


@router.get("/knowledge-requests/pending", response_model=list[PendingKnowledgeRequestRow])
def list_pending_requests(
    request: Request,
    identity: Identity = Depends(require_superadmin),
) -> list[PendingKnowledgeRequestRow]:
    knowledge: KnowledgeService = request.app.state.knowledge
    return [PendingKnowledgeRequestRow.from_domain(p) for p in knowledge.list_pending()]


@router.post("/knowledge-requests/{request_id}/{action}", response_model=DecisionResponse)
def decide_request(
    request: Request,
    request_id: int,
    action: str,
    identity: Identity = Depends(require_superadmin),
) -> DecisionResponse:
    """Approve or reject a pending request. Deciding twice returns 409."""
    knowledge: KnowledgeService = request.app.state.knowledge
    decided = knowledge.decide(request_id, action, identity.user_id)
    return DecisionResponse(
        message=f"Request {decided.status.value} successfully",
        id=decided.id,
        status=decided.status.value,
        decision_by=decided.decision_by,
        decision_at=decided.decision_at,
        file_path=decided.file_path,
    )


@router.get("/knowledge-files/{filename}")
def download_attachment(
    request: Request,
    filename: str,
    identity: Identity = Depends(get_current_identity),
) -> FileResponse:
    """Stream a PDF attachment to the owner of the request that references it."""
    knowledge: KnowledgeService = request.app.state.knowledge
    path = knowledge.retrieve_attachment(filename, identity.user_id)
    return FileResponse(path, media_type="application/pdf", filename=path.name)
