"""
api/routes/v1/reports.py -- Read-only superadmin reports.

  GET /reports/total-admins      -- number of admin + superadmin accounts
  GET /reports/request-history   -- decided knowledge requests

No mutations here.
"""

from fastapi import APIRouter, Depends, Request

from api.models import CountResponse, HistoryRow
from auth.dependencies import require_superadmin
from auth.store import UserStore
from knowledge.service import KnowledgeService

# Auth policy: every route on this router requires superadmin.
router = APIRouter(dependencies=[Depends(require_superadmin)])


@router.get("/reports/total-admins", response_model=CountResponse)
def total_admins(request: Request) -> CountResponse:
    users: UserStore = request.app.state.users
    return CountResponse(count=users.count_admins())


@router.get("/reports/request-history", response_model=list[HistoryRow])
def request_history(request: Request) -> list[HistoryRow]:
    """Return approved and rejected requests, most recent decision first."""
    knowledge: KnowledgeService = request.app.state.knowledge
    return [HistoryRow.from_domain(entry) for entry in knowledge.history()]
