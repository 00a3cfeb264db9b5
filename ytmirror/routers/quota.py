"""Read-only view of the YouTube quota window."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ytmirror.core.dependencies import get_quota_ledger
from ytmirror.core.identity import UserContext, get_user_context
from ytmirror.routers.channels import quota_response
from ytmirror.schema.channel import QuotaResponse
from ytmirror.services.quota_ledger import QuotaLedger

router = APIRouter(prefix="/quota", tags=["quota"])


@router.get("", response_model=QuotaResponse)
async def get_quota(
    user: UserContext = Depends(get_user_context),
    ledger: QuotaLedger = Depends(get_quota_ledger),
) -> QuotaResponse:
    return quota_response(ledger)
