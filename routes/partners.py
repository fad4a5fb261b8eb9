# routes/partners.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.payouts.model import PayoutStatus
from app.payouts.service import PayoutService
from deps.auth import CurrentUser, ensure_partner_access, get_current_user
from deps.payouts import get_payout_service
from schemas import PayoutListResponse, PayoutOut, PayoutStatusName

router = APIRouter(prefix="/v1/partners", tags=["partners"])


@router.get("/{partner_id}/payouts", response_model=PayoutListResponse)
def list_partner_payouts(
    partner_id: str,
    status: Optional[PayoutStatusName] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    service: PayoutService = Depends(get_payout_service),
):
    ensure_partner_access(user, partner_id)
    status_filter = PayoutStatus(status) if status else None
    payouts = service.list_partner_payouts(partner_id, status=status_filter, limit=limit, offset=offset)
    total = service.count_partner_payouts(partner_id, status=status_filter)
    return PayoutListResponse(
        partner_id=partner_id,
        payouts=[PayoutOut.from_payout(p) for p in payouts],
        total=total,
        limit=limit,
        offset=offset,
    )
