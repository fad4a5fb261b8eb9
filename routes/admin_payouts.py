# routes/admin_payouts.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.payouts.errors import PayoutError
from app.payouts.model import PayoutStatus
from app.payouts.service import PayoutService
from deps.admin import require_admin
from deps.auth import CurrentUser
from deps.payouts import get_payout_service
from schemas import (
    AdminPayoutListResponse,
    PayoutActionRequest,
    PayoutActionResponse,
    PayoutOut,
    PayoutStatusName,
)
from services.payout_errors import raise_http_from_payout_error

logger = logging.getLogger("partnerpay.admin")
router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.get("/payouts", response_model=AdminPayoutListResponse)
def admin_list_payouts(
    status: Optional[PayoutStatusName] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=500),
    admin: CurrentUser = Depends(require_admin),
    service: PayoutService = Depends(get_payout_service),
):
    status_filter = PayoutStatus(status) if status else None
    payouts = service.list_payouts(status=status_filter, limit=limit)
    return AdminPayoutListResponse(payouts=[PayoutOut.from_payout(p) for p in payouts])


@router.post("/payouts/{payout_id}/action", response_model=PayoutActionResponse)
def admin_payout_action(
    payout_id: str,
    body: PayoutActionRequest,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    service: PayoutService = Depends(get_payout_service),
):
    """
    Move a payout through its lifecycle: approve, process or reject.
    Returns 404 for an unknown payout and 409 when the action is not legal
    from the payout's current status.
    """
    try:
        payout = service.perform_action(payout_id, body.action, reason=body.reason)
    except PayoutError as e:
        logger.info(
            "admin payout action refused request_id=%s admin=%s payout_id=%s action=%s code=%s",
            getattr(request.state, "request_id", None),
            admin.user_id,
            payout_id,
            body.action,
            e.code,
        )
        raise_http_from_payout_error(e)

    logger.info(
        "admin payout action request_id=%s admin=%s payout_id=%s action=%s status=%s",
        getattr(request.state, "request_id", None),
        admin.user_id,
        payout_id,
        body.action,
        payout.status.value,
    )
    return PayoutActionResponse(new_status=payout.status.value)
