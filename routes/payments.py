# routes/payments.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from app.payouts.errors import PayoutError
from app.payouts.service import PayoutService
from deps.auth import CurrentUser, ensure_partner_access, get_current_user
from deps.payouts import get_payout_service
from schemas import (
    ConnectRequest,
    ConnectResponse,
    DashboardLinkResponse,
    PaymentStatusResponse,
    PayoutCreatedResponse,
    PayoutOut,
    PayoutRequest,
    PayoutStatsResponse,
)
from services.payout_errors import raise_http_from_payout_error

logger = logging.getLogger("partnerpay.api")
router = APIRouter(prefix="/v1/payments", tags=["payments"])


@router.post("/payout", response_model=PayoutCreatedResponse, status_code=201)
def request_payout(
    body: PayoutRequest,
    user: CurrentUser = Depends(get_current_user),
    service: PayoutService = Depends(get_payout_service),
):
    ensure_partner_access(user, body.partner_id)
    try:
        payout = service.request_payout(body.partner_id, body.amount_cents, body.method)
    except PayoutError as e:
        logger.info("payout request failed partner_id=%s code=%s", body.partner_id, e.code)
        raise_http_from_payout_error(e)

    return PayoutCreatedResponse(payout=PayoutOut.from_payout(payout))


@router.get("/payout", response_model=PayoutStatsResponse)
def payout_stats(
    partner_id: str = Query(..., alias="partnerId", min_length=1),
    user: CurrentUser = Depends(get_current_user),
    service: PayoutService = Depends(get_payout_service),
):
    ensure_partner_access(user, partner_id)
    return PayoutStatsResponse.from_stats(service.get_partner_payout_stats(partner_id))


@router.post("/connect", response_model=ConnectResponse)
def connect_account(
    body: ConnectRequest,
    user: CurrentUser = Depends(get_current_user),
    service: PayoutService = Depends(get_payout_service),
):
    ensure_partner_access(user, body.partner_id)
    try:
        result = service.setup_partner_payments(body.partner_id)
    except PayoutError as e:
        raise_http_from_payout_error(e)

    return ConnectResponse(account_id=result.account_id, onboarding_url=result.onboarding_url)


@router.get("/connect", response_model=PaymentStatusResponse)
def payment_status(
    partner_id: str = Query(..., alias="partnerId", min_length=1),
    user: CurrentUser = Depends(get_current_user),
    service: PayoutService = Depends(get_payout_service),
):
    ensure_partner_access(user, partner_id)
    s = service.get_partner_payment_status(partner_id)
    return PaymentStatusResponse(
        has_payment_account=s.has_payment_account,
        account_id=s.account_id,
        onboarding_complete=s.onboarding_complete,
        payouts_enabled=s.payouts_enabled,
        available_balance=s.available_balance,
        pending_balance=s.pending_balance,
        can_request_payout=s.can_request_payout,
        min_payout_amount=s.min_payout_amount,
    )


@router.get("/dashboard", response_model=DashboardLinkResponse)
def dashboard_link(
    partner_id: str = Query(..., alias="partnerId", min_length=1),
    user: CurrentUser = Depends(get_current_user),
    service: PayoutService = Depends(get_payout_service),
):
    ensure_partner_access(user, partner_id)
    try:
        url = service.get_partner_dashboard_link(partner_id)
    except PayoutError as e:
        raise_http_from_payout_error(e)

    return DashboardLinkResponse(url=url)


@router.get("/status")
def payments_status(service: PayoutService = Depends(get_payout_service)):
    return service.payment_service_status()
