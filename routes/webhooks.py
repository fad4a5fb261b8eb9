# routes/webhooks.py
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.payouts.service import PayoutService
from app.webhooks.stripe_events import handle_event, verify_signature
from deps.payouts import get_payout_service
from schemas import WebhookAck
from services.metrics import increment_webhook_event
from settings import settings

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])
logger = logging.getLogger("partnerpay.webhooks")


def _resolve_request_id(req: Request) -> str | None:
    for value in (req.headers.get("X-Request-ID"), req.headers.get("Stripe-Request-Id")):
        if value and value.strip():
            return value.strip()
    return getattr(req.state, "request_id", None)


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(req: Request, service: PayoutService = Depends(get_payout_service)):
    raw = await req.body()
    sig_header = req.headers.get("Stripe-Signature")
    request_id = _resolve_request_id(req)

    ok, err = verify_signature(
        payload=raw,
        signature_header=sig_header,
        secret=settings.STRIPE_WEBHOOK_SECRET,
        tolerance_s=settings.STRIPE_WEBHOOK_TOLERANCE_S,
    )
    if not ok:
        logger.warning("webhook rejected request_id=%s reason=%s", request_id, err)
        increment_webhook_event("rejected", False)
        if err == "WEBHOOK_SECRET_NOT_CONFIGURED":
            raise HTTPException(status_code=400, detail="WEBHOOK_NOT_CONFIGURED")
        raise HTTPException(status_code=400, detail=err)

    try:
        event = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="INVALID_PAYLOAD")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="INVALID_PAYLOAD")

    logger.info(
        "webhook_received request_id=%s event_id=%s type=%s",
        request_id,
        event.get("id"),
        event.get("type"),
    )

    outcome = await run_in_threadpool(handle_event, service, event)
    logger.info(
        "webhook_handled request_id=%s type=%s payout_id=%s applied=%s reason=%s",
        request_id,
        outcome.event_type,
        outcome.payout_id,
        outcome.applied,
        outcome.reason,
    )
    if outcome.reason == "NOT_FOUND":
        # non-2xx makes Stripe redeliver once the payout row is committed
        raise HTTPException(status_code=503, detail="PAYOUT_NOT_RECORDED")
    return WebhookAck(applied=outcome.applied)
