# app/webhooks/stripe_events.py
from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from app.payouts.errors import InvalidTransition, PayoutNotFound
from app.payouts.service import PayoutService
from services.metrics import increment_webhook_event

logger = logging.getLogger("partnerpay.webhooks")

PAYOUT_EVENTS = ("payout.paid", "payout.failed", "payout.canceled")


@dataclass(frozen=True)
class WebhookOutcome:
    event_type: str
    applied: bool
    payout_id: Optional[str] = None
    reason: Optional[str] = None


def _parse_signature_header(header: str) -> tuple[Optional[int], list[str]]:
    timestamp: Optional[int] = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return None, []
        elif key == "v1" and value:
            signatures.append(value.strip())
    return timestamp, signatures


def sign_payload(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def verify_signature(
    *,
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance_s: int = 300,
    now: Optional[float] = None,
) -> tuple[bool, Optional[str]]:
    """
    Check a `Stripe-Signature` header (`t=<unix>,v1=<hex>`) against the raw body.

    Returns (ok, error_code). The signed message is "<t>.<raw body>".
    """
    if not secret or not secret.strip():
        return False, "WEBHOOK_SECRET_NOT_CONFIGURED"

    if not signature_header or not signature_header.strip():
        return False, "MISSING_SIGNATURE"

    timestamp, signatures = _parse_signature_header(signature_header)
    if timestamp is None or not signatures:
        return False, "MALFORMED_SIGNATURE"

    current = time.time() if now is None else now
    if tolerance_s and abs(current - timestamp) > tolerance_s:
        return False, "TIMESTAMP_OUT_OF_TOLERANCE"

    expected = sign_payload(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, s) for s in signatures):
        return False, "INVALID_SIGNATURE"

    return True, None


def _event_object(event: dict[str, Any]) -> dict[str, Any]:
    data = event.get("data")
    if isinstance(data, dict) and isinstance(data.get("object"), dict):
        return data["object"]
    return {}


def _internal_payout_id(obj: dict[str, Any]) -> Optional[str]:
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return None
    value = metadata.get("internal_payout_id") or metadata.get("internalPayoutId")
    if not value:
        return None
    return str(value).strip() or None


def handle_event(service: PayoutService, event: dict[str, Any]) -> WebhookOutcome:
    """
    Apply a verified provider event to the payout ledger.

    Redelivered or stale events (payout already settled) are acknowledged
    without changes so the provider stops retrying. An event for a payout id
    not yet stored comes back with reason NOT_FOUND; the route asks for
    redelivery since the provider call precedes the insert.
    """
    event_type = str(event.get("type") or "")
    obj = _event_object(event)

    if event_type not in PAYOUT_EVENTS:
        if event_type.startswith("account."):
            logger.info(
                "webhook account event type=%s account_id=%s payouts_enabled=%s",
                event_type,
                obj.get("id"),
                obj.get("payouts_enabled"),
            )
        elif event_type.startswith("transfer."):
            logger.info("webhook transfer event type=%s transfer_id=%s amount=%s", event_type, obj.get("id"), obj.get("amount"))
        else:
            logger.debug("webhook event ignored type=%s", event_type)
        outcome = WebhookOutcome(event_type=event_type, applied=False, reason="UNHANDLED_EVENT")
        increment_webhook_event(event_type or "unknown", False)
        return outcome

    payout_id = _internal_payout_id(obj)
    if not payout_id:
        logger.info("webhook payout event without internal id type=%s provider_payout_id=%s", event_type, obj.get("id"))
        increment_webhook_event(event_type, False)
        return WebhookOutcome(event_type=event_type, applied=False, reason="MISSING_INTERNAL_ID")

    try:
        if event_type == "payout.paid":
            service.complete_payout(payout_id, str(obj.get("id") or ""))
        elif event_type == "payout.failed":
            service.fail_payout(payout_id, str(obj.get("failure_message") or "Payout failed"))
        else:
            service.fail_payout(payout_id, "Payout was canceled")
    except PayoutNotFound:
        logger.warning("webhook for unknown payout type=%s payout_id=%s", event_type, payout_id)
        increment_webhook_event(event_type, False)
        return WebhookOutcome(event_type=event_type, applied=False, payout_id=payout_id, reason="NOT_FOUND")
    except InvalidTransition as e:
        logger.info(
            "webhook ignored type=%s payout_id=%s status=%s",
            event_type,
            payout_id,
            e.current_status,
        )
        increment_webhook_event(event_type, False)
        return WebhookOutcome(event_type=event_type, applied=False, payout_id=payout_id, reason="INVALID_TRANSITION")

    increment_webhook_event(event_type, True)
    return WebhookOutcome(event_type=event_type, applied=True, payout_id=payout_id)
