from __future__ import annotations

import json
import time

import pytest

from app.payouts.model import PayoutStatus
from app.webhooks.stripe_events import sign_payload, verify_signature
from services.metrics import get_counter

WEBHOOK_SECRET = "whsec_test_secret_123456"


@pytest.fixture()
def webhook_secret(monkeypatch):
    from settings import settings

    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET, raising=False)
    return WEBHOOK_SECRET


def _event(event_type: str, internal_id: str | None, **obj) -> bytes:
    metadata = {"internal_payout_id": internal_id} if internal_id else {}
    payload = {
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {"id": "po_stripe_1", "metadata": metadata, **obj}},
    }
    return json.dumps(payload).encode("utf-8")


def _signed_headers(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> dict:
    ts = int(time.time()) if timestamp is None else timestamp
    return {
        "Stripe-Signature": f"t={ts},v1={sign_payload(body, secret, ts)}",
        "Content-Type": "application/json",
    }


# ---------------------------------------------------------------
# signature verification
# ---------------------------------------------------------------

def test_verify_signature_accepts_valid_header():
    body = b'{"id":"evt_1"}'
    header = f"t=1700000000,v1={sign_payload(body, WEBHOOK_SECRET, 1700000000)}"
    assert verify_signature(payload=body, signature_header=header, secret=WEBHOOK_SECRET, now=1700000010) == (True, None)


def test_verify_signature_accepts_any_of_several_v1():
    body = b"{}"
    good = sign_payload(body, WEBHOOK_SECRET, 1700000000)
    header = f"t=1700000000,v1=deadbeef,v1={good}"
    ok, _ = verify_signature(payload=body, signature_header=header, secret=WEBHOOK_SECRET, now=1700000000)
    assert ok


@pytest.mark.parametrize(
    "header, secret, now, error",
    [
        ("t=1700000000,v1=abc", "", 1700000000, "WEBHOOK_SECRET_NOT_CONFIGURED"),
        (None, WEBHOOK_SECRET, 1700000000, "MISSING_SIGNATURE"),
        ("v1=abc", WEBHOOK_SECRET, 1700000000, "MALFORMED_SIGNATURE"),
        ("t=soon,v1=abc", WEBHOOK_SECRET, 1700000000, "MALFORMED_SIGNATURE"),
        ("t=1700000000,v1=abc", WEBHOOK_SECRET, 1700000000, "INVALID_SIGNATURE"),
        ("t=1700000000,v1=abc", WEBHOOK_SECRET, 1700009999, "TIMESTAMP_OUT_OF_TOLERANCE"),
    ],
)
def test_verify_signature_rejections(header, secret, now, error):
    ok, err = verify_signature(payload=b"{}", signature_header=header, secret=secret, now=now)
    assert not ok
    assert err == error


def test_tampered_body_is_rejected():
    header = f"t=1700000000,v1={sign_payload(b'{}', WEBHOOK_SECRET, 1700000000)}"
    ok, err = verify_signature(payload=b'{"a":1}', signature_header=header, secret=WEBHOOK_SECRET, now=1700000000)
    assert (ok, err) == (False, "INVALID_SIGNATURE")


# ---------------------------------------------------------------
# endpoint
# ---------------------------------------------------------------

def test_webhook_not_configured(client, monkeypatch):
    from settings import settings

    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "", raising=False)
    body = _event("payout.paid", "po_1")
    r = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "WEBHOOK_NOT_CONFIGURED"


def test_webhook_rejects_wrong_secret(client, webhook_secret, seed_payout, payouts):
    payout = seed_payout(PayoutStatus.PROCESSING)
    body = _event("payout.paid", payout.id)

    r = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body, secret="whsec_wrong_000000"))

    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "INVALID_SIGNATURE"
    assert payouts.find_by_id(payout.id).status == PayoutStatus.PROCESSING


def test_payout_paid_completes_payout(client, webhook_secret, seed_payout, payouts):
    payout = seed_payout(PayoutStatus.PROCESSING)
    body = _event("payout.paid", payout.id)

    r = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))

    assert r.status_code == 200, r.text
    assert r.json() == {"received": True, "applied": True}
    stored = payouts.find_by_id(payout.id)
    assert stored.status == PayoutStatus.COMPLETED
    assert stored.transaction_id == "po_stripe_1"
    assert stored.processed_at is not None
    assert get_counter("webhook_events_total", {"type": "payout.paid", "applied": "true"}) == 1


def test_payout_failed_records_reason(client, webhook_secret, seed_payout, payouts):
    payout = seed_payout(PayoutStatus.PROCESSING)
    body = _event("payout.failed", payout.id, failure_message="The bank account has been closed.")

    r = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))

    assert r.status_code == 200, r.text
    stored = payouts.find_by_id(payout.id)
    assert stored.status == PayoutStatus.FAILED
    assert stored.failure_reason == "The bank account has been closed."


def test_payout_canceled_fails_payout(client, webhook_secret, seed_payout, payouts):
    payout = seed_payout(PayoutStatus.PROCESSING)
    body = _event("payout.canceled", payout.id)

    client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))

    assert payouts.find_by_id(payout.id).failure_reason == "Payout was canceled"


def test_redelivered_event_is_acknowledged_without_changes(client, webhook_secret, seed_payout, payouts):
    payout = seed_payout(PayoutStatus.PROCESSING)
    body = _event("payout.paid", payout.id)

    first = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))
    processed_at = payouts.find_by_id(payout.id).processed_at
    second = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))

    assert first.json()["applied"] is True
    assert second.status_code == 200
    assert second.json()["applied"] is False
    assert payouts.find_by_id(payout.id).processed_at == processed_at


def test_other_events_are_acknowledged(client, webhook_secret):
    for body in (
        _event("payout.paid", None),
        _event("account.updated", None, payouts_enabled=True),
        _event("balance.available", None),
    ):
        r = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))
        assert r.status_code == 200, r.text
        assert r.json() == {"received": True, "applied": False}


def test_event_before_payout_is_stored_is_redelivered(client, webhook_secret, service, payouts):
    early = _event("payout.failed", "po_not_yet_stored", failure_message="account_closed")
    r = client.post("/v1/webhooks/stripe", content=early, headers=_signed_headers(early))

    assert r.status_code == 503
    assert r.json()["detail"] == "PAYOUT_NOT_RECORDED"

    payout = service.request_payout("partner-1", 10_000)
    body = _event("payout.failed", payout.id, failure_message="account_closed")
    retry = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))

    assert retry.status_code == 200
    assert retry.json()["applied"] is True
    stored = payouts.find_by_id(payout.id)
    assert stored.status == PayoutStatus.FAILED
    assert stored.failure_reason == "account_closed"


def test_invalid_json_is_rejected(client, webhook_secret):
    body = b"not json"
    r = client.post("/v1/webhooks/stripe", content=body, headers=_signed_headers(body))
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_PAYLOAD"
