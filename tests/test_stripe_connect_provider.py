from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import parse_qsl

import httpx
import pytest

from app.payouts.errors import ProviderError
from app.providers.factory import build_provider
from app.providers.http import HttpClient, flatten_form
from app.providers.simulated import SimulatedProvider
from app.providers.stripe_connect import StripeConnectProvider
from services.metrics import get_counter
from settings import Settings

SECRET = "sk_test_abcdef123456"


def _provider(handler) -> StripeConnectProvider:
    http = HttpClient(transport=httpx.MockTransport(handler))
    return StripeConnectProvider(SECRET, api_base="https://stripe.test", http=http)


def _form(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode("utf-8")))


def test_flatten_form_nests_keys():
    form = flatten_form(
        {
            "amount": 100,
            "capabilities": {"transfers": {"requested": True}},
            "metadata": {"internal_payout_id": "po_1"},
            "skip": None,
        }
    )
    assert form == [
        ("amount", "100"),
        ("capabilities[transfers][requested]", "true"),
        ("metadata[internal_payout_id]", "po_1"),
    ]


def test_create_account_posts_express_account():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["form"] = _form(request)
        return httpx.Response(200, json={"id": "acct_123"})

    result = _provider(handler).create_account("pat@example.com", "US", {"partner_id": "partner-1"})

    assert result.account_id == "acct_123"
    assert seen["path"] == "/v1/accounts"
    assert seen["auth"] == f"Bearer {SECRET}"
    assert seen["form"]["type"] == "express"
    assert seen["form"]["capabilities[transfers][requested]"] == "true"
    assert seen["form"]["metadata[partner_id]"] == "partner-1"


def test_create_payout_runs_on_connected_account():
    seen = {}
    arrival = int(datetime(2026, 10, 19, tzinfo=timezone.utc).timestamp())

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["account"] = request.headers.get("Stripe-Account")
        seen["form"] = _form(request)
        return httpx.Response(
            200,
            json={"id": "po_abc", "amount": 9875, "currency": "usd", "arrival_date": arrival},
        )

    result = _provider(handler).create_payout("acct_123", 9_875, "usd", {"internal_payout_id": "po_1"})

    assert result.success is True
    assert result.payout_id == "po_abc"
    assert result.arrival_date.isoformat() == "2026-10-19"
    assert seen["path"] == "/v1/payouts"
    assert seen["account"] == "acct_123"
    assert seen["form"]["metadata[internal_payout_id]"] == "po_1"


def test_create_transfer_targets_destination():
    def handler(request: httpx.Request) -> httpx.Response:
        form = _form(request)
        assert request.url.path == "/v1/transfers"
        assert form["destination"] == "acct_123"
        assert "Stripe-Account" not in request.headers
        return httpx.Response(200, json={"id": "tr_1", "amount": int(form["amount"])})

    result = _provider(handler).create_transfer("acct_123", 9_875)
    assert (result.transfer_id, result.amount) == ("tr_1", 9_875)


def test_account_balance_picks_currency():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers.get("Stripe-Account") == "acct_123"
        return httpx.Response(
            200,
            json={
                "available": [{"amount": 700, "currency": "eur"}, {"amount": 5000, "currency": "usd"}],
                "pending": [{"amount": 250, "currency": "usd"}],
            },
        )

    balance = _provider(handler).get_account_balance("acct_123")
    assert (balance.available, balance.pending) == (5000, 250)


def test_get_account_onboarding_needs_details_and_payouts():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"id": "acct_123", "details_submitted": True, "payouts_enabled": False, "charges_enabled": True},
        )

    acct = _provider(handler).get_account("acct_123")
    assert acct.details_submitted is True
    assert acct.onboarding_complete is False


def test_http_error_maps_to_provider_error(caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Insufficient funds", "code": "balance_insufficient"}})

    caplog.set_level(logging.ERROR, logger="partnerpay.providers.stripe")
    with pytest.raises(ProviderError) as exc:
        _provider(handler).create_payout("acct_123", 9_875)

    assert exc.value.operation == "create_payout"
    assert exc.value.status_code == 400
    assert exc.value.retryable is False
    assert "Insufficient funds" in exc.value.message
    assert get_counter("provider_errors_total", {"operation": "create_payout"}) == 1
    assert SECRET not in caplog.text


def test_server_error_is_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    with pytest.raises(ProviderError) as exc:
        _provider(handler).create_transfer("acct_123", 100)
    assert exc.value.status_code == 503
    assert exc.value.retryable is True


def test_timeout_maps_to_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderError) as exc:
        _provider(handler).get_platform_balance()
    assert "Gateway timeout" in exc.value.message
    assert exc.value.retryable is True


def test_health_check_reports_outage():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid API Key provided"}})

    h = _provider(handler).health_check()
    assert (h.configured, h.operational) == (True, False)
    assert "Invalid API Key" in h.error


def test_factory_picks_provider_from_settings():
    assert isinstance(build_provider(Settings(STRIPE_SECRET_KEY="")), SimulatedProvider)

    live = build_provider(Settings(STRIPE_SECRET_KEY=SECRET))
    try:
        assert isinstance(live, StripeConnectProvider)
        assert live.configured is True
    finally:
        live.close()
