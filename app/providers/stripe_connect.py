# app/providers/stripe_connect.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from app.payouts.errors import ProviderError
from app.providers.base import (
    AccountResult,
    HealthStatus,
    LinkResult,
    PaymentProvider,
    PayoutResult,
    ProviderAccount,
    ProviderBalance,
    TransferResult,
)
from app.providers.http import HttpClient, HttpResponse, is_retryable_http
from services.metrics import increment_provider_error
from services.redaction import redact_dict, redact_text

logger = logging.getLogger("partnerpay.providers.stripe")


def _error_message(resp: HttpResponse) -> str:
    body = resp.json if isinstance(resp.json, dict) else {}
    err = body.get("error") if isinstance(body.get("error"), dict) else {}
    return str(err.get("message") or err.get("code") or f"HTTP {resp.status_code}")


def _pick_currency(entries: Any, currency: str) -> int:
    for entry in entries or []:
        if isinstance(entry, dict) and (entry.get("currency") or "").lower() == currency:
            return int(entry.get("amount") or 0)
    return 0


class StripeConnectProvider(PaymentProvider):
    """Stripe Connect (Express accounts) over the REST API."""

    name = "Stripe Connect"
    configured = True

    def __init__(
        self,
        secret_key: str,
        *,
        api_base: str = "https://api.stripe.com",
        currency: str = "usd",
        http: Optional[HttpClient] = None,
        timeout_s: float = 20.0,
    ):
        if not (secret_key or "").strip():
            raise RuntimeError("STRIPE_SECRET_KEY missing for Stripe Connect provider.")
        self._secret_key = secret_key.strip()
        self._api_base = api_base.rstrip("/")
        self._currency = currency
        self.http = http or HttpClient(timeout_s=timeout_s)

    def close(self) -> None:
        self.http.close()

    # ---------------------------------------------------------------
    # plumbing
    # ---------------------------------------------------------------

    def _headers(self, account_id: Optional[str] = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        if account_id:
            headers["Stripe-Account"] = account_id
        return headers

    def _fail(self, operation: str, message: str, *, status_code: Optional[int] = None, **context) -> ProviderError:
        increment_provider_error(operation)
        logger.error(
            "stripe %s failed status=%s error=%s context=%s",
            operation,
            status_code,
            redact_text(message),
            redact_dict({k: v for k, v in context.items() if v is not None}),
        )
        retryable = status_code is None or is_retryable_http(status_code)
        return ProviderError(operation, message, status_code=status_code, retryable=retryable)

    def _call(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        form: Optional[dict[str, Any]] = None,
        on_behalf_of: Optional[str] = None,
        **context,
    ) -> dict[str, Any]:
        url = f"{self._api_base}{path}"
        headers = self._headers(on_behalf_of)
        try:
            if method == "GET":
                resp = self.http.get(url, headers=headers, debug=True)
            else:
                resp = self.http.post_form(url, headers=headers, form=form, debug=True)
        except httpx.TimeoutException:
            raise self._fail(operation, "Gateway timeout", **context)
        except httpx.HTTPError as e:
            raise self._fail(operation, f"{type(e).__name__}: {e}", **context)

        if not resp.ok or not isinstance(resp.json, dict):
            raise self._fail(operation, _error_message(resp), status_code=resp.status_code, **context)
        return resp.json

    # ---------------------------------------------------------------
    # accounts
    # ---------------------------------------------------------------

    def create_account(self, email, country="US", metadata=None):
        body = self._call(
            "create_account",
            "POST",
            "/v1/accounts",
            form={
                "type": "express",
                "email": email,
                "country": country,
                "business_type": "individual",
                "capabilities": {"transfers": {"requested": True}},
                "metadata": metadata or None,
            },
            email=email,
        )
        logger.info("stripe connect account created account_id=%s", body.get("id"))
        return AccountResult(account_id=str(body["id"]))

    def create_onboarding_link(self, account_id, refresh_url, return_url):
        body = self._call(
            "create_onboarding_link",
            "POST",
            "/v1/account_links",
            form={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
            account_id=account_id,
        )
        return LinkResult(url=str(body["url"]))

    def create_login_link(self, account_id):
        body = self._call(
            "create_login_link",
            "POST",
            f"/v1/accounts/{account_id}/login_links",
            account_id=account_id,
        )
        return LinkResult(url=str(body["url"]))

    def get_account(self, account_id):
        body = self._call("get_account", "GET", f"/v1/accounts/{account_id}", account_id=account_id)
        details_submitted = bool(body.get("details_submitted"))
        payouts_enabled = bool(body.get("payouts_enabled"))
        return ProviderAccount(
            account_id=str(body.get("id") or account_id),
            onboarding_complete=details_submitted and payouts_enabled,
            payouts_enabled=payouts_enabled,
            charges_enabled=bool(body.get("charges_enabled")),
            country=str(body.get("country") or "US"),
            currency=str(body.get("default_currency") or self._currency),
            email=str(body.get("email") or ""),
            details_submitted=details_submitted,
        )

    # ---------------------------------------------------------------
    # balances
    # ---------------------------------------------------------------

    def _balance(self, operation: str, account_id: Optional[str]) -> ProviderBalance:
        body = self._call(operation, "GET", "/v1/balance", on_behalf_of=account_id, account_id=account_id)
        return ProviderBalance(
            available=_pick_currency(body.get("available"), self._currency),
            pending=_pick_currency(body.get("pending"), self._currency),
            currency=self._currency,
        )

    def get_platform_balance(self):
        return self._balance("get_platform_balance", None)

    def get_account_balance(self, account_id):
        return self._balance("get_account_balance", account_id)

    # ---------------------------------------------------------------
    # money movement
    # ---------------------------------------------------------------

    def create_transfer(self, account_id, amount_cents, currency="usd", metadata=None):
        body = self._call(
            "create_transfer",
            "POST",
            "/v1/transfers",
            form={
                "amount": int(amount_cents),
                "currency": currency,
                "destination": account_id,
                "metadata": metadata or None,
            },
            account_id=account_id,
            amount=amount_cents,
        )
        logger.info(
            "stripe transfer created transfer_id=%s account_id=%s amount=%s",
            body.get("id"),
            account_id,
            amount_cents,
        )
        return TransferResult(success=True, transfer_id=str(body["id"]), amount=int(body.get("amount") or amount_cents))

    def create_payout(self, account_id, amount_cents, currency="usd", metadata=None):
        body = self._call(
            "create_payout",
            "POST",
            "/v1/payouts",
            form={"amount": int(amount_cents), "currency": currency, "metadata": metadata or None},
            on_behalf_of=account_id,
            account_id=account_id,
            amount=amount_cents,
        )
        arrival = body.get("arrival_date")
        arrival_date = datetime.fromtimestamp(int(arrival), tz=timezone.utc).date() if arrival else None
        logger.info(
            "stripe payout created payout_id=%s account_id=%s amount=%s",
            body.get("id"),
            account_id,
            amount_cents,
        )
        return PayoutResult(
            success=True,
            payout_id=str(body["id"]),
            amount=int(body.get("amount") or amount_cents),
            currency=str(body.get("currency") or currency),
            arrival_date=arrival_date,
        )

    def health_check(self):
        try:
            self.get_platform_balance()
        except ProviderError as e:
            return HealthStatus(configured=True, operational=False, error=e.message)
        return HealthStatus(configured=True, operational=True)
