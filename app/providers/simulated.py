# app/providers/simulated.py
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

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

logger = logging.getLogger("partnerpay.providers")

MOCK_DASHBOARD_URL = "https://dashboard.stripe.com/test/express"


def _today() -> date:
    return datetime.now(timezone.utc).date()


def next_business_day(d: date) -> date:
    nxt = d + timedelta(days=1)
    while nxt.weekday() >= 5:  # Sat, Sun
        nxt += timedelta(days=1)
    return nxt


class SimulatedProvider(PaymentProvider):
    """
    In-process stand-in used whenever no live credentials are configured.

    Never moves money and never fails; ids carry a `mock_` prefix so they are
    recognizable in the payout table.
    """

    name = "None (mock mode)"
    configured = False

    def __init__(self, *, today: Optional[Callable[[], date]] = None, currency: str = "usd"):
        self._today = today or _today
        self._currency = currency

    @staticmethod
    def _mock_id(prefix: str) -> str:
        return f"mock_{prefix}_{uuid.uuid4().hex[:16]}"

    def create_account(self, email, country="US", metadata=None):
        account_id = self._mock_id("acct")
        logger.info("simulated account creation account_id=%s country=%s", account_id, country)
        return AccountResult(account_id=account_id)

    def create_onboarding_link(self, account_id, refresh_url, return_url):
        logger.info("simulated onboarding link account_id=%s", account_id)
        sep = "&" if "?" in return_url else "?"
        return LinkResult(url=f"{return_url}{sep}mock=true")

    def create_login_link(self, account_id):
        return LinkResult(url=MOCK_DASHBOARD_URL)

    def get_account(self, account_id):
        return ProviderAccount(
            account_id=account_id,
            onboarding_complete=True,
            payouts_enabled=True,
            charges_enabled=True,
            country="US",
            currency=self._currency,
            email="mock@example.com",
            details_submitted=True,
        )

    def get_platform_balance(self):
        return ProviderBalance(available=100_000, pending=25_000, currency=self._currency)

    def get_account_balance(self, account_id):
        return ProviderBalance(available=50_000, pending=10_000, currency=self._currency)

    def create_transfer(self, account_id, amount_cents, currency="usd", metadata=None):
        transfer_id = self._mock_id("tr")
        logger.info("simulated transfer account_id=%s amount=%s transfer_id=%s", account_id, amount_cents, transfer_id)
        return TransferResult(success=True, transfer_id=transfer_id, amount=amount_cents)

    def create_payout(self, account_id, amount_cents, currency="usd", metadata=None):
        payout_id = self._mock_id("po")
        arrival = next_business_day(self._today())
        logger.info(
            "simulated payout account_id=%s amount=%s payout_id=%s arrival=%s",
            account_id,
            amount_cents,
            payout_id,
            arrival.isoformat(),
        )
        return PayoutResult(
            success=True,
            payout_id=payout_id,
            amount=amount_cents,
            currency=currency,
            arrival_date=arrival,
        )

    def health_check(self):
        return HealthStatus(configured=False, operational=True)
