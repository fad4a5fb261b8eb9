# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.notifications import PayoutNotification
from app.partners.model import Partner
from app.partners.repository import InMemoryPartnerRepository, InMemoryPaymentAccountRepository
from app.payouts.model import Payout, PayoutConfig, PayoutStatus
from app.payouts.repository import InMemoryPayoutRepository, new_payout_id
from app.payouts.service import PayoutService
from app.providers.simulated import SimulatedProvider
from main import create_app
from security import ROLE_ADMIN, ROLE_PARTNER, create_access_token
from services.metrics import reset_metrics

FIXED_NOW = datetime(2026, 10, 16, 15, 30, tzinfo=timezone.utc)  # a Friday
FIXED_TODAY = FIXED_NOW.date()

PARTNER_ID = "partner-1"
OTHER_PARTNER_ID = "partner-2"


class RecordingNotifier:
    def __init__(self):
        self.sent: List[PayoutNotification] = []

    def send_payout_notification(self, notification: PayoutNotification) -> None:
        self.sent.append(notification)


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def partners() -> InMemoryPartnerRepository:
    return InMemoryPartnerRepository(
        [
            Partner(id=PARTNER_ID, email="pat@example.com", name="Pat Lee", referral_code="PAT2026"),
            Partner(id=OTHER_PARTNER_ID, email="kim@example.com", name="Kim Ito", referral_code="KIM2026"),
        ]
    )


@pytest.fixture()
def accounts() -> InMemoryPaymentAccountRepository:
    return InMemoryPaymentAccountRepository()


@pytest.fixture()
def payouts() -> InMemoryPayoutRepository:
    return InMemoryPayoutRepository()


@pytest.fixture()
def provider() -> SimulatedProvider:
    return SimulatedProvider(today=lambda: FIXED_TODAY)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def service(payouts, partners, accounts, provider, notifier) -> PayoutService:
    return PayoutService(
        payouts=payouts,
        partners=partners,
        accounts=accounts,
        provider=provider,
        config=PayoutConfig(),
        notifier=notifier,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def seed_payout(payouts):
    """Put a payout straight into the store in any status, e.g. one a batch job left PENDING."""

    def _seed(
        status: PayoutStatus = PayoutStatus.PENDING,
        *,
        partner_id: str = PARTNER_ID,
        amount_cents: int = 10_000,
        processed_at: Optional[datetime] = None,
        requested_at: Optional[datetime] = None,
    ) -> Payout:
        fee = (amount_cents + 50) // 100 + 25
        return payouts.seed(
            Payout(
                id=new_payout_id(),
                partner_id=partner_id,
                amount_cents=amount_cents,
                fee_cents=fee,
                net_cents=amount_cents - fee,
                status=status,
                requested_at=requested_at or FIXED_NOW,
                processed_at=processed_at,
                method="stripe",
            )
        )

    return _seed


@pytest.fixture()
def client(service) -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    app = create_app(service)
    return TestClient(app, raise_server_exceptions=False)


def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_required(monkeypatch):
    from settings import settings

    monkeypatch.setattr(settings, "AUTH_REQUIRED", True, raising=False)


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return _auth_headers(create_access_token("admin-1", role=ROLE_ADMIN))


@pytest.fixture()
def partner_headers() -> Dict[str, str]:
    return _auth_headers(create_access_token(PARTNER_ID, role=ROLE_PARTNER))


@pytest.fixture()
def other_partner_headers() -> Dict[str, str]:
    return _auth_headers(create_access_token(OTHER_PARTNER_ID, role=ROLE_PARTNER))
