from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from settings import Settings


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Payout:
    id: str
    partner_id: str
    amount_cents: int
    fee_cents: int
    net_cents: int
    status: PayoutStatus
    requested_at: datetime
    processed_at: Optional[datetime] = None
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    estimated_arrival: Optional[date] = None


@dataclass(frozen=True)
class NewPayout:
    """Everything the repository needs to insert a payout; it assigns id and requested_at."""

    partner_id: str
    amount_cents: int
    fee_cents: int
    net_cents: int
    status: PayoutStatus
    id: Optional[str] = None
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    estimated_arrival: Optional[date] = None

    def __post_init__(self) -> None:
        if self.amount_cents != self.fee_cents + self.net_cents:
            raise ValueError(
                f"Invariant violation: amount_cents={self.amount_cents} "
                f"!= fee_cents={self.fee_cents} + net_cents={self.net_cents}"
            )


@dataclass(frozen=True)
class FeeBreakdown:
    gross_amount: int
    platform_fee: int
    provider_fee: int
    net_amount: int

    @property
    def total_fees(self) -> int:
        return self.platform_fee + self.provider_fee


@dataclass(frozen=True)
class PayoutStats:
    total_paid: int = 0
    total_pending: int = 0
    total_processing: int = 0
    payout_count: int = 0
    last_payout_date: Optional[datetime] = None


@dataclass(frozen=True)
class PayoutConfig:
    platform_fee_bps: int = 100
    provider_fee_cents: int = 25
    min_payout_cents: int = 1000
    currency: str = "usd"
    app_url: str = "https://innercircle.co"

    @classmethod
    def from_settings(cls, s: Settings) -> "PayoutConfig":
        return cls(
            platform_fee_bps=int(s.PLATFORM_FEE_BPS),
            provider_fee_cents=int(s.PROVIDER_FEE_CENTS),
            min_payout_cents=int(s.MIN_PAYOUT_CENTS),
            currency=(s.PAYOUT_CURRENCY or "usd").strip().lower(),
            app_url=(s.APP_URL or "").rstrip("/"),
        )
