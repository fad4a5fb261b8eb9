# schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel

from app.payouts.model import Payout, PayoutStats

PayoutStatusName = Literal["PENDING", "PROCESSING", "COMPLETED", "FAILED"]
PayoutMethod = Literal["stripe", "manual"]
AdminAction = Literal["approve", "process", "reject"]


class CamelModel(BaseModel):
    # portal clients send and expect camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


# -------- PAYOUTS --------
class PayoutRequest(CamelRequest):
    partner_id: str = Field(min_length=1)
    amount_cents: StrictInt = Field(gt=0)
    method: PayoutMethod = "stripe"


class PayoutOut(CamelModel):
    id: str
    partner_id: str
    amount_cents: int
    fee_cents: int
    net_cents: int
    status: PayoutStatusName
    requested_at: datetime
    processed_at: Optional[datetime] = None
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    estimated_arrival: Optional[date] = None

    @classmethod
    def from_payout(cls, p: Payout) -> "PayoutOut":
        return cls(
            id=p.id,
            partner_id=p.partner_id,
            amount_cents=p.amount_cents,
            fee_cents=p.fee_cents,
            net_cents=p.net_cents,
            status=p.status.value,
            requested_at=p.requested_at,
            processed_at=p.processed_at,
            method=p.method,
            transaction_id=p.transaction_id,
            failure_reason=p.failure_reason,
            estimated_arrival=p.estimated_arrival,
        )


class PayoutCreatedResponse(CamelModel):
    success: bool = True
    payout: PayoutOut


class PayoutStatsResponse(CamelModel):
    total_paid: int
    total_pending: int
    total_processing: int
    payout_count: int
    last_payout_date: Optional[datetime] = None

    @classmethod
    def from_stats(cls, s: PayoutStats) -> "PayoutStatsResponse":
        return cls(
            total_paid=s.total_paid,
            total_pending=s.total_pending,
            total_processing=s.total_processing,
            payout_count=s.payout_count,
            last_payout_date=s.last_payout_date,
        )


class PayoutListResponse(CamelModel):
    partner_id: str
    payouts: List[PayoutOut]
    total: int
    limit: int
    offset: int


class AdminPayoutListResponse(CamelModel):
    payouts: List[PayoutOut]


class PayoutActionRequest(CamelRequest):
    action: AdminAction
    reason: Optional[str] = Field(default=None, max_length=500)


class PayoutActionResponse(CamelModel):
    success: bool = True
    new_status: PayoutStatusName


# -------- PAYMENT ACCOUNTS --------
class ConnectRequest(CamelRequest):
    partner_id: str = Field(min_length=1)


class ConnectResponse(CamelModel):
    success: bool = True
    account_id: str
    onboarding_url: str


class PaymentStatusResponse(CamelModel):
    has_payment_account: bool
    account_id: Optional[str] = None
    onboarding_complete: bool
    payouts_enabled: bool
    available_balance: int
    pending_balance: int
    can_request_payout: bool
    min_payout_amount: int


class DashboardLinkResponse(CamelModel):
    url: str


# -------- WEBHOOKS --------
class WebhookAck(CamelModel):
    received: bool = True
    applied: bool = False
