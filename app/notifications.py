# app/notifications.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from app.partners.model import Partner
from services.observability import get_request_id
from services.redaction import redact_text

logger = logging.getLogger("partnerpay.notifications")


@dataclass(frozen=True)
class PayoutNotification:
    partner: Partner
    payout_id: str
    status: str  # processing | completed | failed
    payout_amount: int
    payout_fee: int
    net_amount: int
    payout_method: str = "Bank Transfer"
    estimated_arrival: Optional[date] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


class PayoutNotifier(Protocol):
    def send_payout_notification(self, notification: PayoutNotification) -> None: ...


class LogPayoutNotifier:
    """Default notifier: records the email that would have gone out."""

    def send_payout_notification(self, notification: PayoutNotification) -> None:
        logger.info(
            "payout email queued request_id=%s to=%s payout_id=%s status=%s net=%s",
            get_request_id(),
            redact_text(notification.partner.email),
            notification.payout_id,
            notification.status,
            notification.net_amount,
        )
