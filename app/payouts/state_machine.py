# app/payouts/state_machine.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from app.payouts.errors import InvalidTransition
from app.payouts.model import Payout, PayoutStatus

PENDING = PayoutStatus.PENDING
PROCESSING = PayoutStatus.PROCESSING
COMPLETED = PayoutStatus.COMPLETED
FAILED = PayoutStatus.FAILED


@dataclass(frozen=True)
class Transition:
    legal_from: frozenset
    result: PayoutStatus
    message: str


# admin actions
ADMIN_ACTIONS = {
    "approve": Transition(frozenset({PENDING, FAILED}), PROCESSING, "Payout cannot be approved in current status"),
    "process": Transition(frozenset({PROCESSING}), COMPLETED, "Payout must be in PROCESSING status"),
    "reject": Transition(frozenset({PENDING}), FAILED, "Only pending payouts can be rejected"),
}

# provider callbacks
PROVIDER_EVENTS = {
    "settle": Transition(frozenset({PROCESSING}), COMPLETED, "Only processing payouts can settle"),
    "fail": Transition(frozenset({PENDING, PROCESSING}), FAILED, "Payout cannot fail from current status"),
}

TRANSITIONS = {**ADMIN_ACTIONS, **PROVIDER_EVENTS}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def assert_transition(status: PayoutStatus, action: str) -> PayoutStatus:
    t = TRANSITIONS.get(action)
    if t is None:
        raise InvalidTransition(f"Unknown payout action: {action}", current_status=PayoutStatus(status).value, action=action)
    if PayoutStatus(status) not in t.legal_from:
        raise InvalidTransition(t.message, current_status=PayoutStatus(status).value, action=action)
    return t.result


def apply_transition(
    payout: Payout,
    action: str,
    *,
    now: Optional[datetime] = None,
    transaction_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> Payout:
    """
    Return the payout as it should look after `action`.

    Raises InvalidTransition without touching anything when the action is not
    legal from the payout's current status.
    """
    new_status = assert_transition(payout.status, action)
    changes: dict = {"status": new_status}

    if new_status == COMPLETED and payout.processed_at is None:
        changes["processed_at"] = now or _utcnow()
    if transaction_id:
        changes["transaction_id"] = transaction_id
    if new_status == FAILED and reason:
        changes["failure_reason"] = reason
    if new_status == PROCESSING:
        changes["failure_reason"] = None

    return replace(payout, **changes)
