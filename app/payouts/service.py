# app/payouts/service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from app.notifications import LogPayoutNotifier, PayoutNotification, PayoutNotifier
from app.partners.model import Partner
from app.partners.repository import PartnerRepository, PaymentAccountRepository
from app.payouts.errors import (
    InvalidTransition,
    PaymentAccountMissing,
    PayoutNotFound,
    PayoutRequestError,
    ProviderError,
)
from app.payouts.fees import calculate_payout_fees
from app.payouts.model import (
    FeeBreakdown,
    NewPayout,
    Payout,
    PayoutConfig,
    PayoutStats,
    PayoutStatus,
)
from app.payouts.repository import DEFAULT_PAGE_SIZE, PayoutRepository, new_payout_id
from app.payouts.state_machine import ADMIN_ACTIONS, apply_transition
from app.payouts.validator import BELOW_MINIMUM, PARTNER_NOT_FOUND, validate_payout_request
from app.providers.base import HealthStatus, PaymentProvider
from services.metrics import increment_payout_request, increment_payout_transition

logger = logging.getLogger("partnerpay.payouts")

PAYOUT_METHODS = ("stripe", "manual")

_NOTIFY_STATUS = {
    PayoutStatus.PROCESSING: "processing",
    PayoutStatus.COMPLETED: "completed",
    PayoutStatus.FAILED: "failed",
}


@dataclass(frozen=True)
class OnboardingResult:
    account_id: str
    onboarding_url: str


@dataclass(frozen=True)
class PartnerPaymentStatus:
    has_payment_account: bool
    onboarding_complete: bool
    payouts_enabled: bool
    available_balance: int
    pending_balance: int
    can_request_payout: bool
    min_payout_amount: int
    account_id: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PayoutService:
    """
    Creates payouts and moves them through their lifecycle.

    Collaborators are injected: repositories for partners, payment accounts and
    payouts, the payment provider chosen at startup, and a notifier. Nothing
    here reads process-wide settings.
    """

    def __init__(
        self,
        *,
        payouts: PayoutRepository,
        partners: PartnerRepository,
        accounts: PaymentAccountRepository,
        provider: PaymentProvider,
        config: PayoutConfig,
        notifier: Optional[PayoutNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.payouts = payouts
        self.partners = partners
        self.accounts = accounts
        self.provider = provider
        self.config = config
        self.notifier = notifier or LogPayoutNotifier()
        self._clock = clock or _utcnow

    # ==========================================================
    # Fees
    # ==========================================================

    def calculate_fees(self, gross_amount_cents: int) -> FeeBreakdown:
        return calculate_payout_fees(
            gross_amount_cents,
            platform_fee_bps=self.config.platform_fee_bps,
            provider_fee_cents=self.config.provider_fee_cents,
        )

    # ==========================================================
    # Requests
    # ==========================================================

    def request_payout(self, partner_id: str, amount_cents: int, method: str = "stripe") -> Payout:
        """
        Validate, price and submit a payout.

        A request that passes validation counts as approved: with the default
        method it is persisted directly in PROCESSING. Manual requests wait in
        PENDING for an admin.
        """
        if method not in PAYOUT_METHODS:
            raise ValueError(f"Unsupported payout method: {method!r}")

        result = validate_payout_request(
            self.partners,
            partner_id,
            amount_cents,
            min_amount_cents=self.config.min_payout_cents,
        )
        if not result.ok:
            increment_payout_request(result.error_code or "invalid")
            logger.info(
                "payout request rejected partner_id=%s amount=%s code=%s",
                partner_id,
                amount_cents,
                result.error_code,
            )
            raise PayoutRequestError(result.message or "Payout request failed", code=result.error_code)

        partner = result.partner
        fees = self.calculate_fees(amount_cents)
        if fees.net_amount <= 0:
            increment_payout_request(BELOW_MINIMUM)
            raise PayoutRequestError("Payout amount does not cover fees", code=BELOW_MINIMUM)

        payout_id = new_payout_id()

        if method == "manual":
            payout = self.payouts.create(
                NewPayout(
                    id=payout_id,
                    partner_id=partner.id,
                    amount_cents=fees.gross_amount,
                    fee_cents=fees.total_fees,
                    net_cents=fees.net_amount,
                    status=PayoutStatus.PENDING,
                    method=method,
                )
            )
            increment_payout_request("pending")
            logger.info("payout requested payout_id=%s partner_id=%s amount=%s status=PENDING", payout.id, partner.id, amount_cents)
            return payout

        submitted = self._submit_to_provider(partner, payout_id, fees)
        payout = self.payouts.create(
            NewPayout(
                id=payout_id,
                partner_id=partner.id,
                amount_cents=fees.gross_amount,
                fee_cents=fees.total_fees,
                net_cents=fees.net_amount,
                status=PayoutStatus.PROCESSING,
                method=method,
                transaction_id=submitted.payout_id,
                estimated_arrival=submitted.arrival_date,
            )
        )
        increment_payout_request("processing")
        logger.info(
            "payout requested payout_id=%s partner_id=%s amount=%s net=%s status=PROCESSING",
            payout.id,
            partner.id,
            amount_cents,
            fees.net_amount,
        )
        self._notify(partner, payout)
        return payout

    def _submit_to_provider(self, partner: Partner, payout_id: str, fees: FeeBreakdown):
        account_id = self.accounts.get_account_id(partner.id)
        if not account_id:
            if self.provider.configured:
                increment_payout_request("provider_error")
                raise ProviderError("create_payout", "partner has no connected payment account")
            account_id = f"mock_acct_{partner.id}"

        metadata = {"internal_payout_id": payout_id, "partner_id": partner.id}
        currency = self.config.currency
        transfer = None
        try:
            transfer = self.provider.create_transfer(account_id, fees.net_amount, currency, metadata)
            submitted = self.provider.create_payout(account_id, fees.net_amount, currency, metadata)
        except ProviderError as e:
            if transfer is not None:
                # Funds already moved; not reversed here.
                logger.error(
                    "payout failed after transfer payout_id=%s transfer_id=%s account_id=%s amount=%s",
                    payout_id,
                    transfer.transfer_id,
                    account_id,
                    fees.net_amount,
                )
            increment_payout_request("provider_error")
            logger.warning(
                "payout submission failed payout_id=%s partner_id=%s account_id=%s amount=%s operation=%s",
                payout_id,
                partner.id,
                account_id,
                fees.net_amount,
                e.operation,
            )
            raise

        if not submitted.success:
            increment_payout_request("provider_error")
            raise ProviderError("create_payout", "provider did not accept the payout")

        logger.info(
            "payout submitted payout_id=%s transfer_id=%s provider_payout_id=%s",
            payout_id,
            transfer.transfer_id,
            submitted.payout_id,
        )
        return submitted

    # ==========================================================
    # Transitions
    # ==========================================================

    def _get(self, payout_id: str) -> Payout:
        payout = self.payouts.find_by_id(payout_id)
        if payout is None:
            raise PayoutNotFound(payout_id)
        return payout

    def _transition(
        self,
        payout_id: str,
        action: str,
        *,
        transaction_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Payout:
        current = self._get(payout_id)
        try:
            updated = apply_transition(
                current,
                action,
                now=self._clock(),
                transaction_id=transaction_id,
                reason=reason,
            )
        except InvalidTransition:
            logger.info(
                "payout transition refused payout_id=%s action=%s status=%s",
                payout_id,
                action,
                current.status.value,
            )
            raise

        if not self.payouts.update(updated, expected_status=current.status):
            # someone else moved it between our read and write
            raise InvalidTransition(
                "Payout was modified concurrently",
                current_status=current.status.value,
                action=action,
            )

        increment_payout_transition(action, updated.status.value)
        logger.info(
            "payout transition payout_id=%s action=%s status=%s",
            payout_id,
            action,
            updated.status.value,
        )

        stored = self.payouts.find_by_id(payout_id) or updated
        partner = self.partners.find_by_id(stored.partner_id)
        if partner is not None:
            self._notify(partner, stored)
        return stored

    def perform_action(self, payout_id: str, action: str, *, reason: Optional[str] = None) -> Payout:
        """Admin action: approve, process or reject."""
        if action not in ADMIN_ACTIONS:
            raise InvalidTransition(f"Unknown payout action: {action}", action=action)
        return self._transition(payout_id, action, reason=reason)

    def complete_payout(self, payout_id: str, transaction_id: str) -> Payout:
        return self._transition(payout_id, "settle", transaction_id=transaction_id)

    def fail_payout(self, payout_id: str, reason: str) -> Payout:
        payout = self._transition(payout_id, "fail", reason=reason)
        logger.warning("payout failed payout_id=%s partner_id=%s", payout_id, payout.partner_id)
        return payout

    # ==========================================================
    # Reads
    # ==========================================================

    def get_payout(self, payout_id: str) -> Payout:
        return self._get(payout_id)

    def list_partner_payouts(
        self,
        partner_id: str,
        *,
        status: Optional[PayoutStatus] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Payout]:
        return self.payouts.find_by_partner_id(partner_id, status=status, limit=limit, offset=offset)

    def count_partner_payouts(self, partner_id: str, *, status: Optional[PayoutStatus] = None) -> int:
        return self.payouts.count_by_partner_id(partner_id, status=status)

    def list_payouts(self, *, status: Optional[PayoutStatus] = None, limit: int = 200) -> list[Payout]:
        return self.payouts.list_all(status=status, limit=limit)

    def get_partner_payout_stats(self, partner_id: str) -> PayoutStats:
        total = self.payouts.count_by_partner_id(partner_id)
        records = self.payouts.find_by_partner_id(partner_id, limit=max(total, 1))

        total_paid = total_pending = total_processing = paid_count = 0
        last_payout_date: Optional[datetime] = None
        for p in records:
            if p.status == PayoutStatus.COMPLETED:
                total_paid += p.net_cents
                paid_count += 1
                if p.processed_at and (last_payout_date is None or p.processed_at > last_payout_date):
                    last_payout_date = p.processed_at
            elif p.status == PayoutStatus.PENDING:
                total_pending += p.net_cents
            elif p.status == PayoutStatus.PROCESSING:
                total_processing += p.net_cents

        return PayoutStats(
            total_paid=total_paid,
            total_pending=total_pending,
            total_processing=total_processing,
            payout_count=paid_count,
            last_payout_date=last_payout_date,
        )

    # ==========================================================
    # Payment accounts
    # ==========================================================

    def _require_partner(self, partner_id: str) -> Partner:
        partner = self.partners.find_by_id(partner_id)
        if partner is None:
            raise PayoutRequestError("Partner not found", code=PARTNER_NOT_FOUND)
        return partner

    def setup_partner_payments(self, partner_id: str) -> OnboardingResult:
        partner = self._require_partner(partner_id)

        account_id = self.accounts.get_account_id(partner.id)
        if not account_id:
            created = self.provider.create_account(
                partner.email,
                "US",
                {"partner_id": partner.id, "partner_name": partner.name, "referral_code": partner.referral_code},
            )
            account_id = created.account_id
            self.accounts.save_account_id(partner.id, account_id)

        base = self.config.app_url
        link = self.provider.create_onboarding_link(
            account_id,
            f"{base}/dashboard/settings?tab=payments&refresh=true",
            f"{base}/dashboard/settings?tab=payments&success=true",
        )
        logger.info("partner payment setup initiated partner_id=%s account_id=%s", partner.id, account_id)
        return OnboardingResult(account_id=account_id, onboarding_url=link.url)

    def get_partner_payment_status(self, partner_id: str) -> PartnerPaymentStatus:
        minimum = self.config.min_payout_cents
        account_id = self.accounts.get_account_id(partner_id)
        if not account_id:
            return PartnerPaymentStatus(
                has_payment_account=False,
                onboarding_complete=False,
                payouts_enabled=False,
                available_balance=0,
                pending_balance=0,
                can_request_payout=False,
                min_payout_amount=minimum,
            )

        try:
            account = self.provider.get_account(account_id)
            balance = self.provider.get_account_balance(account_id)
        except ProviderError as e:
            logger.warning(
                "payment status unavailable partner_id=%s account_id=%s operation=%s",
                partner_id,
                account_id,
                e.operation,
            )
            return PartnerPaymentStatus(
                has_payment_account=True,
                account_id=account_id,
                onboarding_complete=False,
                payouts_enabled=False,
                available_balance=0,
                pending_balance=0,
                can_request_payout=False,
                min_payout_amount=minimum,
            )

        return PartnerPaymentStatus(
            has_payment_account=True,
            account_id=account_id,
            onboarding_complete=account.onboarding_complete,
            payouts_enabled=account.payouts_enabled,
            available_balance=balance.available,
            pending_balance=balance.pending,
            can_request_payout=account.payouts_enabled and balance.available >= minimum,
            min_payout_amount=minimum,
        )

    def get_partner_dashboard_link(self, partner_id: str) -> str:
        account_id = self.accounts.get_account_id(partner_id)
        if not account_id:
            raise PaymentAccountMissing(partner_id)
        return self.provider.create_login_link(account_id).url

    # ==========================================================
    # Status
    # ==========================================================

    def health(self) -> HealthStatus:
        return self.provider.health_check()

    def payment_service_status(self) -> dict:
        configured = bool(self.provider.configured)
        return {
            "configured": configured,
            "provider": self.provider.name,
            "features": {
                "connectAccounts": configured,
                "instantPayouts": False,
                "manualPayouts": True,
            },
        }

    # ==========================================================
    # Notifications
    # ==========================================================

    def _notify(self, partner: Partner, payout: Payout) -> None:
        status = _NOTIFY_STATUS.get(payout.status)
        if status is None:
            return
        try:
            self.notifier.send_payout_notification(
                PayoutNotification(
                    partner=partner,
                    payout_id=payout.id,
                    status=status,
                    payout_amount=payout.amount_cents,
                    payout_fee=payout.fee_cents,
                    net_amount=payout.net_cents,
                    estimated_arrival=payout.estimated_arrival,
                    transaction_id=payout.transaction_id,
                    failure_reason=payout.failure_reason,
                )
            )
        except Exception:
            # fire-and-forget: a broken mailer never fails the payout
            logger.exception("payout notification failed payout_id=%s", payout.id)
