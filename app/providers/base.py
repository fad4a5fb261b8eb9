# app/providers/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class AccountResult:
    account_id: str


@dataclass(frozen=True)
class LinkResult:
    url: str


@dataclass(frozen=True)
class ProviderAccount:
    account_id: str
    onboarding_complete: bool
    payouts_enabled: bool
    charges_enabled: bool
    country: str
    currency: str
    email: str = ""
    details_submitted: bool = False


@dataclass(frozen=True)
class ProviderBalance:
    available: int
    pending: int
    currency: str


@dataclass(frozen=True)
class TransferResult:
    success: bool
    transfer_id: Optional[str] = None
    amount: Optional[int] = None


@dataclass(frozen=True)
class PayoutResult:
    success: bool
    payout_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    arrival_date: Optional[date] = None


@dataclass(frozen=True)
class HealthStatus:
    configured: bool
    operational: bool
    error: Optional[str] = None


class PaymentProvider(ABC):
    """
    Money-movement capability set.

    Live implementations raise app.payouts.errors.ProviderError on any
    upstream rejection or transport failure.
    """

    name: str = "provider"
    configured: bool = False

    @abstractmethod
    def create_account(self, email: str, country: str = "US", metadata: Optional[dict[str, str]] = None) -> AccountResult:
        raise NotImplementedError()

    @abstractmethod
    def create_onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> LinkResult:
        raise NotImplementedError()

    @abstractmethod
    def create_login_link(self, account_id: str) -> LinkResult:
        raise NotImplementedError()

    @abstractmethod
    def get_account(self, account_id: str) -> ProviderAccount:
        raise NotImplementedError()

    @abstractmethod
    def get_platform_balance(self) -> ProviderBalance:
        raise NotImplementedError()

    @abstractmethod
    def get_account_balance(self, account_id: str) -> ProviderBalance:
        raise NotImplementedError()

    @abstractmethod
    def create_transfer(
        self,
        account_id: str,
        amount_cents: int,
        currency: str = "usd",
        metadata: Optional[dict[str, str]] = None,
    ) -> TransferResult:
        raise NotImplementedError()

    @abstractmethod
    def create_payout(
        self,
        account_id: str,
        amount_cents: int,
        currency: str = "usd",
        metadata: Optional[dict[str, str]] = None,
    ) -> PayoutResult:
        raise NotImplementedError()

    @abstractmethod
    def health_check(self) -> HealthStatus:
        raise NotImplementedError()
