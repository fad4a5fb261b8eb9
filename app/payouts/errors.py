from __future__ import annotations

from typing import Optional


class PayoutError(Exception):
    code = "PAYOUT_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code
        self.message = message


class PayoutRequestError(PayoutError):
    """Validation failure for a new payout request (BELOW_MINIMUM, PARTNER_NOT_FOUND)."""


class PayoutNotFound(PayoutError):
    code = "NOT_FOUND"

    def __init__(self, payout_id: str):
        super().__init__("Payout not found")
        self.payout_id = payout_id


class InvalidTransition(PayoutError):
    code = "INVALID_TRANSITION"

    def __init__(self, message: str, *, current_status: Optional[str] = None, action: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.action = action


class ProviderError(PayoutError):
    code = "PROVIDER_ERROR"

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        retryable: bool = True,
    ):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.status_code = status_code
        self.retryable = retryable


class PaymentAccountMissing(PayoutError):
    code = "PAYMENT_ACCOUNT_NOT_FOUND"

    def __init__(self, partner_id: str):
        super().__init__("Partner has no connected payment account")
        self.partner_id = partner_id
