# services/payout_errors.py
from __future__ import annotations

from fastapi import HTTPException

from app.payouts.errors import PayoutError

PAYOUT_ERROR_HTTP_MAP: dict[str, int] = {
    "BELOW_MINIMUM": 400,
    "PARTNER_NOT_FOUND": 404,
    "NOT_FOUND": 404,
    "PAYMENT_ACCOUNT_NOT_FOUND": 404,
    "INVALID_TRANSITION": 409,
    "PROVIDER_ERROR": 502,
}


def raise_http_from_payout_error(exc: PayoutError) -> None:
    """
    Convert a payout engine error into an HTTP response carrying its stable code.
    Unknown codes fail closed.
    """
    status = PAYOUT_ERROR_HTTP_MAP.get(exc.code)
    if status is None:
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    if status == 502:
        # upstream detail stays in the logs
        raise HTTPException(
            status_code=status,
            detail={"code": exc.code, "message": "Payment provider unavailable"},
        ) from exc

    raise HTTPException(status_code=status, detail={"code": exc.code, "message": exc.message}) from exc
