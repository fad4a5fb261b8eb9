from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.partners.model import Partner
from app.partners.repository import PartnerRepository

BELOW_MINIMUM = "BELOW_MINIMUM"
PARTNER_NOT_FOUND = "PARTNER_NOT_FOUND"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    partner: Optional[Partner] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


def _format_dollars(cents: int) -> str:
    return f"${cents // 100}.{cents % 100:02d}"


def validate_payout_request(
    partners: PartnerRepository,
    partner_id: str,
    amount_cents: int,
    *,
    min_amount_cents: int,
) -> ValidationResult:
    # gross amount is compared, before any fee is taken
    if amount_cents < min_amount_cents:
        return ValidationResult(
            ok=False,
            error_code=BELOW_MINIMUM,
            message=f"Minimum payout amount is {_format_dollars(min_amount_cents)}",
        )

    partner = partners.find_by_id(partner_id)
    if partner is None:
        return ValidationResult(ok=False, error_code=PARTNER_NOT_FOUND, message="Partner not found")

    return ValidationResult(ok=True, partner=partner)
