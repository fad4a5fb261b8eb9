from __future__ import annotations

from app.payouts.model import FeeBreakdown

BPS_DENOMINATOR = 10_000


def _round_half_up_div(numerator: int, denominator: int) -> int:
    # integer-only nearest rounding; .5 goes up
    return (2 * numerator + denominator) // (2 * denominator)


def calculate_payout_fees(
    gross_amount_cents: int,
    *,
    platform_fee_bps: int = 100,
    provider_fee_cents: int = 25,
) -> FeeBreakdown:
    """
    Split a gross payout into platform fee, flat provider fee and net amount.

    Net may come out negative for tiny amounts; rejecting those is the
    validator's job, not ours.
    """
    if isinstance(gross_amount_cents, bool) or not isinstance(gross_amount_cents, int):
        raise ValueError(f"gross_amount_cents must be an int, got {type(gross_amount_cents).__name__}")
    if gross_amount_cents < 0:
        raise ValueError("gross_amount_cents must be non-negative")

    platform_fee = _round_half_up_div(gross_amount_cents * platform_fee_bps, BPS_DENOMINATOR)
    provider_fee = provider_fee_cents
    return FeeBreakdown(
        gross_amount=gross_amount_cents,
        platform_fee=platform_fee,
        provider_fee=provider_fee,
        net_amount=gross_amount_cents - platform_fee - provider_fee,
    )
