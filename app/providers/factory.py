# app/providers/factory.py
from __future__ import annotations

import logging

from app.providers.base import PaymentProvider
from settings import Settings

logger = logging.getLogger("partnerpay.providers")


def build_provider(s: Settings) -> PaymentProvider:
    """Pick the provider once, at startup. Live iff a Stripe secret key is set."""
    currency = (s.PAYOUT_CURRENCY or "usd").strip().lower()
    if (s.STRIPE_SECRET_KEY or "").strip():
        from app.providers.stripe_connect import StripeConnectProvider

        logger.info("payment provider: Stripe Connect (live)")
        return StripeConnectProvider(
            s.STRIPE_SECRET_KEY,
            api_base=s.STRIPE_API_BASE,
            currency=currency,
            timeout_s=float(s.STRIPE_HTTP_TIMEOUT_S),
        )

    from app.providers.simulated import SimulatedProvider

    logger.info("payment provider: simulated (STRIPE_SECRET_KEY not set)")
    return SimulatedProvider(currency=currency)
