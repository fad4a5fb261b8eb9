# main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.partners.repository import (
    DEMO_PARTNERS,
    InMemoryPartnerRepository,
    InMemoryPaymentAccountRepository,
    PostgresPartnerRepository,
    PostgresPaymentAccountRepository,
)
from app.payouts.model import PayoutConfig
from app.payouts.repository import InMemoryPayoutRepository, PostgresPayoutRepository
from app.payouts.service import PayoutService
from app.providers.factory import build_provider
from middleware import RequestContextMiddleware
from routes.admin_payouts import router as admin_payouts_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.partners import router as partners_router
from routes.payments import router as payments_router
from routes.webhooks import router as webhooks_router
from settings import settings, validate_env_settings

logger = logging.getLogger("partnerpay")


def build_payout_service() -> PayoutService:
    """Wire repositories and the payment provider from settings."""
    config = PayoutConfig.from_settings(settings)
    provider = build_provider(settings)

    if (settings.DATABASE_URL or "").strip():
        from db import get_conn

        return PayoutService(
            payouts=PostgresPayoutRepository(get_conn),
            partners=PostgresPartnerRepository(get_conn),
            accounts=PostgresPaymentAccountRepository(get_conn),
            provider=provider,
            config=config,
        )

    logger.warning("DATABASE_URL not set; using in-memory repositories with demo partners")
    return PayoutService(
        payouts=InMemoryPayoutRepository(),
        partners=InMemoryPartnerRepository(DEMO_PARTNERS),
        accounts=InMemoryPaymentAccountRepository(),
        provider=provider,
        config=config,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    if (settings.DATABASE_URL or "").strip():
        from db import close_pool

        close_pool()
    close = getattr(app.state.payout_service.provider, "close", None)
    if callable(close):
        close()


def create_app(service: Optional[PayoutService] = None) -> FastAPI:
    validate_env_settings()

    app = FastAPI(title="Partner Payouts API", version="1.0.0", lifespan=_lifespan)
    app.state.payout_service = service or build_payout_service()

    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(payments_router)
    app.include_router(partners_router)
    app.include_router(admin_payouts_router)
    app.include_router(webhooks_router)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled error request_id=%s path=%s",
            getattr(request.state, "request_id", None),
            request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
