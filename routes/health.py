from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Request

from services.redaction import redact_text
from settings import settings

router = APIRouter(tags=["health"])
logger = logging.getLogger("partnerpay.health")


def _check_db() -> tuple[bool | None, str | None]:
    if not (settings.DATABASE_URL or "").strip():
        # in-memory repositories
        return None, None

    from db import get_conn

    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True, None
    except Exception as exc:
        logger.warning("healthz db check failed error=%s: %s", type(exc).__name__, redact_text(str(exc)))
        return False, "DB_UNAVAILABLE"


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health():
    return {
        "ok": True,
        "env": settings.ENV,
        "git_sha": _resolve_git_sha(),
    }


@router.get("/healthz")
def healthz(request: Request):
    db_ok, db_error = _check_db()
    service = request.app.state.payout_service
    payments = service.health()
    if payments.error:
        logger.warning("healthz payments check failed provider=%s error=%s", service.provider.name, redact_text(payments.error))
    return {
        "ok": db_ok is not False and payments.operational,
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "git_sha": _resolve_git_sha(),
        "db_ok": db_ok,
        "db_error": db_error,
        "payments": {
            "provider": service.provider.name,
            "configured": payments.configured,
            "operational": payments.operational,
            "error": "PROVIDER_UNAVAILABLE" if payments.error else None,
        },
    }
