# settings.py
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: Literal["dev", "test", "staging", "prod"] = "dev"

    # -----------------------
    # DB (empty => in-memory repositories)
    # -----------------------
    DATABASE_URL: str = ""
    DB_POOL_MIN: int = Field(default=1, ge=1)
    DB_POOL_MAX: int = Field(default=10, ge=1)
    DB_CONNECT_TIMEOUT_S: int = Field(default=5, ge=1)
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000, ge=100)

    # -----------------------
    # JWT
    # -----------------------
    JWT_SECRET: str = Field(default="dev-secret-change-me", min_length=16)
    JWT_ALG: str = Field(default="HS256")
    JWT_ACCESS_MINUTES: int = Field(default=60)
    # False skips auth checks (dev); staging and prod require True
    AUTH_REQUIRED: bool = False

    APP_URL: str = "https://innercircle.co"

    # -----------------------
    # Payout rules (integer minor units)
    # -----------------------
    PLATFORM_FEE_BPS: int = Field(default=100, ge=0, le=10_000)  # 100 bps = 1%
    PROVIDER_FEE_CENTS: int = Field(default=25, ge=0)
    MIN_PAYOUT_CENTS: int = Field(default=1000, ge=0)
    PAYOUT_CURRENCY: str = "usd"

    # -----------------------
    # Stripe Connect (empty key => simulated provider)
    # -----------------------
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com"
    STRIPE_HTTP_TIMEOUT_S: float = 20.0
    STRIPE_WEBHOOK_TOLERANCE_S: int = 300


settings = Settings()


_DEV_JWT_SECRET = "dev-secret-change-me"


def validate_env_settings() -> None:
    env = (settings.ENV or "dev").strip().lower()
    if env not in ("staging", "prod"):
        return

    missing: list[str] = []
    if not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if (settings.JWT_SECRET or "") == _DEV_JWT_SECRET or len(settings.JWT_SECRET or "") < 32:
        missing.append("JWT_SECRET")
    if (settings.STRIPE_SECRET_KEY or "").strip() and not (settings.STRIPE_WEBHOOK_SECRET or "").strip():
        missing.append("STRIPE_WEBHOOK_SECRET")
    if not settings.AUTH_REQUIRED:
        missing.append("AUTH_REQUIRED")

    if missing:
        raise RuntimeError(
            f"Startup validation failed for ENV={env}. "
            "Missing or insecure settings: " + ", ".join(sorted(missing))
        )
