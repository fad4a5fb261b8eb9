from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.payouts.model import PayoutConfig, PayoutStatus
from main import create_app
from settings import Settings, settings, validate_env_settings


def test_validate_env_allows_dev_missing(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "dev", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "dev-secret-change-me", raising=False)
    validate_env_settings()


def test_validate_env_prod_fails_on_missing(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "dev-secret-change-me", raising=False)

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()

    message = str(exc.value)
    assert "DATABASE_URL" in message
    assert "JWT_SECRET" in message


def test_validate_env_staging_needs_webhook_secret_with_live_key(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "staging", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "a" * 32, raising=False)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123456", raising=False)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "", raising=False)

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()
    assert "STRIPE_WEBHOOK_SECRET" in str(exc.value)


def test_validate_env_prod_passes_when_complete(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "a" * 32, raising=False)
    monkeypatch.setattr(settings, "AUTH_REQUIRED", True, raising=False)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "", raising=False)
    validate_env_settings()


def test_payout_config_from_env(monkeypatch):
    monkeypatch.setenv("PLATFORM_FEE_BPS", "250")
    monkeypatch.setenv("MIN_PAYOUT_CENTS", "5000")
    monkeypatch.setenv("PAYOUT_CURRENCY", "EUR")
    monkeypatch.setenv("APP_URL", "https://portal.example.com/")

    config = PayoutConfig.from_settings(Settings())

    assert config.platform_fee_bps == 250
    assert config.provider_fee_cents == 25
    assert config.min_payout_cents == 5000
    assert config.currency == "eur"
    assert config.app_url == "https://portal.example.com"


def test_validate_env_prod_requires_auth(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "a" * 40, raising=False)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "", raising=False)
    monkeypatch.setattr(settings, "AUTH_REQUIRED", False, raising=False)

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()
    assert "AUTH_REQUIRED" in str(exc.value)


def test_prod_app_refuses_to_start_without_auth(monkeypatch, service):
    monkeypatch.setattr(settings, "ENV", "staging", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "a" * 40, raising=False)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "", raising=False)
    monkeypatch.setattr(settings, "AUTH_REQUIRED", False, raising=False)

    with pytest.raises(RuntimeError):
        create_app(service)


def test_prod_admin_action_needs_token(monkeypatch, service, seed_payout, payouts):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET", "a" * 40, raising=False)
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "", raising=False)
    monkeypatch.setattr(settings, "AUTH_REQUIRED", True, raising=False)
    payout = seed_payout(PayoutStatus.PROCESSING)

    client = TestClient(create_app(service), raise_server_exceptions=False)
    r = client.post(f"/v1/admin/payouts/{payout.id}/action", json={"action": "process"})

    assert r.status_code == 401
    assert payouts.find_by_id(payout.id).status == PayoutStatus.PROCESSING
