# app/partners/repository.py
from __future__ import annotations

from threading import Lock
from typing import Callable, Iterable, Optional, Protocol

from psycopg2.extras import RealDictCursor

from app.partners.model import Partner

_PARTNER_COLUMNS = "id, email, name, referral_code, status, created_at"


class PartnerRepository(Protocol):
    def find_by_id(self, partner_id: str) -> Optional[Partner]: ...
    def find_by_email(self, email: str) -> Optional[Partner]: ...


class PaymentAccountRepository(Protocol):
    """Maps a partner to its provider (Stripe Connect) account id."""

    def get_account_id(self, partner_id: str) -> Optional[str]: ...
    def save_account_id(self, partner_id: str, account_id: str) -> None: ...


def _row_to_partner(row: dict) -> Partner:
    return Partner(
        id=str(row["id"]),
        email=str(row["email"]),
        name=str(row.get("name") or ""),
        referral_code=str(row.get("referral_code") or ""),
        status=str(row.get("status") or "ACTIVE"),
        created_at=row.get("created_at"),
    )


# ==========================================================
# PostgreSQL
# ==========================================================

class PostgresPartnerRepository:
    def __init__(self, get_conn: Callable):
        self._get_conn = get_conn

    def _fetch_one(self, where: str, value: str) -> Optional[Partner]:
        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {_PARTNER_COLUMNS} FROM app.partners WHERE {where} LIMIT 1",
                    (value,),
                )
                row = cur.fetchone()
        return _row_to_partner(dict(row)) if row else None

    def find_by_id(self, partner_id: str) -> Optional[Partner]:
        return self._fetch_one("id = %s", partner_id)

    def find_by_email(self, email: str) -> Optional[Partner]:
        return self._fetch_one("lower(email) = lower(%s)", email)


class PostgresPaymentAccountRepository:
    def __init__(self, get_conn: Callable):
        self._get_conn = get_conn

    def get_account_id(self, partner_id: str) -> Optional[str]:
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT account_id FROM app.partner_payment_accounts WHERE partner_id = %s",
                    (partner_id,),
                )
                row = cur.fetchone()
        return str(row[0]) if row and row[0] else None

    def save_account_id(self, partner_id: str, account_id: str) -> None:
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.partner_payment_accounts (partner_id, account_id)
                    VALUES (%s, %s)
                    ON CONFLICT (partner_id) DO UPDATE
                      SET account_id = EXCLUDED.account_id,
                          updated_at = now()
                    """,
                    (partner_id, account_id),
                )


# ==========================================================
# In-memory (dev / tests, no DATABASE_URL)
# ==========================================================

class InMemoryPartnerRepository:
    def __init__(self, partners: Iterable[Partner] = ()):
        self._lock = Lock()
        self._partners: dict[str, Partner] = {p.id: p for p in partners}

    def add(self, partner: Partner) -> Partner:
        with self._lock:
            self._partners[partner.id] = partner
        return partner

    def find_by_id(self, partner_id: str) -> Optional[Partner]:
        return self._partners.get(partner_id)

    def find_by_email(self, email: str) -> Optional[Partner]:
        needle = (email or "").strip().lower()
        for p in self._partners.values():
            if p.email.lower() == needle:
                return p
        return None


class InMemoryPaymentAccountRepository:
    def __init__(self):
        self._lock = Lock()
        self._accounts: dict[str, str] = {}

    def get_account_id(self, partner_id: str) -> Optional[str]:
        return self._accounts.get(partner_id)

    def save_account_id(self, partner_id: str, account_id: str) -> None:
        with self._lock:
            self._accounts[partner_id] = account_id


DEMO_PARTNERS = (
    Partner(id="partner-demo-1", email="alex@example.com", name="Alex Rivera", referral_code="ALEX2024"),
    Partner(id="partner-demo-2", email="sam@example.com", name="Sam Chen", referral_code="SAMC2024"),
)
