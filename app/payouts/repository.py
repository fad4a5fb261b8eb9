# app/payouts/repository.py
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Optional, Protocol

from psycopg2.extras import RealDictCursor

from app.payouts.model import NewPayout, Payout, PayoutStatus

DEFAULT_PAGE_SIZE = 20

_PAYOUT_COLUMNS = """
  id,
  partner_id,
  amount_cents,
  fee_cents,
  net_cents,
  status,
  requested_at,
  processed_at,
  method,
  transaction_id,
  failure_reason,
  estimated_arrival
"""


class PayoutRepository(Protocol):
    def find_by_id(self, payout_id: str) -> Optional[Payout]: ...

    def create(self, data: NewPayout) -> Payout: ...

    def update(self, payout: Payout, *, expected_status: PayoutStatus) -> bool:
        """
        Persist `payout` only if the stored row is still in `expected_status`.
        Returns False when another writer got there first.
        """
        ...

    def find_by_partner_id(
        self,
        partner_id: str,
        *,
        status: Optional[PayoutStatus] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Payout]: ...

    def count_by_partner_id(self, partner_id: str, *, status: Optional[PayoutStatus] = None) -> int: ...

    def list_all(self, *, status: Optional[PayoutStatus] = None, limit: int = 200) -> list[Payout]: ...


def new_payout_id() -> str:
    return f"po_{uuid.uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_payout(row: dict) -> Payout:
    return Payout(
        id=str(row["id"]),
        partner_id=str(row["partner_id"]),
        amount_cents=int(row["amount_cents"]),
        fee_cents=int(row["fee_cents"]),
        net_cents=int(row["net_cents"]),
        status=PayoutStatus(row["status"]),
        requested_at=row["requested_at"],
        processed_at=row.get("processed_at"),
        method=row.get("method"),
        transaction_id=row.get("transaction_id"),
        failure_reason=row.get("failure_reason"),
        estimated_arrival=row.get("estimated_arrival"),
    )


# ==========================================================
# PostgreSQL
# ==========================================================

class PostgresPayoutRepository:
    def __init__(self, get_conn: Callable):
        self._get_conn = get_conn

    def find_by_id(self, payout_id: str) -> Optional[Payout]:
        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {_PAYOUT_COLUMNS} FROM app.payouts WHERE id = %s",
                    (payout_id,),
                )
                row = cur.fetchone()
        return _row_to_payout(dict(row)) if row else None

    def create(self, data: NewPayout) -> Payout:
        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    INSERT INTO app.payouts (
                      id, partner_id, amount_cents, fee_cents, net_cents,
                      status, method, transaction_id, estimated_arrival
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_PAYOUT_COLUMNS}
                    """,
                    (
                        data.id or new_payout_id(),
                        data.partner_id,
                        data.amount_cents,
                        data.fee_cents,
                        data.net_cents,
                        PayoutStatus(data.status).value,
                        data.method,
                        data.transaction_id,
                        data.estimated_arrival,
                    ),
                )
                row = cur.fetchone()
        return _row_to_payout(dict(row))

    def update(self, payout: Payout, *, expected_status: PayoutStatus) -> bool:
        # processed_at is write-once: COALESCE keeps the first value
        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE app.payouts
                    SET
                      status = %s,
                      processed_at = COALESCE(processed_at, %s),
                      method = COALESCE(%s, method),
                      transaction_id = COALESCE(%s, transaction_id),
                      failure_reason = %s,
                      estimated_arrival = COALESCE(%s, estimated_arrival),
                      updated_at = now()
                    WHERE id = %s
                      AND status = %s
                    """,
                    (
                        PayoutStatus(payout.status).value,
                        payout.processed_at,
                        payout.method,
                        payout.transaction_id,
                        payout.failure_reason,
                        payout.estimated_arrival,
                        payout.id,
                        PayoutStatus(expected_status).value,
                    ),
                )
                return cur.rowcount == 1

    def find_by_partner_id(
        self,
        partner_id: str,
        *,
        status: Optional[PayoutStatus] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Payout]:
        status_filter = ""
        params: list = [partner_id]
        if status is not None:
            status_filter = "AND status = %s"
            params.append(PayoutStatus(status).value)
        params.extend([limit, offset])

        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_PAYOUT_COLUMNS}
                    FROM app.payouts
                    WHERE partner_id = %s
                    {status_filter}
                    ORDER BY requested_at DESC, id DESC
                    LIMIT %s OFFSET %s
                    """,
                    tuple(params),
                )
                rows = cur.fetchall() or []
        return [_row_to_payout(dict(r)) for r in rows]

    def count_by_partner_id(self, partner_id: str, *, status: Optional[PayoutStatus] = None) -> int:
        status_filter = ""
        params: list = [partner_id]
        if status is not None:
            status_filter = "AND status = %s"
            params.append(PayoutStatus(status).value)

        with self._get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT count(*) FROM app.payouts WHERE partner_id = %s {status_filter}",
                    tuple(params),
                )
                row = cur.fetchone()
        return int(row[0] if row else 0)

    def list_all(self, *, status: Optional[PayoutStatus] = None, limit: int = 200) -> list[Payout]:
        status_filter = ""
        params: list = []
        if status is not None:
            status_filter = "WHERE status = %s"
            params.append(PayoutStatus(status).value)
        params.append(limit)

        with self._get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_PAYOUT_COLUMNS}
                    FROM app.payouts
                    {status_filter}
                    ORDER BY requested_at DESC, id DESC
                    LIMIT %s
                    """,
                    tuple(params),
                )
                rows = cur.fetchall() or []
        return [_row_to_payout(dict(r)) for r in rows]


# ==========================================================
# In-memory (dev / tests, no DATABASE_URL)
# ==========================================================

class InMemoryPayoutRepository:
    def __init__(self):
        self._lock = Lock()
        self._payouts: dict[str, Payout] = {}

    def find_by_id(self, payout_id: str) -> Optional[Payout]:
        return self._payouts.get(payout_id)

    def create(self, data: NewPayout) -> Payout:
        payout = Payout(
            id=data.id or new_payout_id(),
            partner_id=data.partner_id,
            amount_cents=data.amount_cents,
            fee_cents=data.fee_cents,
            net_cents=data.net_cents,
            status=PayoutStatus(data.status),
            requested_at=_utcnow(),
            method=data.method,
            transaction_id=data.transaction_id,
            estimated_arrival=data.estimated_arrival,
        )
        with self._lock:
            self._payouts[payout.id] = payout
        return payout

    def update(self, payout: Payout, *, expected_status: PayoutStatus) -> bool:
        with self._lock:
            current = self._payouts.get(payout.id)
            if current is None or current.status != PayoutStatus(expected_status):
                return False
            processed_at = current.processed_at or payout.processed_at
            self._payouts[payout.id] = replace(
                payout,
                requested_at=current.requested_at,
                processed_at=processed_at,
            )
            return True

    def _for_partner(self, partner_id: str, status: Optional[PayoutStatus]) -> list[Payout]:
        items = [p for p in self._payouts.values() if p.partner_id == partner_id]
        if status is not None:
            items = [p for p in items if p.status == PayoutStatus(status)]
        return items

    def find_by_partner_id(
        self,
        partner_id: str,
        *,
        status: Optional[PayoutStatus] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Payout]:
        items = sorted(self._for_partner(partner_id, status), key=lambda p: p.requested_at, reverse=True)
        return items[offset:offset + limit]

    def count_by_partner_id(self, partner_id: str, *, status: Optional[PayoutStatus] = None) -> int:
        return len(self._for_partner(partner_id, status))

    def list_all(self, *, status: Optional[PayoutStatus] = None, limit: int = 200) -> list[Payout]:
        items = list(self._payouts.values())
        if status is not None:
            items = [p for p in items if p.status == PayoutStatus(status)]
        items.sort(key=lambda p: p.requested_at, reverse=True)
        return items[:limit]

    def seed(self, payout: Payout) -> Payout:
        """Insert a fully-formed payout, e.g. one created by a batch job in PENDING."""
        with self._lock:
            self._payouts[payout.id] = payout
        return payout
