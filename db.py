# db.py
from contextlib import contextmanager

import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool

from settings import settings

APPLICATION_NAME = "partnerpay_api"

_pool: SimpleConnectionPool | None = None


def session_statements(statement_timeout_ms: int | None = None) -> list[str]:
    """SET statements run on every checkout."""
    timeout_ms = int(statement_timeout_ms or settings.DB_STATEMENT_TIMEOUT_MS)
    return [
        f"SET statement_timeout = '{timeout_ms}ms';",
        f"SET idle_in_transaction_session_timeout = '{timeout_ms}ms';",
        f"SET application_name = '{APPLICATION_NAME}';",
    ]


def init_pool():
    """
    Open the pool on first use. Only reached when DATABASE_URL is set;
    otherwise the app runs on in-memory repositories.
    """
    global _pool
    if _pool is not None:
        return
    if not (settings.DATABASE_URL or "").strip():
        raise RuntimeError("DATABASE_URL is not set.")

    psycopg2.extras.register_uuid()
    _pool = SimpleConnectionPool(
        minconn=settings.DB_POOL_MIN,
        maxconn=max(settings.DB_POOL_MIN, settings.DB_POOL_MAX),
        dsn=settings.DATABASE_URL,
        connect_timeout=settings.DB_CONNECT_TIMEOUT_S,
    )


def close_pool():
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn():
    """
    Transactional connection: commit on success, rollback on any error.

    A payout create or compare-and-set update runs inside one of these, so a
    failure after the write leaves no partial row behind.
    """
    if _pool is None:
        init_pool()

    conn = _pool.getconn()

    try:
        with conn.cursor() as cur:
            for stmt in session_statements():
                cur.execute(stmt)

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        _pool.putconn(conn)
