"""partners, payment accounts and payouts

Revision ID: 0001_partner_payouts
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_partner_payouts"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.partners (
            id text PRIMARY KEY,
            email text NOT NULL,
            name text NOT NULL DEFAULT '',
            referral_code text NOT NULL DEFAULT '',
            status text NOT NULL DEFAULT 'ACTIVE',
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS ux_partners_email ON app.partners (lower(email));")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.partner_payment_accounts (
            partner_id text PRIMARY KEY REFERENCES app.partners(id),
            account_id text NOT NULL,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.payouts (
            id text PRIMARY KEY,
            partner_id text NOT NULL REFERENCES app.partners(id),
            amount_cents bigint NOT NULL CHECK (amount_cents > 0),
            fee_cents bigint NOT NULL CHECK (fee_cents >= 0),
            net_cents bigint NOT NULL,
            status text NOT NULL
                CHECK (status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')),
            requested_at timestamptz NOT NULL DEFAULT now(),
            processed_at timestamptz,
            method text,
            transaction_id text,
            failure_reason text,
            estimated_arrival date,
            updated_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT payouts_amount_split CHECK (amount_cents = fee_cents + net_cents)
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_payouts_partner_requested "
        "ON app.payouts (partner_id, requested_at DESC);"
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_payouts_status ON app.payouts (status);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.payouts;")
    op.execute("DROP TABLE IF EXISTS app.partner_payment_accounts;")
    op.execute("DROP TABLE IF EXISTS app.partners;")
