"""002: create payment_records table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payment_records (
            id                   VARCHAR(256)    PRIMARY KEY,
            external_request_id  VARCHAR(128)    NOT NULL,
            transaction_id       VARCHAR(128)    NOT NULL,
            amount               NUMERIC(18, 8)  NOT NULL,
            currency             VARCHAR(10)     NOT NULL,
            payer                VARCHAR(128),
            paid_at              TIMESTAMPTZ     NOT NULL,
            status               VARCHAR(20)     NOT NULL,
            payload              JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at           TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_payment_records_amount CHECK (amount >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_payment_records_request ON payment_records (external_request_id);")
    # Append-only: no updated_at, no trigger.
    op.execute("COMMENT ON TABLE payment_records IS 'Append-only ledger; id = external_request_id-transaction_id';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payment_records CASCADE;")
