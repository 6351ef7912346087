"""001: create mint_intents table and updated_at trigger

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_touch_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE mint_intents (
            id                    VARCHAR(64)     PRIMARY KEY,
            external_request_id   VARCHAR(128)    NOT NULL,
            external_request_url  TEXT            NOT NULL,
            account_id            VARCHAR(128)    NOT NULL,
            handle                VARCHAR(128)    NOT NULL,
            pool                  VARCHAR(64)     NOT NULL,
            collection_id         VARCHAR(128),
            quantity              INT             NOT NULL DEFAULT 1,
            amount_requested      NUMERIC(18, 8)  NOT NULL,
            currency              VARCHAR(10)     NOT NULL,
            status                VARCHAR(20)     NOT NULL DEFAULT 'pending_payment',
            activation_time       TIMESTAMPTZ,
            transaction_id        VARCHAR(128),
            paid_at               TIMESTAMPTZ,
            fulfillment_attempts  INT             NOT NULL DEFAULT 0,
            last_error            VARCHAR(500),
            created_at            TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_mint_intents_external_request UNIQUE (external_request_id),
            CONSTRAINT ck_mint_intents_quantity  CHECK (quantity > 0),
            CONSTRAINT ck_mint_intents_amount    CHECK (amount_requested > 0),
            CONSTRAINT ck_mint_intents_attempts  CHECK (fulfillment_attempts >= 0),
            CONSTRAINT ck_mint_intents_status    CHECK (
                status IN ('pending_payment', 'paid', 'activated', 'completed', 'failed')
            ),
            CONSTRAINT ck_mint_intents_paid_tx   CHECK (
                status = 'pending_payment' OR transaction_id IS NOT NULL
            )
        );
    """)
    op.execute("CREATE INDEX idx_mint_intents_account ON mint_intents (account_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_mint_intents_due
        ON mint_intents (updated_at)
        WHERE status = 'paid';
    """)
    op.execute("""
        CREATE TRIGGER trg_mint_intents_updated_at
            BEFORE UPDATE ON mint_intents
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE mint_intents IS 'One row per purchase attempt; status only moves forward';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS mint_intents CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_touch_updated_at();")
