"""003: create minted_items table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE minted_items (
            id                    VARCHAR(128)    PRIMARY KEY,
            origin                VARCHAR(256)    NOT NULL,
            template_ref          VARCHAR(128)    NOT NULL,
            collection_id         VARCHAR(128)    NOT NULL,
            recipient_account_id  VARCHAR(128)    NOT NULL,
            recipient_handle      VARCHAR(128)    NOT NULL,
            item_name             VARCHAR(256)    NOT NULL,
            rarity                VARCHAR(64),
            image_url             TEXT,
            multimedia_url        TEXT,
            payment_id            VARCHAR(256)    NOT NULL REFERENCES payment_records (id),
            unit_index            INT             NOT NULL DEFAULT 0,
            metadata              JSONB           NOT NULL DEFAULT '{}'::jsonb,
            minted_at             TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_minted_items_origin       UNIQUE (origin),
            CONSTRAINT uq_minted_items_payment_unit UNIQUE (payment_id, unit_index),
            CONSTRAINT ck_minted_items_unit_index   CHECK (unit_index >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_minted_items_template ON minted_items (template_ref);")
    op.execute("CREATE INDEX idx_minted_items_recipient ON minted_items (recipient_account_id, minted_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS minted_items CASCADE;")
