"""001: create trade_records

Revision ID: 001
Revises: 
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE trade_records (
            kind        VARCHAR(16)  NOT NULL,
            id          VARCHAR(64)  NOT NULL,
            asset       VARCHAR(128) NOT NULL,
            owner       VARCHAR(128) NOT NULL,
            status      VARCHAR(16)  NOT NULL,
            payload     JSONB        NOT NULL,
            secret      TEXT,
            created_at  BIGINT       NOT NULL,
            updated_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            PRIMARY KEY (kind, id),
            CONSTRAINT ck_trade_records_kind
                CHECK (kind IN ('listing', 'escrow', 'offer', 'auction'))
        );
    """)
    op.execute("CREATE INDEX idx_trade_records_asset ON trade_records (asset, kind);")
    op.execute("CREATE INDEX idx_trade_records_owner ON trade_records (owner, kind);")
    op.execute("""
        CREATE INDEX idx_trade_records_open ON trade_records (status)
        WHERE status IN ('active', 'pending', 'funded');
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS trade_records;")
