"""004: create payments table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payments (
            id                  VARCHAR(64)     PRIMARY KEY,
            session_id          VARCHAR(64)     REFERENCES parking_sessions (id),
            license_plate       VARCHAR(8)      NOT NULL,
            amount_cents        BIGINT          NOT NULL,
            fee_cents           BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            charge_ref          VARCHAR(255),
            spot_id             VARCHAR(64),
            duration_minutes    INT,
            payment_method      VARCHAR(255),
            receipt_url         TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payments_charge_ref   UNIQUE (charge_ref),
            CONSTRAINT ck_payments_amount       CHECK (amount_cents >= 0),
            CONSTRAINT ck_payments_fee          CHECK (fee_cents >= 0),
            CONSTRAINT ck_payments_status       CHECK (
                status IN ('pending', 'succeeded', 'failed', 'refunded')
            )
        );
    """)
    op.execute("CREATE INDEX idx_payments_session ON payments (session_id);")
    op.execute("CREATE INDEX idx_payments_plate ON payments (license_plate, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_payments_updated_at
            BEFORE UPDATE ON payments
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payments CASCADE;")
