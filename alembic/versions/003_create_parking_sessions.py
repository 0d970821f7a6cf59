"""003: create parking_sessions table

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
        CREATE TABLE parking_sessions (
            id                  VARCHAR(64)     PRIMARY KEY,
            license_plate       VARCHAR(8)      NOT NULL,
            spot_id             VARCHAR(64)     NOT NULL REFERENCES parking_spots (id),
            duration_minutes    INT             NOT NULL,
            start_time          TIMESTAMPTZ     NOT NULL,
            end_time            TIMESTAMPTZ     NOT NULL,
            total_cost_cents    BIGINT          NOT NULL,
            fee_paid_cents      BIGINT          NOT NULL,
            fee_saved_cents     BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'active',
            payment_id          VARCHAR(64),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_sessions_plate        CHECK (license_plate ~ '^[A-Z0-9]{2,8}$'),
            CONSTRAINT ck_sessions_duration     CHECK (duration_minutes BETWEEN 1 AND 1440),
            CONSTRAINT ck_sessions_end_time     CHECK (
                end_time = start_time + make_interval(mins => duration_minutes)
            ),
            CONSTRAINT ck_sessions_cost         CHECK (total_cost_cents >= 0),
            CONSTRAINT ck_sessions_fees         CHECK (fee_paid_cents >= 0 AND fee_saved_cents >= 0),
            CONSTRAINT ck_sessions_status       CHECK (status IN ('active', 'expired', 'cancelled'))
        );
    """)
    # At most one active session per plate; inserts that break it raise 23505.
    op.execute("""
        CREATE UNIQUE INDEX uq_parking_sessions_active_plate
        ON parking_sessions (license_plate)
        WHERE status = 'active';
    """)
    op.execute("""
        CREATE INDEX idx_sessions_active_end_time
        ON parking_sessions (end_time)
        WHERE status = 'active';
    """)
    op.execute(
        "CREATE INDEX idx_sessions_plate_created ON parking_sessions (license_plate, created_at DESC);"
    )
    op.execute("""
        CREATE TRIGGER trg_parking_sessions_updated_at
            BEFORE UPDATE ON parking_sessions
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS parking_sessions CASCADE;")
