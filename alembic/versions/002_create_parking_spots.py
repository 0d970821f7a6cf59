"""002: create parking_spots table

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
        CREATE TABLE parking_spots (
            id                  VARCHAR(64)     PRIMARY KEY,
            name                VARCHAR(200)    NOT NULL,
            address             VARCHAR(500)    NOT NULL,
            lat                 DOUBLE PRECISION NOT NULL,
            lng                 DOUBLE PRECISION NOT NULL,
            rate_cents          INT             NOT NULL,
            total_spots         INT             NOT NULL,
            available_spots     INT             NOT NULL,
            zone                VARCHAR(100)    NOT NULL,
            restrictions        TEXT[]          NOT NULL DEFAULT '{}',
            is_active           BOOLEAN         NOT NULL DEFAULT TRUE,
            last_updated        TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_spots_lat             CHECK (lat BETWEEN -90 AND 90),
            CONSTRAINT ck_spots_lng             CHECK (lng BETWEEN -180 AND 180),
            CONSTRAINT ck_spots_rate            CHECK (rate_cents >= 0),
            CONSTRAINT ck_spots_total           CHECK (total_spots >= 1),
            CONSTRAINT ck_spots_available       CHECK (
                available_spots >= 0 AND available_spots <= total_spots
            )
        );
    """)
    op.execute("CREATE INDEX idx_spots_zone ON parking_spots (zone) WHERE is_active;")
    op.execute("CREATE INDEX idx_spots_lat_lng ON parking_spots (lat, lng) WHERE is_active;")
    op.execute("""
        CREATE TRIGGER trg_parking_spots_updated_at
            BEFORE UPDATE ON parking_spots
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute(
        "COMMENT ON TABLE parking_spots IS "
        "'Parking locations; available_spots is written only by the availability ledger';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS parking_spots CASCADE;")
