"""Initial schema with PostGIS extension: stations, bikes, reservations.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── stations ──────────────────────────────────────────────────────
    # No bike/dock counters: they are derived from bikes at load time.
    op.create_table(
        "stations",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("location", Geometry("POINT", srid=4326), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("is_operational", sa.Boolean, default=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("capacity > 0", name="ck_stations_capacity_positive"),
    )
    op.create_index(
        "idx_stations_location",
        "stations",
        ["location"],
        postgresql_using="gist",
    )

    # ── bikes ─────────────────────────────────────────────────────────
    op.create_table(
        "bikes",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("bike_number", sa.String(32), unique=True, nullable=False),
        sa.Column(
            "type",
            sa.Enum("STANDARD", "ELECTRIC", name="biketype"),
            default="STANDARD",
            nullable=False,
        ),
        sa.Column("battery_level", sa.Integer, nullable=True),
        sa.Column("model_name", sa.String(120), nullable=True),
        sa.Column(
            "current_station_id",
            sa.String(64),
            sa.ForeignKey("stations.id"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_bikes_station", "bikes", ["current_station_id"])

    # ── reservations (ride history archive) ───────────────────────────
    op.create_table(
        "reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("bike_id", sa.String(64), nullable=False),
        sa.Column(
            "bike_type",
            postgresql.ENUM("STANDARD", "ELECTRIC", name="biketype", create_type=False),
            nullable=False,
        ),
        sa.Column("plan_name", sa.String(20), nullable=False),
        sa.Column("is_premium_user", sa.Boolean, default=False, nullable=False),
        sa.Column(
            "start_station_id",
            sa.String(64),
            sa.ForeignKey("stations.id"),
            nullable=False,
        ),
        sa.Column(
            "end_station_id",
            sa.String(64),
            sa.ForeignKey("stations.id"),
            nullable=True,
        ),
        sa.Column("reservation_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer, nullable=False),
        sa.Column("actual_minutes", sa.Float, nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "RESERVED",
                "ACTIVE",
                "EXPIRED",
                "ENDED",
                "CANCELLED",
                name="reservationstatus",
            ),
            nullable=False,
        ),
        sa.Column("overdue", sa.Boolean, default=False, nullable=False),
        sa.Column("estimate_base_rate", sa.Float, nullable=False),
        sa.Column("estimate_minutes_cost", sa.Float, nullable=False),
        sa.Column("estimate_discount", sa.Float, nullable=False),
        sa.Column("estimate_total_cost", sa.Float, nullable=False),
        sa.Column("base_rate", sa.Float, nullable=True),
        sa.Column("minutes_cost", sa.Float, nullable=True),
        sa.Column("discount", sa.Float, nullable=True),
        sa.Column("total_cost", sa.Float, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_reservations_user", "reservations", ["user_id"])
    op.create_index("idx_reservations_end_time", "reservations", ["end_time"])


def downgrade() -> None:
    op.drop_table("reservations")
    op.drop_table("bikes")
    op.drop_table("stations")
    op.execute("DROP TYPE IF EXISTS reservationstatus")
    op.execute("DROP TYPE IF EXISTS biketype")
