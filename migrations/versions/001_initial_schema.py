"""Initial schema: trips and bookings.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

TRIP_STATUSES = ("PREPARING", "URGENT", "FULL", "ON_TRIP", "COMPLETED", "CANCELLED")
BOOKING_STATUSES = (
    "PENDING",
    "CONFIRMED",
    "PICKED_UP",
    "ON_BOARD",
    "CANCELLED",
    "EXPIRED",
)


def upgrade() -> None:
    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=True),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("remaining_capacity", sa.Integer, nullable=False),
        sa.Column(
            "lifecycle_status",
            sa.Enum(*TRIP_STATUSES, name="tripstatus"),
            default="PREPARING",
            nullable=False,
        ),
        sa.Column("departure_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_demand_post", sa.Boolean, default=False, nullable=False),
        sa.Column("price", sa.Float, default=0.0, nullable=False),
        sa.Column("version", sa.Integer, default=0, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("capacity > 0", name="check_trip_capacity_positive"),
        sa.CheckConstraint(
            "remaining_capacity >= 0", name="check_trip_remaining_non_negative"
        ),
    )
    op.create_index("idx_trips_status", "trips", ["lifecycle_status"])
    op.create_index("idx_trips_departure", "trips", ["departure_at"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "trip_id", sa.String(36), sa.ForeignKey("trips.id"), nullable=False
        ),
        sa.Column("passenger_id", sa.String(64), nullable=False),
        sa.Column("seats_booked", sa.Integer, nullable=False),
        sa.Column(
            "status",
            sa.Enum(*BOOKING_STATUSES, name="bookingstatus"),
            default="PENDING",
            nullable=False,
        ),
        sa.Column("total_price", sa.Float, default=0.0, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("seats_booked > 0", name="check_booking_seats_positive"),
    )
    op.create_index("idx_bookings_trip", "bookings", ["trip_id"])
    op.create_index("idx_bookings_passenger", "bookings", ["passenger_id"])
    op.create_index("idx_bookings_status", "bookings", ["status"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("trips")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS tripstatus")
