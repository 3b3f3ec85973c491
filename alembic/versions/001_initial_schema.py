"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates the transport booking tables:
- Transport bookings (with the inline cancellation request)
- Booking tracking steps (append-only history)
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== TRANSPORT BOOKINGS ====================
    op.create_table(
        "transport_bookings",
        sa.Column("id", sa.String(40), primary_key=True),
        sa.Column("tracking_id", sa.String(40), unique=True, nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("vehicle_id", sa.String(64)),
        sa.Column("driver_id", sa.String(64)),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("from_location", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("to_location", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("distance", sa.Float),
        sa.Column("final_amount", sa.Float),
        sa.Column("cargo_description", sa.Text),
        sa.Column("current_location", postgresql.JSONB),
        # Cancellation request
        sa.Column("cancellation_requested_by", sa.String(64)),
        sa.Column("cancellation_requested_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("cancellation_status", sa.String(20)),
        sa.Column("cancellation_reviewed_by", sa.String(64)),
        sa.Column("cancellation_review_notes", sa.Text),
        sa.Column("cancellation_reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_prior_status", sa.String(30)),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("version >= 1", name="ck_transport_bookings_version_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'order_accepted', 'order_processing', "
            "'pickup_started', 'order_picked_up', 'in_transit', 'delivered', 'completed', "
            "'cancellation_requested', 'cancelled')",
            name="ck_transport_bookings_status",
        ),
    )
    op.create_index("ix_transport_bookings_tracking_id", "transport_bookings", ["tracking_id"])
    op.create_index("ix_transport_bookings_customer_id", "transport_bookings", ["customer_id"])
    op.create_index("ix_transport_bookings_driver_id", "transport_bookings", ["driver_id"])
    op.create_index("ix_transport_bookings_status", "transport_bookings", ["status"])

    # ==================== TRACKING STEPS ====================
    op.create_table(
        "booking_tracking_steps",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id",
            sa.String(40),
            sa.ForeignKey("transport_bookings.id"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("step", sa.String(40), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.Text),
        sa.Column("notes", sa.Text),
        sa.Column("actor_id", sa.String(64)),
        sa.UniqueConstraint("booking_id", "position", name="uq_tracking_step_position"),
    )
    op.create_index("ix_booking_tracking_steps_booking_id", "booking_tracking_steps", ["booking_id"])


def downgrade() -> None:
    """Drop all tables in reverse order."""
    op.drop_table("booking_tracking_steps")
    op.drop_table("transport_bookings")
