"""Transport booking database models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class TransportBooking(Base):
    """Transport booking row; one row per booking, rewritten on every version."""

    __tablename__ = "transport_bookings"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    tracking_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    vehicle_id: Mapped[str | None] = mapped_column(String(64))
    driver_id: Mapped[str | None] = mapped_column(String(64), index=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending", index=True
    )  # see app.domain.booking_state.BookingStatus
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Carried payload
    from_location: Mapped[dict] = mapped_column(JSONDocument, nullable=False, default=dict)
    to_location: Mapped[dict] = mapped_column(JSONDocument, nullable=False, default=dict)
    distance: Mapped[float | None] = mapped_column(Float)
    final_amount: Mapped[float | None] = mapped_column(Float)
    cargo_description: Mapped[str | None] = mapped_column(Text)
    current_location: Mapped[dict | None] = mapped_column(JSONDocument)

    # Cancellation request (at most one active or most recent)
    cancellation_requested_by: Mapped[str | None] = mapped_column(String(64))
    cancellation_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    cancellation_status: Mapped[str | None] = mapped_column(String(20))  # pending, approved, denied
    cancellation_reviewed_by: Mapped[str | None] = mapped_column(String(64))
    cancellation_review_notes: Mapped[str | None] = mapped_column(Text)
    cancellation_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_prior_status: Mapped[str | None] = mapped_column(String(30))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    tracking_steps: Mapped[list["BookingTrackingStep"]] = relationship(
        "BookingTrackingStep",
        back_populates="booking",
        order_by="BookingTrackingStep.position",
        lazy="selectin",
    )


class BookingTrackingStep(Base):
    """Append-only fulfillment history entry."""

    __tablename__ = "booking_tracking_steps"
    __table_args__ = (UniqueConstraint("booking_id", "position", name="uq_tracking_step_position"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[str] = mapped_column(
        String(40), ForeignKey("transport_bookings.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    step: Mapped[str] = mapped_column(String(40), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    actor_id: Mapped[str | None] = mapped_column(String(64))

    # Relationships
    booking: Mapped["TransportBooking"] = relationship(
        "TransportBooking", back_populates="tracking_steps"
    )
