"""Booking persistence with optimistic concurrency.

Both implementations honour the same contract: ``compare_and_save`` writes
the new snapshot only if the stored version still equals the version the
writer read, and either everything is written (booking row plus the new
tracking steps) or nothing is.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import ConcurrentModification, NotFoundError, RepositoryUnavailable
from app.core.immutability import ImmutabilityViolationError
from app.domain.booking import Booking, CancellationRequest, TrackingStep
from app.domain.booking_state import BookingStatus
from app.models.transport import BookingTrackingStep, TransportBooking

logger = logging.getLogger(__name__)


class BookingRepository(ABC):
    """Storage contract consumed by the booking lifecycle."""

    @abstractmethod
    async def get(self, booking_id: str) -> Booking:
        """Load the current snapshot or raise NotFoundError."""

    @abstractmethod
    async def get_by_tracking_id(self, tracking_id: str) -> Booking:
        """Load a booking by its public tracking reference."""

    @abstractmethod
    async def add(self, booking: Booking) -> Booking:
        """Store a newly created booking."""

    @abstractmethod
    async def compare_and_save(self, booking: Booking, expected_version: int) -> Booking:
        """Persist ``booking`` if the stored version equals ``expected_version``.

        Raises:
            ConcurrentModification: If another writer committed first
            NotFoundError: If the booking does not exist
        """

    @abstractmethod
    async def list_bookings(
        self,
        customer_id: str | None = None,
        driver_id: str | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        """List bookings, newest first."""


class InMemoryBookingRepository(BookingRepository):
    """Process-local store for tests and single-node development."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._lock = asyncio.Lock()

    async def get(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def get_by_tracking_id(self, tracking_id: str) -> Booking:
        for booking in self._bookings.values():
            if booking.tracking_id == tracking_id:
                return booking
        raise NotFoundError("Booking", tracking_id)

    async def add(self, booking: Booking) -> Booking:
        async with self._lock:
            if booking.id in self._bookings:
                raise ConcurrentModification(expected_version=0, actual_version=self._bookings[booking.id].version)
            self._bookings[booking.id] = booking
        return booking

    async def compare_and_save(self, booking: Booking, expected_version: int) -> Booking:
        async with self._lock:
            current = self._bookings.get(booking.id)
            if current is None:
                raise NotFoundError("Booking", booking.id)
            if current.version != expected_version:
                raise ConcurrentModification(expected_version, current.version)
            stored_steps = current.tracking_steps
            if booking.tracking_steps[: len(stored_steps)] != stored_steps:
                raise ImmutabilityViolationError("TrackingStep", "REWRITE", booking.id)
            # Single assignment: readers see either the old or the new snapshot.
            self._bookings[booking.id] = booking
        return booking

    async def list_bookings(
        self,
        customer_id: str | None = None,
        driver_id: str | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        bookings = [
            booking
            for booking in self._bookings.values()
            if (customer_id is None or booking.customer_id == customer_id)
            and (driver_id is None or booking.driver_id == driver_id)
            and (status is None or booking.status == status)
        ]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)


class SqlAlchemyBookingRepository(BookingRepository):
    """PostgreSQL-backed store using a conditional UPDATE on ``version``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    @asynccontextmanager
    async def _bounded(self, operation: str) -> AsyncIterator[None]:
        """Bound a storage call by the configured timeout."""
        try:
            async with asyncio.timeout(self._timeout):
                yield
        except TimeoutError as e:
            logger.warning(f"Booking repository {operation} timed out after {self._timeout}s")
            raise RepositoryUnavailable(f"{operation} timed out") from e

    async def get(self, booking_id: str) -> Booking:
        async with self._bounded("get"), self._session_factory() as session:
            row = await session.get(TransportBooking, booking_id)
            if row is None:
                raise NotFoundError("Booking", booking_id)
            return _to_snapshot(row)

    async def get_by_tracking_id(self, tracking_id: str) -> Booking:
        async with self._bounded("get_by_tracking_id"), self._session_factory() as session:
            row = await session.scalar(
                select(TransportBooking).where(TransportBooking.tracking_id == tracking_id)
            )
            if row is None:
                raise NotFoundError("Booking", tracking_id)
            return _to_snapshot(row)

    async def add(self, booking: Booking) -> Booking:
        async with self._bounded("add"), self._session_factory() as session:
            async with session.begin():
                session.add(TransportBooking(id=booking.id, **_column_values(booking)))
                await session.flush()
                for position, step in enumerate(booking.tracking_steps):
                    session.add(_step_row(booking.id, position, step))
        return booking

    async def compare_and_save(self, booking: Booking, expected_version: int) -> Booking:
        async with self._bounded("compare_and_save"), self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(TransportBooking)
                    .where(
                        TransportBooking.id == booking.id,
                        TransportBooking.version == expected_version,
                    )
                    .values(**_column_values(booking))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    actual = await session.scalar(
                        select(TransportBooking.version).where(TransportBooking.id == booking.id)
                    )
                    if actual is None:
                        raise NotFoundError("Booking", booking.id)
                    raise ConcurrentModification(expected_version, actual)

                stored = await session.scalar(
                    select(func.count())
                    .select_from(BookingTrackingStep)
                    .where(BookingTrackingStep.booking_id == booking.id)
                )
                for position in range(stored or 0, len(booking.tracking_steps)):
                    session.add(_step_row(booking.id, position, booking.tracking_steps[position]))
        return booking

    async def list_bookings(
        self,
        customer_id: str | None = None,
        driver_id: str | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        query = select(TransportBooking)
        if customer_id is not None:
            query = query.where(TransportBooking.customer_id == customer_id)
        if driver_id is not None:
            query = query.where(TransportBooking.driver_id == driver_id)
        if status is not None:
            query = query.where(TransportBooking.status == status.value)
        query = query.order_by(TransportBooking.created_at.desc())

        async with self._bounded("list_bookings"), self._session_factory() as session:
            rows = (await session.scalars(query)).all()
            return [_to_snapshot(row) for row in rows]


def _column_values(booking: Booking) -> dict[str, Any]:
    """Booking row columns for a snapshot (everything except id and steps)."""
    request = booking.cancellation_request
    return {
        "tracking_id": booking.tracking_id,
        "customer_id": booking.customer_id,
        "customer_name": booking.customer_name,
        "vehicle_id": booking.vehicle_id,
        "driver_id": booking.driver_id,
        "status": booking.status.value,
        "version": booking.version,
        "from_location": booking.from_location,
        "to_location": booking.to_location,
        "distance": booking.distance,
        "final_amount": booking.final_amount,
        "cargo_description": booking.cargo_description,
        "current_location": booking.current_location,
        "cancellation_requested_by": request.requested_by if request else None,
        "cancellation_requested_at": request.requested_at if request else None,
        "cancellation_reason": request.reason if request else None,
        "cancellation_status": request.status.value if request else None,
        "cancellation_reviewed_by": request.reviewed_by if request else None,
        "cancellation_review_notes": request.review_notes if request else None,
        "cancellation_reviewed_at": request.reviewed_at if request else None,
        "cancellation_prior_status": (
            request.prior_status.value if request and request.prior_status else None
        ),
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
        "confirmed_at": booking.confirmed_at,
        "accepted_at": booking.accepted_at,
        "delivered_at": booking.delivered_at,
        "completed_at": booking.completed_at,
        "cancelled_at": booking.cancelled_at,
    }


def _step_row(booking_id: str, position: int, step: TrackingStep) -> BookingTrackingStep:
    return BookingTrackingStep(
        booking_id=booking_id,
        position=position,
        step=step.step,
        timestamp=step.timestamp,
        location=step.location,
        notes=step.notes,
        actor_id=step.actor_id,
    )


def _to_snapshot(row: TransportBooking) -> Booking:
    """Map a booking row (with its steps loaded) to a domain snapshot."""
    request = None
    if row.cancellation_status is not None:
        request = CancellationRequest(
            requested_by=row.cancellation_requested_by,
            requested_at=row.cancellation_requested_at,
            reason=row.cancellation_reason or "",
            status=row.cancellation_status,
            reviewed_by=row.cancellation_reviewed_by,
            review_notes=row.cancellation_review_notes,
            reviewed_at=row.cancellation_reviewed_at,
            prior_status=row.cancellation_prior_status,
        )

    return Booking(
        id=row.id,
        tracking_id=row.tracking_id,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        vehicle_id=row.vehicle_id,
        driver_id=row.driver_id,
        status=row.status,
        from_location=row.from_location or {},
        to_location=row.to_location or {},
        distance=row.distance,
        final_amount=row.final_amount,
        cargo_description=row.cargo_description,
        current_location=row.current_location,
        tracking_steps=tuple(TrackingStep.model_validate(step) for step in row.tracking_steps),
        cancellation_request=request,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
        confirmed_at=row.confirmed_at,
        accepted_at=row.accepted_at,
        delivered_at=row.delivered_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
    )
