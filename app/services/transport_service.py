"""Transport booking operations exposed to the API layer."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from app.core.exceptions import ValidationError
from app.domain.booking import Actor, Booking, TrackingStep, TransitionPayload
from app.domain.booking_state import DRIVER_STEPS, ActorRole, BookingStatus, Transition
from app.repositories.booking_repository import BookingRepository
from app.schemas.transport import BookingCreate
from app.services.booking_state_machine import BookingStateMachine, utc_now
from app.services.cancellation_service import CancellationNegotiator, ReviewAction
from app.services.driver_assignment_service import DriverAssignmentResolver
from app.services.notification_service import NotificationEmitter
from app.utils.booking_number import generate_booking_id, generate_tracking_id

logger = logging.getLogger(__name__)


class TransportService:
    """Façade over the booking lifecycle components."""

    def __init__(
        self,
        repository: BookingRepository,
        emitter: NotificationEmitter,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.emitter = emitter
        self.clock = clock
        self.state_machine = BookingStateMachine(repository, emitter, clock=clock)
        self.assignments = DriverAssignmentResolver(self.state_machine)
        self.cancellations = CancellationNegotiator(self.state_machine)

    async def close(self) -> None:
        await self.emitter.close()

    # ==================== INTAKE & QUERIES ====================

    async def create_booking(self, data: BookingCreate) -> Booking:
        """Create a pending booking with its initial ``order_placed`` step."""
        now = self.clock()
        origin = data.from_location
        placed_at = ", ".join(part for part in (origin.city, origin.district) if part) or None

        booking = Booking(
            id=generate_booking_id(),
            tracking_id=generate_tracking_id(),
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            vehicle_id=data.vehicle_id,
            status=BookingStatus.PENDING,
            from_location=data.from_location.model_dump(by_alias=True, exclude_none=True),
            to_location=data.to_location.model_dump(by_alias=True, exclude_none=True),
            distance=data.distance,
            final_amount=data.final_amount,
            cargo_description=data.cargo_description,
            tracking_steps=(
                TrackingStep(
                    step="order_placed",
                    timestamp=now,
                    location=placed_at,
                    notes="Order has been placed successfully",
                    actor_id=data.customer_id,
                ),
            ),
            version=1,
            created_at=now,
            updated_at=now,
        )
        await self.repository.add(booking)
        logger.info(f"Booking {booking.id} created for customer {booking.customer_id}")
        return booking

    async def get_booking(self, booking_id: str) -> Booking:
        return await self.repository.get(booking_id)

    async def track(self, tracking_id: str) -> Booking:
        return await self.repository.get_by_tracking_id(tracking_id)

    async def list_bookings(self, status: BookingStatus | None = None) -> list[Booking]:
        """All bookings, newest first, optionally in one status."""
        return await self.repository.list_bookings(status=status)

    async def list_customer_bookings(self, customer_id: str) -> list[Booking]:
        return await self.repository.list_bookings(customer_id=customer_id)

    async def list_driver_bookings(self, driver_id: str) -> list[Booking]:
        return await self.repository.list_bookings(driver_id=driver_id)

    async def list_pending_cancellations(self, driver_id: str | None = None) -> list[Booking]:
        """Bookings awaiting a cancellation review, optionally for one driver."""
        bookings = await self.repository.list_bookings(
            driver_id=driver_id, status=BookingStatus.CANCELLATION_REQUESTED
        )
        return [booking for booking in bookings if booking.has_pending_cancellation]

    async def available_transitions(self, booking_id: str, actor: Actor) -> tuple[Booking, list[Transition]]:
        booking = await self.repository.get(booking_id)
        return booking, self.state_machine.evaluator.available_transitions(booking, actor)

    # ==================== LIFECYCLE OPERATIONS ====================

    async def confirm_booking(self, booking_id: str, admin_id: str) -> Booking:
        applied = await self.state_machine.apply(
            booking_id, Actor(id=admin_id, role=ActorRole.ADMIN), Transition.CONFIRM
        )
        return applied.booking

    async def assign_driver(self, booking_id: str, driver_id: str, admin_id: str) -> Booking:
        applied = await self.assignments.assign(
            booking_id, driver_id, Actor(id=admin_id, role=ActorRole.ADMIN)
        )
        return applied.booking

    async def unassign_driver(self, booking_id: str, admin_id: str, notes: str | None = None) -> Booking:
        applied = await self.assignments.unassign(
            booking_id, Actor(id=admin_id, role=ActorRole.ADMIN), notes
        )
        return applied.booking

    async def accept_order(self, booking_id: str, admin_id: str) -> Booking:
        applied = await self.state_machine.apply(
            booking_id, Actor(id=admin_id, role=ActorRole.ADMIN), Transition.ACCEPT_ORDER
        )
        return applied.booking

    async def update_delivery_status(
        self,
        booking_id: str,
        driver_id: str,
        step: str,
        location: str | None = None,
        notes: str | None = None,
    ) -> Booking:
        """Record a driver-reported fulfillment step."""
        transition = DRIVER_STEPS.get(step)
        if transition is None:
            raise ValidationError(f"Invalid step. Must be one of: {', '.join(DRIVER_STEPS)}")

        applied = await self.state_machine.apply(
            booking_id,
            Actor(id=driver_id, role=ActorRole.DRIVER),
            transition,
            TransitionPayload(
                location=location.strip() if location else None,
                notes=notes.strip() if notes else None,
            ),
        )
        return applied.booking

    async def update_current_location(
        self,
        booking_id: str,
        driver_id: str,
        latitude: float,
        longitude: float,
        address: str | None = None,
    ) -> Booking:
        """Record the assigned driver's live position without changing the status."""
        location: dict[str, Any] = {"latitude": latitude, "longitude": longitude}
        if address:
            location["address"] = address.strip()
        return await self.state_machine.record_location(
            booking_id, Actor(id=driver_id, role=ActorRole.DRIVER), location
        )

    async def request_cancellation(self, booking_id: str, customer_id: str, reason: str) -> Booking:
        applied = await self.cancellations.request_cancellation(
            booking_id, Actor(id=customer_id, role=ActorRole.CUSTOMER), reason
        )
        return applied.booking

    async def review_cancellation(
        self,
        booking_id: str,
        reviewer_id: str,
        action: ReviewAction | str,
        notes: str | None = None,
        reviewer_role: ActorRole = ActorRole.ADMIN,
    ) -> Booking:
        try:
            action = ReviewAction(action)
        except ValueError:
            raise ValidationError("action must be 'approve' or 'deny'") from None

        applied = await self.cancellations.review(
            booking_id, Actor(id=reviewer_id, role=reviewer_role), action, notes
        )
        return applied.booking

    async def complete_booking(
        self, booking_id: str, actor_id: str, actor_role: ActorRole = ActorRole.ADMIN
    ) -> Booking:
        applied = await self.state_machine.apply(
            booking_id, Actor(id=actor_id, role=actor_role), Transition.COMPLETE
        )
        return applied.booking
