"""Booking state machine service.

Every booking transition goes through ``BookingStateMachine.apply``:

1. load the current snapshot
2. validate the transition (table + guards)
3. build the next snapshot (status, tracking step, version, timestamps)
4. compare-and-save against the version that was read
5. emit the domain event

A failure at steps 1, 2 or 4 leaves storage untouched and emits nothing.
Conflicts are not retried here: the caller re-reads and re-validates.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, NamedTuple

from app.core.exceptions import ConcurrentModification, InvalidTransition, NotFoundError
from app.domain.booking import Actor, Booking, TrackingStep, TransitionPayload
from app.domain.booking_state import (
    DRIVER_STEPS,
    BookingStatus,
    Transition,
    TransitionRule,
)
from app.domain.events import (
    CancellationRequested,
    CancellationResolved,
    DomainEvent,
    DriverAssignmentChanged,
    LocationUpdated,
    StatusChanged,
)
from app.domain.guards import LOCATION_UPDATE, GuardEvaluator, guard_evaluator
from app.repositories.booking_repository import BookingRepository
from app.services.notification_service import NotificationEmitter

logger = logging.getLogger(__name__)

# Timestamp stamped when a transition lands in the status
LIFECYCLE_TIMESTAMPS: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.ORDER_ACCEPTED: "accepted_at",
    BookingStatus.DELIVERED: "delivered_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}

# Extra field updates contributed by specialised callers: (current, now) -> changes
Amendment = Callable[[Booking, datetime], dict[str, Any]]


class Applied(NamedTuple):
    """A committed transition."""

    booking: Booking
    previous: Booking
    event: DomainEvent


class Rejected(NamedTuple):
    """A transition that was not committed, with the reason."""

    booking_id: str
    transition: Transition
    error: InvalidTransition | ConcurrentModification | NotFoundError


def utc_now() -> datetime:
    return datetime.now(UTC)


class BookingStateMachine:
    """Applies validated transitions to bookings."""

    def __init__(
        self,
        repository: BookingRepository,
        emitter: NotificationEmitter,
        evaluator: GuardEvaluator = guard_evaluator,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.emitter = emitter
        self.evaluator = evaluator
        self.clock = clock

    async def apply(
        self,
        booking_id: str,
        actor: Actor,
        transition: Transition,
        payload: TransitionPayload | None = None,
        amend: Amendment | None = None,
    ) -> Applied:
        """Validate, persist and announce one transition.

        Args:
            booking_id: Booking to transition
            actor: Caller identity and role
            transition: Requested transition
            payload: Location/notes recorded on the tracking step
            amend: Additional field changes from a specialised caller

        Returns:
            Applied: The committed snapshot, the snapshot it replaced and the event

        Raises:
            NotFoundError: Unknown booking
            InvalidTransition: Not permitted from this state/role (incl. GuardFailed)
            ConcurrentModification: Another writer committed since the read
        """
        booking = await self.repository.get(booking_id)

        try:
            rule = self.evaluator.evaluate(booking, actor, transition)
        except InvalidTransition as e:
            logger.info(
                f"Rejected {transition.value} on booking {booking_id} "
                f"by {actor.role.value} {actor.id}: {e.code} ({e.detail})"
            )
            raise

        updated = self.advance(booking, rule, actor, transition, payload, amend)
        await self._save(updated, booking.version, transition.value)

        event = self.build_event(booking, updated, actor, transition)
        self._emit(event)

        logger.info(
            f"Booking {booking_id} {booking.status.value} → {updated.status.value} "
            f"via {transition.value} by {actor.role.value} {actor.id} (v{updated.version})"
        )
        return Applied(updated, booking, event)

    async def record_location(self, booking_id: str, actor: Actor, location: dict[str, Any]) -> Booking:
        """Store the assigned driver's live position.

        The status and step history are untouched, but the version is bumped
        so the update competes with transitions on the same counter.
        """
        booking = await self.repository.get(booking_id)
        self.evaluator.evaluate_location_update(booking, actor)

        now = self.clock()
        current_location = {**location, "updated_at": now.isoformat()}
        updated = booking.model_copy(
            update={
                "current_location": current_location,
                "version": booking.version + 1,
                "updated_at": now,
            }
        )
        await self._save(updated, booking.version, LOCATION_UPDATE)

        self._emit(
            LocationUpdated(
                booking_id=booking.id,
                actor_id=actor.id,
                actor_role=actor.role,
                version=updated.version,
                occurred_at=now,
                status=updated.status,
                location=current_location,
            )
        )
        logger.debug(f"Booking {booking_id} location updated by driver {actor.id} (v{updated.version})")
        return updated

    async def attempt(
        self,
        booking_id: str,
        actor: Actor,
        transition: Transition,
        payload: TransitionPayload | None = None,
        amend: Amendment | None = None,
    ) -> Applied | Rejected:
        """Like ``apply`` but returns ``Rejected`` instead of raising lifecycle errors."""
        try:
            return await self.apply(booking_id, actor, transition, payload, amend)
        except (InvalidTransition, ConcurrentModification, NotFoundError) as e:
            return Rejected(booking_id, transition, e)

    def advance(
        self,
        booking: Booking,
        rule: TransitionRule,
        actor: Actor,
        transition: Transition,
        payload: TransitionPayload | None = None,
        amend: Amendment | None = None,
    ) -> Booking:
        """Build the next snapshot. Pure: nothing is persisted."""
        payload = payload or TransitionPayload()
        now = self.clock()

        if rule.resumes_prior_status:
            target = booking.cancellation_request.prior_status
        else:
            target = rule.target or booking.status

        notes = payload.notes
        if notes is None and transition.value in DRIVER_STEPS:
            notes = f"{transition.value.replace('_', ' ')} completed"

        step = TrackingStep(
            step=transition.value,
            timestamp=now,
            location=payload.location,
            notes=notes,
            actor_id=actor.id,
        )
        changes: dict[str, Any] = {
            "status": target,
            "tracking_steps": booking.tracking_steps + (step,),
            "version": booking.version + 1,
            "updated_at": now,
        }
        if rule.target is not None and rule.target in LIFECYCLE_TIMESTAMPS:
            changes[LIFECYCLE_TIMESTAMPS[rule.target]] = now
        if amend is not None:
            changes.update(amend(booking, now))

        return booking.model_copy(update=changes)

    @staticmethod
    def build_event(
        before: Booking, after: Booking, actor: Actor, transition: Transition
    ) -> DomainEvent:
        """Domain event describing a committed transition."""
        common = {
            "booking_id": after.id,
            "actor_id": actor.id,
            "actor_role": actor.role,
            "version": after.version,
            "occurred_at": after.updated_at,
        }
        if transition == Transition.REQUEST_CANCELLATION:
            return CancellationRequested(
                prior_status=before.status,
                reason=after.cancellation_request.reason,
                **common,
            )
        if transition in (Transition.APPROVE_CANCELLATION, Transition.DENY_CANCELLATION):
            return CancellationResolved(
                action="approve" if transition == Transition.APPROVE_CANCELLATION else "deny",
                from_status=before.status,
                to_status=after.status,
                review_notes=after.cancellation_request.review_notes,
                **common,
            )
        if transition in (Transition.ASSIGN_DRIVER, Transition.UNASSIGN_DRIVER):
            return DriverAssignmentChanged(
                driver_id=after.driver_id,
                previous_driver_id=before.driver_id,
                **common,
            )
        return StatusChanged(
            from_status=before.status,
            to_status=after.status,
            step=transition.value,
            **common,
        )

    async def _save(self, updated: Booking, expected_version: int, action: str) -> None:
        try:
            await self.repository.compare_and_save(updated, expected_version=expected_version)
        except ConcurrentModification as e:
            logger.warning(
                f"Version conflict applying {action} to booking {updated.id}: "
                f"expected {e.expected_version}, found {e.actual_version}"
            )
            raise

    def _emit(self, event: DomainEvent) -> None:
        # The transition is already committed; delivery problems are only logged.
        try:
            self.emitter.emit(event)
        except Exception:
            logger.warning(
                f"Notification emitter failed for {event.event_type} on booking {event.booking_id}",
                exc_info=True,
            )
