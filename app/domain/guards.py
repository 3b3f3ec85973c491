"""Guard evaluation for booking transitions.

The evaluator is the single authority on whether an actor may apply a
transition to a booking snapshot. Clients call ``available_transitions`` to
render actions rather than re-deriving the conditions themselves.
"""

from typing import NamedTuple

from fastapi import status

from app.core.exceptions import (
    CancellationAlreadyPending,
    DriverAlreadyAssigned,
    GuardFailed,
    InvalidTransition,
)
from app.domain.booking import Actor, Booking
from app.domain.booking_state import (
    LOCATION_REPORTING_STATUSES,
    ActorRole,
    Guard,
    Transition,
    TransitionRule,
    assert_booking_transition,
    transitions_from,
)

# Action name reported when a position update is rejected
LOCATION_UPDATE = "location_updated"


class GuardResult(NamedTuple):
    """Outcome of a single guard check."""

    passed: bool
    guard: Guard
    detail: str | None = None


class GuardEvaluator:
    """Evaluates transition guards against a booking snapshot."""

    def check(self, guard: Guard, booking: Booking, actor: Actor) -> GuardResult:
        """Evaluate one guard."""
        if guard == Guard.DRIVER_ASSIGNED:
            if not booking.driver_id:
                return GuardResult(False, guard, "Please assign a driver before accepting the order")
        elif guard == Guard.DRIVER_UNASSIGNED:
            if booking.driver_id:
                return GuardResult(False, guard, f"Driver '{booking.driver_id}' is already assigned")
        elif guard == Guard.CALLER_IS_ASSIGNED_DRIVER:
            # Only constrains drivers; admins act on any booking.
            if actor.role == ActorRole.DRIVER and actor.id != booking.driver_id:
                return GuardResult(False, guard, "Booking not assigned to you")
        elif guard == Guard.CALLER_OWNS_BOOKING:
            if actor.id != booking.customer_id:
                return GuardResult(False, guard, "Only the customer who placed the booking can do this")
        elif guard == Guard.NO_PENDING_CANCELLATION:
            if booking.has_pending_cancellation:
                return GuardResult(False, guard, "Cancellation request already submitted")
        elif guard == Guard.CANCELLATION_PENDING:
            if not booking.has_pending_cancellation:
                return GuardResult(False, guard, "No pending cancellation request for this booking")
        return GuardResult(True, guard)

    def evaluate(self, booking: Booking, actor: Actor, transition: Transition) -> TransitionRule:
        """Validate a transition request against the table and all of its guards.

        Args:
            booking: Current booking snapshot
            actor: Caller requesting the transition
            transition: Requested transition

        Returns:
            The transition rule to apply

        Raises:
            InvalidTransition: If the table does not permit the transition for this role
            GuardFailed: If a guard does not hold (or one of its specific subtypes)
        """
        rule = assert_booking_transition(booking.status, transition, actor.role)
        for guard in rule.guards:
            result = self.check(guard, booking, actor)
            if not result.passed:
                raise self._guard_error(result, booking, actor, transition.value)
        return rule

    def evaluate_location_update(self, booking: Booking, actor: Actor) -> None:
        """Validate a live position report. The status is left unchanged.

        Raises:
            InvalidTransition: If the caller is not a driver or the booking is not on the road
            GuardFailed: If the caller is not the assigned driver
        """
        if actor.role != ActorRole.DRIVER or booking.status not in LOCATION_REPORTING_STATUSES:
            raise InvalidTransition(
                from_status=booking.status.value,
                transition=LOCATION_UPDATE,
                actor_role=actor.role.value,
            )
        result = self.check(Guard.CALLER_IS_ASSIGNED_DRIVER, booking, actor)
        if not result.passed:
            raise self._guard_error(result, booking, actor, LOCATION_UPDATE)

    def is_permitted(self, booking: Booking, actor: Actor, transition: Transition) -> bool:
        """Whether ``evaluate`` would succeed."""
        try:
            self.evaluate(booking, actor, transition)
        except InvalidTransition:
            return False
        return True

    def available_transitions(self, booking: Booking, actor: Actor) -> list[Transition]:
        """Transitions the actor may apply right now."""
        return [
            transition
            for transition in transitions_from(booking.status)
            if self.is_permitted(booking, actor, transition)
        ]

    @staticmethod
    def _guard_error(
        result: GuardResult, booking: Booking, actor: Actor, action: str
    ) -> GuardFailed:
        context = {
            "from_status": booking.status.value,
            "transition": action,
            "actor_role": actor.role.value,
        }
        if result.guard == Guard.DRIVER_UNASSIGNED:
            return DriverAlreadyAssigned(booking.driver_id, **context)
        if result.guard == Guard.NO_PENDING_CANCELLATION:
            return CancellationAlreadyPending(**context)

        status_code = status.HTTP_400_BAD_REQUEST
        if result.guard in (Guard.CALLER_IS_ASSIGNED_DRIVER, Guard.CALLER_OWNS_BOOKING):
            status_code = status.HTTP_403_FORBIDDEN
        return GuardFailed(
            guard_name=result.guard.value,
            detail=result.detail or f"Guard '{result.guard.value}' failed",
            status_code=status_code,
            **context,
        )


guard_evaluator = GuardEvaluator()
