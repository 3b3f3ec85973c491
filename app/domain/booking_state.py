"""Transport booking state machine.

Forward path:
    pending → confirmed → order_accepted → order_processing → pickup_started
    → order_picked_up → in_transit → delivered → completed

Side branch: any non-terminal state → cancellation_requested, which resolves
to cancelled (approve) or back to the status held before the request (deny).

``order_processing`` is accepted as a pre-pickup state equivalent to
``order_accepted``; no transition in this table produces it.
"""

from enum import Enum
from typing import NamedTuple

from app.core.exceptions import InvalidTransition


class BookingStatus(str, Enum):
    """Closed set of booking statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ORDER_ACCEPTED = "order_accepted"
    ORDER_PROCESSING = "order_processing"
    PICKUP_STARTED = "pickup_started"
    ORDER_PICKED_UP = "order_picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLATION_REQUESTED = "cancellation_requested"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


class ActorRole(str, Enum):
    """Roles that may act on a booking."""

    ADMIN = "admin"
    DRIVER = "driver"
    CUSTOMER = "customer"


class Transition(str, Enum):
    """Named transitions; the value is what gets written as the tracking step."""

    CONFIRM = "confirmed"
    ASSIGN_DRIVER = "driver_assigned"
    UNASSIGN_DRIVER = "driver_unassigned"
    ACCEPT_ORDER = "order_accepted"
    START_PICKUP = "pickup_started"
    PICK_UP = "order_picked_up"
    START_TRANSIT = "in_transit"
    DELIVER = "delivered"
    COMPLETE = "completed"
    REQUEST_CANCELLATION = "cancellation_requested"
    APPROVE_CANCELLATION = "cancelled"
    DENY_CANCELLATION = "cancellation_denied"


class Guard(str, Enum):
    """Guard predicates evaluated against a booking snapshot."""

    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_UNASSIGNED = "driver_unassigned"
    CALLER_IS_ASSIGNED_DRIVER = "caller_is_assigned_driver"
    CALLER_OWNS_BOOKING = "caller_owns_booking"
    NO_PENDING_CANCELLATION = "no_pending_cancellation"
    CANCELLATION_PENDING = "cancellation_pending"


class TransitionRule(NamedTuple):
    """What a transition does and who may trigger it."""

    target: BookingStatus | None  # None: status unchanged (or resumed, see below)
    actors: frozenset[ActorRole]
    guards: tuple[Guard, ...] = ()
    resumes_prior_status: bool = False


ADMIN_ONLY = frozenset({ActorRole.ADMIN})
DRIVER_ONLY = frozenset({ActorRole.DRIVER})
CUSTOMER_ONLY = frozenset({ActorRole.CUSTOMER})
ADMIN_OR_DRIVER = frozenset({ActorRole.ADMIN, ActorRole.DRIVER})

# Steps a driver reports through the delivery status update.
DRIVER_STEPS: dict[str, Transition] = {
    Transition.START_PICKUP.value: Transition.START_PICKUP,
    Transition.PICK_UP.value: Transition.PICK_UP,
    Transition.START_TRANSIT.value: Transition.START_TRANSIT,
    Transition.DELIVER.value: Transition.DELIVER,
}

# Statuses in which the assigned driver reports a live position.
LOCATION_REPORTING_STATUSES = frozenset(
    {
        BookingStatus.ORDER_ACCEPTED,
        BookingStatus.ORDER_PROCESSING,
        BookingStatus.PICKUP_STARTED,
        BookingStatus.ORDER_PICKED_UP,
        BookingStatus.IN_TRANSIT,
    }
)


def _build_transition_table() -> dict[tuple[BookingStatus, Transition], TransitionRule]:
    s = BookingStatus
    t = Transition
    table: dict[tuple[BookingStatus, Transition], TransitionRule] = {
        (s.PENDING, t.CONFIRM): TransitionRule(s.CONFIRMED, ADMIN_ONLY),
        (s.CONFIRMED, t.ASSIGN_DRIVER): TransitionRule(
            None, ADMIN_ONLY, (Guard.DRIVER_UNASSIGNED,)
        ),
        (s.CONFIRMED, t.UNASSIGN_DRIVER): TransitionRule(
            None, ADMIN_ONLY, (Guard.DRIVER_ASSIGNED,)
        ),
        (s.CONFIRMED, t.ACCEPT_ORDER): TransitionRule(
            s.ORDER_ACCEPTED, ADMIN_ONLY, (Guard.DRIVER_ASSIGNED,)
        ),
        (s.ORDER_ACCEPTED, t.START_PICKUP): TransitionRule(
            s.PICKUP_STARTED, DRIVER_ONLY, (Guard.CALLER_IS_ASSIGNED_DRIVER,)
        ),
        (s.ORDER_PROCESSING, t.START_PICKUP): TransitionRule(
            s.PICKUP_STARTED, DRIVER_ONLY, (Guard.CALLER_IS_ASSIGNED_DRIVER,)
        ),
        (s.PICKUP_STARTED, t.PICK_UP): TransitionRule(
            s.ORDER_PICKED_UP, DRIVER_ONLY, (Guard.CALLER_IS_ASSIGNED_DRIVER,)
        ),
        (s.ORDER_PICKED_UP, t.START_TRANSIT): TransitionRule(
            s.IN_TRANSIT, DRIVER_ONLY, (Guard.CALLER_IS_ASSIGNED_DRIVER,)
        ),
        (s.IN_TRANSIT, t.DELIVER): TransitionRule(
            s.DELIVERED, DRIVER_ONLY, (Guard.CALLER_IS_ASSIGNED_DRIVER,)
        ),
        (s.DELIVERED, t.COMPLETE): TransitionRule(
            s.COMPLETED, ADMIN_OR_DRIVER, (Guard.CALLER_IS_ASSIGNED_DRIVER,)
        ),
        (s.CANCELLATION_REQUESTED, t.APPROVE_CANCELLATION): TransitionRule(
            s.CANCELLED,
            ADMIN_OR_DRIVER,
            (Guard.CANCELLATION_PENDING, Guard.CALLER_IS_ASSIGNED_DRIVER),
        ),
        (s.CANCELLATION_REQUESTED, t.DENY_CANCELLATION): TransitionRule(
            None,
            ADMIN_OR_DRIVER,
            (Guard.CANCELLATION_PENDING, Guard.CALLER_IS_ASSIGNED_DRIVER),
            resumes_prior_status=True,
        ),
    }

    # Listed for cancellation_requested as well so that a second request is
    # reported as already pending rather than as an unknown transition.
    for status in BookingStatus:
        if status.is_terminal:
            continue
        table[(status, t.REQUEST_CANCELLATION)] = TransitionRule(
            s.CANCELLATION_REQUESTED,
            CUSTOMER_ONLY,
            (Guard.CALLER_OWNS_BOOKING, Guard.NO_PENDING_CANCELLATION),
        )

    return table


BOOKING_TRANSITIONS = _build_transition_table()


def get_transition_rule(current: BookingStatus, transition: Transition) -> TransitionRule | None:
    """Look up the rule for a transition out of ``current``, if any."""
    return BOOKING_TRANSITIONS.get((current, transition))


def transitions_from(current: BookingStatus) -> list[Transition]:
    """All transitions the table knows from ``current``, in declaration order."""
    return [transition for (status, transition) in BOOKING_TRANSITIONS if status == current]


def assert_booking_transition(
    current: BookingStatus, transition: Transition, actor_role: ActorRole
) -> TransitionRule:
    """Validate that ``actor_role`` may request ``transition`` from ``current``.

    Args:
        current: Current booking status
        transition: Requested transition
        actor_role: Role of the caller

    Returns:
        The matching transition rule. Guards are not evaluated here.

    Raises:
        InvalidTransition: If the table has no such rule or the role is not permitted
    """
    rule = get_transition_rule(current, transition)
    if rule is None or actor_role not in rule.actors:
        raise InvalidTransition(
            from_status=current.value,
            transition=transition.value,
            actor_role=actor_role.value,
        )
    return rule
