"""Driver assignment with compare-and-set semantics."""

import logging
from datetime import datetime
from typing import Any

from app.core.exceptions import ConcurrentModification, DriverAlreadyAssigned, ValidationError
from app.domain.booking import Actor, Booking, TransitionPayload
from app.domain.booking_state import Transition
from app.services.booking_state_machine import Applied, BookingStateMachine

logger = logging.getLogger(__name__)


class DriverAssignmentResolver:
    """Assigns drivers to confirmed bookings.

    The write is conditional on the version read while ``driver_id`` was
    empty, so of two racing assignments exactly one commits. The loser is
    told which driver won; it never falls back to retrying with its own.
    """

    def __init__(self, state_machine: BookingStateMachine) -> None:
        self.state_machine = state_machine

    async def assign(self, booking_id: str, driver_id: str, actor: Actor) -> Applied:
        """Assign ``driver_id`` to a confirmed, unassigned booking.

        Raises:
            DriverAlreadyAssigned: A driver is (or has just been) assigned
            InvalidTransition: Booking is not confirmed or caller is not an admin
            ConcurrentModification: Another write landed that did not assign a driver
        """
        driver_id = (driver_id or "").strip()
        if not driver_id:
            raise ValidationError("driver_id is required")

        def set_driver(current: Booking, now: datetime) -> dict[str, Any]:
            return {"driver_id": driver_id}

        try:
            return await self.state_machine.apply(
                booking_id,
                actor,
                Transition.ASSIGN_DRIVER,
                TransitionPayload(notes=f"Driver {driver_id} assigned"),
                amend=set_driver,
            )
        except ConcurrentModification:
            winner = (await self.state_machine.repository.get(booking_id)).driver_id
            if winner:
                logger.info(
                    f"Assignment of driver {driver_id} to booking {booking_id} lost to driver {winner}"
                )
                raise DriverAlreadyAssigned(
                    winner,
                    from_status="confirmed",
                    transition=Transition.ASSIGN_DRIVER.value,
                    actor_role=actor.role.value,
                ) from None
            raise

    async def unassign(self, booking_id: str, actor: Actor, notes: str | None = None) -> Applied:
        """Clear the driver of a booking that has not been accepted yet."""

        def clear_driver(current: Booking, now: datetime) -> dict[str, Any]:
            return {"driver_id": None}

        return await self.state_machine.apply(
            booking_id,
            actor,
            Transition.UNASSIGN_DRIVER,
            TransitionPayload(notes=notes),
            amend=clear_driver,
        )
