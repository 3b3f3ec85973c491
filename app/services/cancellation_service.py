"""Cancellation negotiation: request → pending → approved | denied."""

from datetime import datetime
from enum import Enum
from typing import Any

from app.core.exceptions import ValidationError
from app.domain.booking import Actor, Booking, CancellationRequest, CancellationStatus, TransitionPayload
from app.domain.booking_state import Transition
from app.services.booking_state_machine import Applied, BookingStateMachine


class ReviewAction(str, Enum):
    """Reviewer decision on a pending cancellation request."""

    APPROVE = "approve"
    DENY = "deny"


class CancellationNegotiator:
    """Manages the cancellation sub-workflow on top of the state machine."""

    def __init__(self, state_machine: BookingStateMachine) -> None:
        self.state_machine = state_machine

    async def request_cancellation(self, booking_id: str, actor: Actor, reason: str) -> Applied:
        """Pause the booking in ``cancellation_requested``, remembering where it was.

        Raises:
            CancellationAlreadyPending: A request is already awaiting review
            InvalidTransition: Booking is completed/cancelled or caller is not the customer
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A cancellation reason is required")

        def open_request(current: Booking, now: datetime) -> dict[str, Any]:
            return {
                "cancellation_request": CancellationRequest(
                    requested_by=actor.id,
                    requested_at=now,
                    reason=reason,
                    status=CancellationStatus.PENDING,
                    prior_status=current.status,
                )
            }

        return await self.state_machine.apply(
            booking_id,
            actor,
            Transition.REQUEST_CANCELLATION,
            TransitionPayload(notes=reason),
            amend=open_request,
        )

    async def review(
        self,
        booking_id: str,
        actor: Actor,
        action: ReviewAction,
        notes: str | None = None,
    ) -> Applied:
        """Approve (terminal) or deny (resume prior status) a pending request.

        Raises:
            GuardFailed: No pending request, or a driver reviewing someone else's booking
            InvalidTransition: Booking is not in ``cancellation_requested``
        """
        action = ReviewAction(action)
        approved = action == ReviewAction.APPROVE

        def close_request(current: Booking, now: datetime) -> dict[str, Any]:
            request = current.cancellation_request
            return {
                "cancellation_request": request.model_copy(
                    update={
                        "status": CancellationStatus.APPROVED if approved else CancellationStatus.DENIED,
                        "reviewed_by": actor.id,
                        "review_notes": notes,
                        "reviewed_at": now,
                        # Kept on denial so the resumed status stays auditable.
                        "prior_status": None if approved else request.prior_status,
                    }
                )
            }

        transition = Transition.APPROVE_CANCELLATION if approved else Transition.DENY_CANCELLATION
        return await self.state_machine.apply(
            booking_id,
            actor,
            transition,
            TransitionPayload(notes=notes),
            amend=close_request,
        )
