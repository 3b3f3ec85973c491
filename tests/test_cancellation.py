import pytest

from app.core.exceptions import (
    CancellationAlreadyPending,
    GuardFailed,
    InvalidTransition,
    ValidationError,
)
from app.domain.booking import CancellationStatus
from app.domain.booking_state import ActorRole, BookingStatus
from app.domain.events import CancellationRequested, CancellationResolved
from app.services.cancellation_service import ReviewAction
from conftest import ADMIN, CUSTOMER, DRIVER, OTHER_DRIVER

pytestmark = pytest.mark.anyio

IN_FLIGHT = [
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.ORDER_ACCEPTED,
    BookingStatus.ORDER_PROCESSING,
    BookingStatus.PICKUP_STARTED,
    BookingStatus.ORDER_PICKED_UP,
    BookingStatus.IN_TRANSIT,
    BookingStatus.DELIVERED,
]


@pytest.mark.parametrize("status", IN_FLIGHT)
async def test_request_then_deny_restores_prior_status(service, emitter, seed_booking, status) -> None:
    driver_id = None if status in (BookingStatus.PENDING, BookingStatus.CONFIRMED) else DRIVER.id
    booking = await seed_booking(status, driver_id=driver_id)

    requested = await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")
    assert requested.status == BookingStatus.CANCELLATION_REQUESTED
    assert requested.cancellation_request.prior_status == status
    assert requested.cancellation_request.status == CancellationStatus.PENDING

    denied = await service.review_cancellation(booking.id, ADMIN.id, ReviewAction.DENY, notes="Cargo loaded")
    assert denied.status == status
    assert denied.driver_id == booking.driver_id
    request = denied.cancellation_request
    assert request.status == CancellationStatus.DENIED
    assert request.reviewed_by == ADMIN.id
    assert request.review_notes == "Cargo loaded"
    assert request.reviewed_at is not None
    assert request.prior_status == status
    assert denied.version == booking.version + 2

    requested_event, resolved_event = emitter.events
    assert isinstance(requested_event, CancellationRequested)
    assert requested_event.prior_status == status
    assert isinstance(resolved_event, CancellationResolved)
    assert resolved_event.action == "deny"
    assert resolved_event.to_status == status


async def test_scenario_deny_in_transit_then_continue(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.IN_TRANSIT)

    booking = await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")
    assert booking.status == BookingStatus.CANCELLATION_REQUESTED
    assert booking.cancellation_request.prior_status == BookingStatus.IN_TRANSIT

    booking = await service.review_cancellation(booking.id, ADMIN.id, "deny")
    assert booking.status == BookingStatus.IN_TRANSIT
    assert booking.cancellation_request.status == CancellationStatus.DENIED

    booking = await service.update_delivery_status(booking.id, DRIVER.id, "delivered", location="Pune APMC")
    assert booking.status == BookingStatus.DELIVERED


async def test_approve_is_terminal(service, emitter, drive_to) -> None:
    booking = await drive_to(BookingStatus.ORDER_PICKED_UP)
    await service.request_cancellation(booking.id, CUSTOMER.id, "Buyer backed out")

    cancelled = await service.review_cancellation(booking.id, ADMIN.id, ReviewAction.APPROVE)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    assert cancelled.cancellation_request.status == CancellationStatus.APPROVED
    assert cancelled.cancellation_request.prior_status is None
    assert cancelled.tracking_steps[-1].step == "cancelled"
    assert emitter.events[-1].action == "approve"

    with pytest.raises(InvalidTransition):
        await service.request_cancellation(booking.id, CUSTOMER.id, "Again")
    with pytest.raises(InvalidTransition):
        await service.update_delivery_status(booking.id, DRIVER.id, "in_transit", location="Nashik")


async def test_second_request_while_pending(service, repository, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)
    requested = await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")

    with pytest.raises(CancellationAlreadyPending) as exc:
        await service.request_cancellation(booking.id, CUSTOMER.id, "Still delayed")

    assert exc.value.status_code == 409
    stored = await repository.get(booking.id)
    assert stored == requested


async def test_new_request_after_denial(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)
    await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")
    await service.review_cancellation(booking.id, ADMIN.id, ReviewAction.DENY)

    again = await service.request_cancellation(booking.id, CUSTOMER.id, "Still delayed")

    assert again.cancellation_request.status == CancellationStatus.PENDING
    assert again.cancellation_request.reason == "Still delayed"
    assert again.cancellation_request.prior_status == BookingStatus.CONFIRMED


async def test_only_the_owning_customer_may_request(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)

    with pytest.raises(GuardFailed) as exc:
        await service.request_cancellation(booking.id, "cust-2", "Not mine")

    assert exc.value.status_code == 403


async def test_ownership_is_checked_before_pending_request(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)
    await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")

    with pytest.raises(GuardFailed) as exc:
        await service.request_cancellation(booking.id, "cust-2", "Not mine")

    assert not isinstance(exc.value, CancellationAlreadyPending)
    assert exc.value.guard_name == "caller_owns_booking"
    assert exc.value.status_code == 403


async def test_reason_is_required(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)

    with pytest.raises(ValidationError):
        await service.request_cancellation(booking.id, CUSTOMER.id, "  ")


async def test_driver_reviewer_must_be_assigned(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.PICKUP_STARTED)
    await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")

    with pytest.raises(GuardFailed) as exc:
        await service.review_cancellation(
            booking.id, OTHER_DRIVER.id, ReviewAction.APPROVE, reviewer_role=ActorRole.DRIVER
        )
    assert exc.value.status_code == 403

    denied = await service.review_cancellation(
        booking.id, DRIVER.id, ReviewAction.DENY, reviewer_role=ActorRole.DRIVER
    )
    assert denied.status == BookingStatus.PICKUP_STARTED
    assert denied.cancellation_request.reviewed_by == DRIVER.id


async def test_customer_cannot_review(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)
    await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")

    with pytest.raises(InvalidTransition):
        await service.review_cancellation(
            booking.id, CUSTOMER.id, ReviewAction.APPROVE, reviewer_role=ActorRole.CUSTOMER
        )


async def test_review_without_request(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)

    with pytest.raises(InvalidTransition):
        await service.review_cancellation(booking.id, ADMIN.id, ReviewAction.APPROVE)


async def test_unknown_review_action(service, drive_to) -> None:
    booking = await drive_to(BookingStatus.CONFIRMED)
    await service.request_cancellation(booking.id, CUSTOMER.id, "Delay")

    with pytest.raises(ValidationError):
        await service.review_cancellation(booking.id, ADMIN.id, "postpone")


async def test_pending_cancellations_by_driver(service, drive_to) -> None:
    mine = await drive_to(BookingStatus.IN_TRANSIT)
    theirs = await drive_to(BookingStatus.IN_TRANSIT, driver_id=OTHER_DRIVER.id)
    untouched = await drive_to(BookingStatus.IN_TRANSIT)

    await service.request_cancellation(mine.id, CUSTOMER.id, "Delay")
    await service.request_cancellation(theirs.id, CUSTOMER.id, "Delay")

    pending = await service.list_pending_cancellations(DRIVER.id)
    assert [booking.id for booking in pending] == [mine.id]

    everyone = await service.list_pending_cancellations()
    assert {booking.id for booking in everyone} == {mine.id, theirs.id}
    assert untouched.id not in {booking.id for booking in everyone}
