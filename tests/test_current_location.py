import pytest

from app.core.exceptions import ConcurrentModification, GuardFailed, InvalidTransition
from app.domain.booking_state import BookingStatus
from app.domain.events import LocationUpdated
from app.repositories.booking_repository import InMemoryBookingRepository
from app.services.notification_service import InMemoryNotificationEmitter
from app.services.transport_service import TransportService
from conftest import ADMIN, DRIVER, OTHER_DRIVER, booking_create

pytestmark = pytest.mark.anyio


async def test_assigned_driver_reports_position(service, emitter, drive_to) -> None:
    booking = await drive_to(BookingStatus.IN_TRANSIT)

    updated = await service.update_current_location(
        booking.id, DRIVER.id, 19.9975, 73.7898, address=" Nashik bypass "
    )

    assert updated.status == BookingStatus.IN_TRANSIT
    assert updated.version == booking.version + 1
    assert updated.tracking_steps == booking.tracking_steps
    assert updated.current_location["latitude"] == 19.9975
    assert updated.current_location["longitude"] == 73.7898
    assert updated.current_location["address"] == "Nashik bypass"
    assert updated.current_location["updated_at"] == updated.updated_at.isoformat()
    assert await service.get_booking(booking.id) == updated

    event = emitter.events[-1]
    assert isinstance(event, LocationUpdated)
    assert event.actor_id == DRIVER.id
    assert event.version == updated.version
    assert event.status == BookingStatus.IN_TRANSIT


async def test_other_driver_cannot_report_position(service, emitter, drive_to) -> None:
    booking = await drive_to(BookingStatus.PICKUP_STARTED)
    emitted = len(emitter.events)

    with pytest.raises(GuardFailed) as exc:
        await service.update_current_location(booking.id, OTHER_DRIVER.id, 19.99, 73.78)

    assert exc.value.status_code == 403
    assert await service.get_booking(booking.id) == booking
    assert len(emitter.events) == emitted


@pytest.mark.parametrize("target", [BookingStatus.CONFIRMED, BookingStatus.DELIVERED, BookingStatus.COMPLETED])
async def test_position_only_while_on_the_road(service, drive_to, target) -> None:
    booking = await drive_to(target)

    with pytest.raises(InvalidTransition) as exc:
        await service.update_current_location(booking.id, DRIVER.id, 19.99, 73.78)

    assert type(exc.value) is InvalidTransition
    assert exc.value.transition == "location_updated"


async def test_position_update_competes_with_transitions(clock) -> None:
    repository = InMemoryBookingRepository()
    service = TransportService(repository, InMemoryNotificationEmitter(), clock=clock)
    booking = await service.create_booking(booking_create())
    await service.confirm_booking(booking.id, ADMIN.id)
    await service.assign_driver(booking.id, DRIVER.id, ADMIN.id)
    accepted = await service.accept_order(booking.id, ADMIN.id)

    await service.update_current_location(booking.id, DRIVER.id, 19.99, 73.78)

    stale = accepted.model_copy(update={"status": BookingStatus.PICKUP_STARTED, "version": accepted.version + 1})
    with pytest.raises(ConcurrentModification) as exc:
        await repository.compare_and_save(stale, expected_version=accepted.version)

    assert exc.value.actual_version == accepted.version + 1
    assert (await repository.get(booking.id)).status == BookingStatus.ORDER_ACCEPTED


async def test_admin_lists_all_bookings(service, drive_to) -> None:
    confirmed = await drive_to(BookingStatus.CONFIRMED)
    pending = await drive_to(BookingStatus.PENDING)
    other = await service.create_booking(booking_create(customer_id="cust-2"))

    everything = await service.list_bookings()
    assert [booking.id for booking in everything] == [other.id, pending.id, confirmed.id]

    only_confirmed = await service.list_bookings(BookingStatus.CONFIRMED)
    assert [booking.id for booking in only_confirmed] == [confirmed.id]
