import asyncio
from contextlib import asynccontextmanager

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.exceptions import ConcurrentModification, NotFoundError, RepositoryUnavailable
from app.core.immutability import ImmutabilityViolationError, register_immutability_enforcement
from app.database import Base
from app.domain.booking_state import BookingStatus
from app.models.transport import BookingTrackingStep
from app.repositories.booking_repository import SqlAlchemyBookingRepository
from app.services.cancellation_service import ReviewAction
from app.services.notification_service import InMemoryNotificationEmitter
from app.services.transport_service import TransportService
from conftest import ADMIN, CUSTOMER, DRIVER, booking_create

pytestmark = pytest.mark.anyio


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'transport.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_repository(session_factory) -> SqlAlchemyBookingRepository:
    return SqlAlchemyBookingRepository(session_factory, timeout=5.0)


@pytest.fixture
def sql_service(sql_repository, clock) -> TransportService:
    return TransportService(sql_repository, InMemoryNotificationEmitter(), clock=clock)


async def test_add_and_load(sql_service, sql_repository) -> None:
    created = await sql_service.create_booking(booking_create())

    loaded = await sql_repository.get(created.id)

    assert loaded.id == created.id
    assert loaded.tracking_id == created.tracking_id
    assert loaded.status == BookingStatus.PENDING
    assert loaded.version == 1
    assert loaded.from_location == created.from_location
    assert loaded.cancellation_request is None
    assert [step.step for step in loaded.tracking_steps] == ["order_placed"]

    by_tracking = await sql_repository.get_by_tracking_id(created.tracking_id)
    assert by_tracking.id == created.id


async def test_missing_booking(sql_repository) -> None:
    with pytest.raises(NotFoundError):
        await sql_repository.get("BK-MISSING")
    with pytest.raises(NotFoundError):
        await sql_repository.get_by_tracking_id("TRK-MISSING")


async def test_stale_version_is_rejected(sql_service, sql_repository) -> None:
    created = await sql_service.create_booking(booking_create())
    await sql_service.confirm_booking(created.id, ADMIN.id)

    stale = created.model_copy(update={"version": 2, "customer_name": "Overwritten"})
    with pytest.raises(ConcurrentModification) as exc:
        await sql_repository.compare_and_save(stale, expected_version=1)

    assert exc.value.expected_version == 1
    assert exc.value.actual_version == 2
    loaded = await sql_repository.get(created.id)
    assert loaded.customer_name == created.customer_name
    assert loaded.status == BookingStatus.CONFIRMED


async def test_lifecycle_persists_steps_in_order(sql_service, sql_repository, session_factory) -> None:
    booking = await sql_service.create_booking(booking_create())
    await sql_service.confirm_booking(booking.id, ADMIN.id)
    await sql_service.assign_driver(booking.id, DRIVER.id, ADMIN.id)
    await sql_service.accept_order(booking.id, ADMIN.id)
    await sql_service.update_delivery_status(booking.id, DRIVER.id, "pickup_started", location="Nashik")
    await sql_service.request_cancellation(booking.id, CUSTOMER.id, "Delay")
    await sql_service.review_cancellation(booking.id, ADMIN.id, ReviewAction.DENY, notes="Loaded")

    loaded = await sql_repository.get(booking.id)
    assert loaded.status == BookingStatus.PICKUP_STARTED
    assert loaded.driver_id == DRIVER.id
    assert loaded.version == 7
    assert loaded.cancellation_request.status == "denied"
    assert loaded.cancellation_request.prior_status == BookingStatus.PICKUP_STARTED
    assert loaded.cancellation_request.review_notes == "Loaded"
    assert [step.step for step in loaded.tracking_steps] == [
        "order_placed",
        "confirmed",
        "driver_assigned",
        "order_accepted",
        "pickup_started",
        "cancellation_requested",
        "cancellation_denied",
    ]

    async with session_factory() as session:
        positions = (
            await session.scalars(
                select(BookingTrackingStep.position)
                .where(BookingTrackingStep.booking_id == booking.id)
                .order_by(BookingTrackingStep.position)
            )
        ).all()
    assert positions == list(range(7))


async def test_list_filters(sql_service, sql_repository) -> None:
    first = await sql_service.create_booking(booking_create())
    second = await sql_service.create_booking(booking_create())
    await sql_service.create_booking(booking_create(customer_id="cust-2"))
    await sql_service.confirm_booking(first.id, ADMIN.id)
    await sql_service.assign_driver(first.id, DRIVER.id, ADMIN.id)

    mine = await sql_service.list_customer_bookings(CUSTOMER.id)
    assert [booking.id for booking in mine] == [second.id, first.id]

    assigned = await sql_service.list_driver_bookings(DRIVER.id)
    assert [booking.id for booking in assigned] == [first.id]

    confirmed = await sql_repository.list_bookings(status=BookingStatus.CONFIRMED)
    assert [booking.id for booking in confirmed] == [first.id]


async def test_current_location_is_persisted(sql_service, sql_repository) -> None:
    created = await sql_service.create_booking(booking_create())
    await sql_service.confirm_booking(created.id, ADMIN.id)
    await sql_service.assign_driver(created.id, DRIVER.id, ADMIN.id)
    accepted = await sql_service.accept_order(created.id, ADMIN.id)

    updated = await sql_service.update_current_location(created.id, DRIVER.id, 19.99, 73.78)

    loaded = await sql_repository.get(created.id)
    assert loaded.current_location == updated.current_location
    assert loaded.version == accepted.version + 1
    assert len(loaded.tracking_steps) == len(accepted.tracking_steps)

    everything = await sql_service.list_bookings()
    assert [booking.id for booking in everything] == [created.id]


async def test_tracking_steps_are_append_only(sql_service, session_factory) -> None:
    register_immutability_enforcement()
    booking = await sql_service.create_booking(booking_create())

    async with session_factory() as session:
        step = await session.scalar(
            select(BookingTrackingStep).where(BookingTrackingStep.booking_id == booking.id)
        )
        step.notes = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            await session.flush()
        await session.rollback()

    async with session_factory() as session:
        step = await session.scalar(
            select(BookingTrackingStep).where(BookingTrackingStep.booking_id == booking.id)
        )
        await session.delete(step)
        with pytest.raises(ImmutabilityViolationError):
            await session.flush()
        await session.rollback()


async def test_slow_storage_is_reported_unavailable() -> None:
    @asynccontextmanager
    async def slow_session():
        await asyncio.sleep(1)
        yield None

    repository = SqlAlchemyBookingRepository(slow_session, timeout=0.01)

    with pytest.raises(RepositoryUnavailable) as exc:
        await repository.get("BK-ANY")

    assert exc.value.status_code == 503
