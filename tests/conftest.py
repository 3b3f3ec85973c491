"""Shared test configuration and fixtures.

- AnyIO is the async runner (@pytest.mark.anyio, asyncio backend).
- Services run on the in-memory repository and emitter unless a test
  builds its own; HTTP tests go through the local ASGI app.
"""

import os

os.environ.setdefault("REPOSITORY_BACKEND", "memory")
os.environ.setdefault("NOTIFICATION_BACKEND", "memory")

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import pytest

from app.domain.booking import Actor, Booking, CancellationRequest, TrackingStep
from app.domain.booking_state import ActorRole, BookingStatus
from app.repositories.booking_repository import InMemoryBookingRepository
from app.schemas.transport import BookingCreate, LocationSchema
from app.services.notification_service import InMemoryNotificationEmitter
from app.services.transport_service import TransportService

ADMIN = Actor(id="admin-1", role=ActorRole.ADMIN)
CUSTOMER = Actor(id="cust-1", role=ActorRole.CUSTOMER)
DRIVER = Actor(id="D7", role=ActorRole.DRIVER)
OTHER_DRIVER = Actor(id="D9", role=ActorRole.DRIVER)

# Canonical forward path, in order; the driver steps are reported by DRIVER.
DRIVER_PATH = [
    BookingStatus.PICKUP_STARTED,
    BookingStatus.ORDER_PICKED_UP,
    BookingStatus.IN_TRANSIT,
    BookingStatus.DELIVERED,
]


class TickingClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 8, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force AnyIO to use the asyncio event loop."""
    return "asyncio"


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def repository() -> InMemoryBookingRepository:
    return InMemoryBookingRepository()


@pytest.fixture
def emitter() -> InMemoryNotificationEmitter:
    return InMemoryNotificationEmitter()


@pytest.fixture
def service(repository, emitter, clock) -> TransportService:
    return TransportService(repository, emitter, clock=clock)


def booking_create(customer_id: str = CUSTOMER.id) -> BookingCreate:
    return BookingCreate(
        customer_id=customer_id,
        customer_name="Ramesh Patil",
        from_location=LocationSchema(state="Maharashtra", district="Nashik", city="Nashik", pinCode="422001"),
        to_location=LocationSchema(state="Maharashtra", district="Pune", city="Pune"),
        distance=210.0,
        final_amount=5400.0,
        cargo_description="Onions, 40 bags",
    )


@pytest.fixture
def make_booking() -> Callable[..., Booking]:
    """Build a booking snapshot directly in any status (no repository involved)."""

    def _make(
        status: BookingStatus = BookingStatus.PENDING,
        driver_id: str | None = None,
        cancellation_request: CancellationRequest | None = None,
        booking_id: str = "BK-20260301-TEST0001",
        version: int = 1,
    ) -> Booking:
        now = datetime(2026, 3, 1, 7, 0, tzinfo=UTC)
        return Booking(
            id=booking_id,
            tracking_id=f"TRK-{booking_id[-8:]}",
            customer_id=CUSTOMER.id,
            customer_name="Ramesh Patil",
            driver_id=driver_id,
            status=status,
            tracking_steps=(TrackingStep(step="order_placed", timestamp=now, actor_id=CUSTOMER.id),),
            cancellation_request=cancellation_request,
            version=version,
            created_at=now,
            updated_at=now,
        )

    return _make


@pytest.fixture
def seed_booking(repository, make_booking) -> Callable[..., Awaitable[Booking]]:
    """Store a booking directly in the given status."""

    async def _seed(status: BookingStatus, driver_id: str | None = None, **kwargs) -> Booking:
        return await repository.add(make_booking(status=status, driver_id=driver_id, **kwargs))

    return _seed


@pytest.fixture
def drive_to(service) -> Callable[[BookingStatus], Awaitable[Booking]]:
    """Create a booking and walk it along the forward path up to ``target``."""

    async def _drive(target: BookingStatus, driver_id: str = DRIVER.id) -> Booking:
        booking = await service.create_booking(booking_create())
        if target == BookingStatus.PENDING:
            return booking

        booking = await service.confirm_booking(booking.id, ADMIN.id)
        if target == BookingStatus.CONFIRMED:
            return booking

        await service.assign_driver(booking.id, driver_id, ADMIN.id)
        booking = await service.accept_order(booking.id, ADMIN.id)
        if target == BookingStatus.ORDER_ACCEPTED:
            return booking

        for status in DRIVER_PATH:
            booking = await service.update_delivery_status(
                booking.id, driver_id, status.value, location="Nashik APMC"
            )
            if target == status:
                return booking

        booking = await service.complete_booking(booking.id, ADMIN.id)
        assert target == BookingStatus.COMPLETED
        return booking

    return _drive
