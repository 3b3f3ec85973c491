"""Transport booking endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import (
    CurrentActor,
    Service,
    require_admin,
    require_admin_or_driver,
    require_customer,
    require_driver,
)
from app.core.exceptions import AuthorizationError
from app.domain.booking import Actor, Booking
from app.domain.booking_state import ActorRole, BookingStatus
from app.schemas.transport import (
    AssignDriverRequest,
    AvailableTransitionsResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    CancellationRequestCreate,
    CancellationReview,
    CurrentLocationUpdate,
    DeliveryStatusUpdate,
    UnassignDriverRequest,
)

router = APIRouter()


def ensure_booking_access(booking: Booking, actor: Actor) -> None:
    """Customers see their own bookings, drivers the ones assigned to them."""
    if actor.role == ActorRole.ADMIN:
        return
    if actor.role == ActorRole.CUSTOMER and booking.customer_id == actor.id:
        return
    if actor.role == ActorRole.DRIVER and booking.driver_id == actor.id:
        return
    raise AuthorizationError("You don't have permission to access this booking")


def to_list_response(bookings: list[Booking]) -> BookingListResponse:
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(booking) for booking in bookings],
        total=len(bookings),
    )


# ==================== INTAKE & QUERIES ====================


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreate,
    actor: CurrentActor,
    service: Service,
) -> Booking:
    """Place a transport booking (customer for themselves, or admin on their behalf)."""
    if actor.role == ActorRole.DRIVER:
        raise AuthorizationError("Drivers cannot place bookings")
    if actor.role == ActorRole.CUSTOMER and request.customer_id != actor.id:
        raise AuthorizationError("Customers can only place bookings for themselves")
    return await service.create_booking(request)


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    actor: Annotated[Actor, Depends(require_admin)],
    service: Service,
    status_filter: BookingStatus | None = Query(None, alias="status"),
) -> BookingListResponse:
    """List all bookings, newest first (admin only)."""
    return to_list_response(await service.list_bookings(status_filter))


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    actor: CurrentActor,
    service: Service,
) -> Booking:
    """Get a booking by ID."""
    booking = await service.get_booking(booking_id)
    ensure_booking_access(booking, actor)
    return booking


@router.get("/track/{tracking_id}", response_model=BookingResponse)
async def track_booking(
    tracking_id: str,
    actor: CurrentActor,
    service: Service,
) -> Booking:
    """Look up a booking by its public tracking reference."""
    booking = await service.track(tracking_id)
    ensure_booking_access(booking, actor)
    return booking


@router.get("/customers/{customer_id}/bookings", response_model=BookingListResponse)
async def list_customer_bookings(
    customer_id: str,
    actor: CurrentActor,
    service: Service,
) -> BookingListResponse:
    """List a customer's bookings, newest first."""
    if actor.role != ActorRole.ADMIN and not (
        actor.role == ActorRole.CUSTOMER and actor.id == customer_id
    ):
        raise AuthorizationError("You can only list your own bookings")
    return to_list_response(await service.list_customer_bookings(customer_id))


@router.get("/drivers/{driver_id}/bookings", response_model=BookingListResponse)
async def list_driver_bookings(
    driver_id: str,
    actor: CurrentActor,
    service: Service,
) -> BookingListResponse:
    """List bookings assigned to a driver."""
    if actor.role != ActorRole.ADMIN and not (
        actor.role == ActorRole.DRIVER and actor.id == driver_id
    ):
        raise AuthorizationError("You can only list your own assignments")
    return to_list_response(await service.list_driver_bookings(driver_id))


@router.get("/cancellations/pending", response_model=BookingListResponse)
async def list_pending_cancellations(
    actor: Annotated[Actor, Depends(require_admin_or_driver)],
    service: Service,
    driver_id: str | None = Query(None),
) -> BookingListResponse:
    """List bookings awaiting a cancellation review.

    Drivers only ever see requests on their own assignments.
    """
    if actor.role == ActorRole.DRIVER:
        driver_id = actor.id
    return to_list_response(await service.list_pending_cancellations(driver_id))


@router.get("/bookings/{booking_id}/transitions", response_model=AvailableTransitionsResponse)
async def get_available_transitions(
    booking_id: str,
    actor: CurrentActor,
    service: Service,
) -> AvailableTransitionsResponse:
    """Actions the caller may take on the booking right now."""
    booking, transitions = await service.available_transitions(booking_id, actor)
    ensure_booking_access(booking, actor)
    return AvailableTransitionsResponse(
        booking_id=booking.id,
        status=booking.status,
        version=booking.version,
        transitions=transitions,
    )


# ==================== ADMIN ACTIONS ====================


@router.post("/bookings/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str,
    actor: Annotated[Actor, Depends(require_admin)],
    service: Service,
) -> Booking:
    """Confirm a pending booking (admin only)."""
    return await service.confirm_booking(booking_id, actor.id)


@router.post("/bookings/{booking_id}/assign-driver", response_model=BookingResponse)
async def assign_driver(
    booking_id: str,
    request: AssignDriverRequest,
    actor: Annotated[Actor, Depends(require_admin)],
    service: Service,
) -> Booking:
    """Assign a driver to a confirmed booking (admin only)."""
    return await service.assign_driver(booking_id, request.driver_id, actor.id)


@router.post("/bookings/{booking_id}/unassign-driver", response_model=BookingResponse)
async def unassign_driver(
    booking_id: str,
    request: UnassignDriverRequest,
    actor: Annotated[Actor, Depends(require_admin)],
    service: Service,
) -> Booking:
    """Release the driver of a booking that has not been accepted yet (admin only)."""
    return await service.unassign_driver(booking_id, actor.id, request.notes)


@router.post("/bookings/{booking_id}/accept", response_model=BookingResponse)
async def accept_order(
    booking_id: str,
    actor: Annotated[Actor, Depends(require_admin)],
    service: Service,
) -> Booking:
    """Accept the order once a driver is assigned (admin only)."""
    return await service.accept_order(booking_id, actor.id)


# ==================== DRIVER ACTIONS ====================


@router.post("/bookings/{booking_id}/delivery-status", response_model=BookingResponse)
async def update_delivery_status(
    booking_id: str,
    request: DeliveryStatusUpdate,
    actor: Annotated[Actor, Depends(require_driver)],
    service: Service,
) -> Booking:
    """Report fulfillment progress (assigned driver only)."""
    return await service.update_delivery_status(
        booking_id,
        actor.id,
        request.step,
        location=request.location,
        notes=request.notes,
    )


@router.patch("/bookings/{booking_id}/location", response_model=BookingResponse)
async def update_current_location(
    booking_id: str,
    request: CurrentLocationUpdate,
    actor: Annotated[Actor, Depends(require_driver)],
    service: Service,
) -> Booking:
    """Report the live position of the vehicle (assigned driver only)."""
    return await service.update_current_location(
        booking_id,
        actor.id,
        request.latitude,
        request.longitude,
        address=request.address,
    )


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    actor: Annotated[Actor, Depends(require_admin_or_driver)],
    service: Service,
) -> Booking:
    """Mark a delivered booking as completed."""
    return await service.complete_booking(booking_id, actor.id, actor.role)


# ==================== CANCELLATION ====================


@router.post("/bookings/{booking_id}/cancellation", response_model=BookingResponse)
async def request_cancellation(
    booking_id: str,
    request: CancellationRequestCreate,
    actor: Annotated[Actor, Depends(require_customer)],
    service: Service,
) -> Booking:
    """Request cancellation of an in-flight booking (owning customer only)."""
    return await service.request_cancellation(booking_id, actor.id, request.reason)


@router.post("/bookings/{booking_id}/cancellation/review", response_model=BookingResponse)
async def review_cancellation(
    booking_id: str,
    request: CancellationReview,
    actor: Annotated[Actor, Depends(require_admin_or_driver)],
    service: Service,
) -> Booking:
    """Approve or deny a pending cancellation request."""
    return await service.review_cancellation(
        booking_id,
        actor.id,
        request.action,
        notes=request.notes,
        reviewer_role=actor.role,
    )
