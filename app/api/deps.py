"""API dependencies for caller identity and service wiring."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header

from app.config import settings
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.database import AsyncSessionLocal
from app.domain.booking import Actor
from app.domain.booking_state import ActorRole
from app.repositories.booking_repository import (
    BookingRepository,
    InMemoryBookingRepository,
    SqlAlchemyBookingRepository,
)
from app.services.notification_service import create_notification_emitter
from app.services.transport_service import TransportService


@lru_cache
def get_transport_service() -> TransportService:
    """Get the process-wide transport service."""
    repository: BookingRepository
    if settings.repository_backend == "memory":
        repository = InMemoryBookingRepository()
    else:
        repository = SqlAlchemyBookingRepository(
            AsyncSessionLocal, timeout=settings.repository_timeout_seconds
        )
    return TransportService(repository, create_notification_emitter())


async def get_actor(
    actor_id: Annotated[str | None, Header(alias="X-Actor-Id")] = None,
    actor_role: Annotated[str | None, Header(alias="X-Actor-Role")] = None,
) -> Actor:
    """Get the caller identity forwarded by the authentication gateway."""
    if not actor_id or not actor_role:
        raise AuthenticationError("X-Actor-Id and X-Actor-Role headers are required")
    try:
        role = ActorRole(actor_role.lower())
    except ValueError:
        raise AuthenticationError(f"Unknown actor role '{actor_role}'") from None
    return Actor(id=actor_id, role=role)


class RoleChecker:
    """Check that the caller acts in one of the allowed roles."""

    def __init__(self, *roles: ActorRole):
        self.roles = frozenset(roles)

    async def __call__(self, actor: Annotated[Actor, Depends(get_actor)]) -> Actor:
        if actor.role not in self.roles:
            allowed = " or ".join(sorted(role.value for role in self.roles))
            raise AuthorizationError(f"{allowed.capitalize()} access required")
        return actor


require_admin = RoleChecker(ActorRole.ADMIN)
require_driver = RoleChecker(ActorRole.DRIVER)
require_customer = RoleChecker(ActorRole.CUSTOMER)
require_admin_or_driver = RoleChecker(ActorRole.ADMIN, ActorRole.DRIVER)

CurrentActor = Annotated[Actor, Depends(get_actor)]
Service = Annotated[TransportService, Depends(get_transport_service)]
