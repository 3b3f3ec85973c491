"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import transport

api_router = APIRouter()

# Transport bookings
api_router.include_router(transport.router, prefix="/transport", tags=["Transport"])
