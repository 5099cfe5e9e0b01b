"""
Pydantic schemas for slots API.
"""

from datetime import date
from pydantic import BaseModel, Field


class TimeSlot(BaseModel):
    """A candidate start time and whether it can still be booked."""
    time: str  # "HH:MM"
    available: bool
    capacity_remaining: int = 0

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    """Slots of one service on one day."""
    service_id: int
    date: date
    slots: list[TimeSlot]
    slot_step_minutes: int = Field(description="Grid step in minutes (15/30/60)")

    model_config = {"from_attributes": True}


class InvalidateRequest(BaseModel):
    """Manual availability cache invalidation (admin)."""
    service_id: int | None = None
    dates: list[date] | None = None


class InvalidateResponse(BaseModel):
    tags: list[str]
    deleted_keys: int


class CacheHealthResponse(BaseModel):
    enabled: bool
    hits: int = 0
    misses: int = 0
    errors: int = 0
    hit_rate: float = 0.0
    background_refreshes: int = 0
