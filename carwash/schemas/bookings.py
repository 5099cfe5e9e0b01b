# carwash/schemas/bookings.py

import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..models.tables import BookingStatus, PaymentStatus

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class BookingCreate(BaseModel):
    service_id: int
    date: date
    start_time: str = Field(description="Time in HH:MM format")

    customer_name: str = Field(min_length=1, max_length=200)
    customer_email: EmailStr
    customer_phone: str = Field(min_length=5, max_length=32)

    vehicle_type: Optional[str] = None
    license_plate: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        """Validate time format."""
        if not TIME_RE.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("customer_phone")
    @classmethod
    def normalize_phone(cls, v: str) -> str:
        """Strip formatting, keep a leading +."""
        v = v.strip()
        if v.startswith("+"):
            return "+" + re.sub(r"\D", "", v[1:])
        return re.sub(r"\D", "", v)


class BookingRead(BaseModel):
    id: int

    service_id: int
    date: date
    start_time: str
    end_time: str
    duration_minutes: int
    price_cents: int

    status: BookingStatus
    payment_status: PaymentStatus
    confirmation_code: str

    customer_name: str
    customer_email: str
    customer_phone: str
    vehicle_type: Optional[str] = None
    license_plate: Optional[str] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ServiceRead(BaseModel):
    id: int
    name: str
    duration_minutes: int
    price_cents: int
    capacity: int

    model_config = {"from_attributes": True}


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    admin_notes: Optional[str] = None
    changed_by: Optional[str] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None
    customer_initiated: bool = False


class BookingReschedule(BaseModel):
    date: date
    start_time: str

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        if not TIME_RE.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v


class BookingFilters(BaseModel):
    service_id: Optional[int] = None
    customer_email: Optional[str] = None
    status: Optional[list[BookingStatus]] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: int = Field(50, ge=1, le=200)
    offset: int = Field(0, ge=0)


class DailyStats(BaseModel):
    date: date
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int
    no_show: int
    revenue_cents: int
    average_booking_value_cents: int
