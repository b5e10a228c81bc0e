from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models import (
    BookingPriority,
    BookingStatus,
    ServiceCategory,
    ServiceType,
)

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str
    category: ServiceCategory
    base_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    estimated_duration: int = Field(ge=15)
    is_active: bool = True
    is_available_for_booking: bool = True
    requirements: list[str] | None = None


class ServiceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: ServiceCategory | None = None
    base_price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    estimated_duration: int | None = Field(default=None, ge=15)
    is_active: bool | None = None
    is_available_for_booking: bool | None = None
    requirements: list[str] | None = None


class ServiceResponse(BaseModel):
    id: UUID
    name: str
    description: str
    category: ServiceCategory
    base_price: Decimal
    estimated_duration: int
    is_active: bool
    is_available_for_booking: bool
    requirements: list[str] | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ServiceFilters(BaseModel):
    """Bind to a FastAPI route via Depends(ServiceFilters)."""

    category: ServiceCategory | None = None
    is_active: bool | None = None
    search: str | None = None

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    service: str = Field(min_length=1, description="Service name")
    service_type: ServiceType
    booking_date: date
    booking_time: str = Field(pattern=TIME_PATTERN)
    customer_name: str = Field(min_length=1, max_length=255)
    customer_phone: str = Field(min_length=1, max_length=50)
    customer_email: str = Field(min_length=3, max_length=255)
    service_address: str = Field(min_length=1)
    service_description: str | None = None
    special_instructions: str | None = None
    priority: BookingPriority = BookingPriority.MEDIUM


class BookingUpdate(BaseModel):
    """Staff-side edit. Any status change still goes through the state machine."""

    status: BookingStatus | None = None
    booking_date: date | None = None
    booking_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    service_description: str | None = None
    special_instructions: str | None = None
    priority: BookingPriority | None = None
    estimated_cost: Decimal | None = Field(default=None, ge=0)
    actual_cost: Decimal | None = Field(default=None, ge=0)
    assigned_technician: str | None = None
    notes: str | None = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingComplete(BaseModel):
    actual_cost: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class TechnicianAssign(BaseModel):
    technician: str = Field(min_length=1, max_length=255)


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID | None
    service_id: UUID
    service_name: str
    service_type: ServiceType
    booking_date: date
    booking_time: str
    duration: int
    status: BookingStatus
    priority: BookingPriority
    customer_name: str
    customer_phone: str
    customer_email: str
    service_address: str
    service_description: str | None
    special_instructions: str | None
    estimated_cost: Decimal | None
    actual_cost: Decimal | None
    assigned_technician: str | None
    notes: str | None
    confirmed_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    status: BookingStatus | None = None
    service_type: ServiceType | None = None
    customer_email: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    assigned_technician: str | None = None

    # Pagination
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)


# ---------------------------------------------------------------------------
# Availability / stats
# ---------------------------------------------------------------------------


class TimeSlot(BaseModel):
    time: str
    available: bool


class AvailabilityResponse(BaseModel):
    service: str
    booking_date: date
    available_slots: list[TimeSlot]


class BookingStats(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    no_show: int = 0
    revenue: Decimal = Decimal("0")
