from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from app import settings
from app.exceptions import ServiceNotFound
from app.models import Booking, BookingStatus, Service
from app.schemas import TimeSlot

# Statuses that no longer hold their time window
INACTIVE_STATUSES = [BookingStatus.CANCELLED, BookingStatus.NO_SHOW]


def parse_hhmm(value: str) -> int:
    """'HH:MM' -> minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class SlotGrid:
    """Candidate start times offered to customers on any given day."""

    open_time: str = "09:00"
    close_time: str = "17:00"
    step_minutes: int = 60

    def __post_init__(self) -> None:
        if self.step_minutes <= 0:
            raise ValueError("step_minutes must be positive")
        if parse_hhmm(self.close_time) <= parse_hhmm(self.open_time):
            raise ValueError("close_time must be after open_time")

    def start_times(self) -> list[int]:
        return list(
            range(parse_hhmm(self.open_time), parse_hhmm(self.close_time), self.step_minutes)
        )

    @classmethod
    def from_settings(cls) -> SlotGrid:
        return cls(
            open_time=settings.BUSINESS_DAY_START,
            close_time=settings.BUSINESS_DAY_END,
            step_minutes=settings.SLOT_STEP_MINUTES,
        )


def _overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    return start < other_end and end > other_start


def compute_slots(
    grid: SlotGrid,
    duration: int,
    bookings: Iterable[tuple[str, int]],
) -> list[TimeSlot]:
    """
    Flag every grid start time as free or taken.

    `duration` is the length of the service being asked about; each entry of
    `bookings` is (booking_time, stored duration) of an active booking on the
    same service and day. A slot [S, S+duration) is taken when it overlaps any
    booking window [B, B+Db). Slots may run past closing time.
    """
    windows = [
        (parse_hhmm(time), parse_hhmm(time) + booked_duration)
        for time, booked_duration in bookings
    ]
    slots = []
    for start in grid.start_times():
        end = start + duration
        taken = any(_overlaps(start, end, b_start, b_end) for b_start, b_end in windows)
        slots.append(TimeSlot(time=format_hhmm(start), available=not taken))
    return slots


def find_slot(slots: Iterable[TimeSlot], time: str) -> TimeSlot | None:
    return next((s for s in slots if s.time == time), None)


class AvailabilityEngine:
    def __init__(self, grid: SlotGrid) -> None:
        self.grid = grid

    async def resolve_service(self, name: str, *, for_update: bool = False) -> Service:
        """Return the bookable service called `name` or raise ServiceNotFound."""
        qs = Service.filter(name=name, is_active=True, is_available_for_booking=True)
        if for_update:
            qs = qs.select_for_update()
        service = await qs.first()
        if service is None:
            raise ServiceNotFound(name)
        return service

    async def active_windows(
        self,
        service_id: UUID,
        booking_date: date,
        exclude_id: UUID | None = None,
    ) -> list[tuple[str, int]]:
        qs = Booking.filter(
            service_id=service_id,
            booking_date=booking_date,
            status__not_in=INACTIVE_STATUSES,
        )
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return await qs.values_list("booking_time", "duration")

    async def slots_for(
        self,
        service: Service,
        booking_date: date,
        exclude_id: UUID | None = None,
    ) -> list[TimeSlot]:
        windows = await self.active_windows(service.id, booking_date, exclude_id)
        return compute_slots(self.grid, service.estimated_duration, windows)

    async def get_available_slots(
        self, service_name: str, booking_date: date
    ) -> list[TimeSlot]:
        service = await self.resolve_service(service_name)
        return await self.slots_for(service, booking_date)


availability_engine = AvailabilityEngine(SlotGrid.from_settings())
