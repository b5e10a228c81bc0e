from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from app.cache import get_slots_cache, invalidate_slots_cache, set_slots_cache
from app.crud import booking_crud
from app.deps import (
    CurrentUser,
    can_manage_booking,
    can_read_or_manage_booking,
    can_view_all_bookings,
    get_current_user,
    get_optional_user,
)
from app.lifecycle import assert_transition
from app.models import BookingStatus
from app.schemas import (
    AvailabilityResponse,
    BookingComplete,
    BookingCreate,
    BookingFilters,
    BookingResponse,
    BookingStats,
    BookingStatusUpdate,
    BookingUpdate,
    TechnicianAssign,
    TimeSlot,
)
from app.scopes import BookingScope

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Permission helpers
# ---------------------------------------------------------------------------


def _assert_can_set_status(
    booking: BookingResponse,
    new_status: BookingStatus,
    current_user: CurrentUser,
) -> None:
    """
    Raise HTTP 400/403 if the transition is invalid or the caller lacks permission.

    Rules:
      any valid transition          : staff (bookings:manage) or admin writer
      pending/confirmed → cancelled : CANCEL + booker
    """
    assert_transition(booking.status, new_status)

    if current_user.is_staff:
        return

    is_booker = booking.user_id is not None and booking.user_id == current_user.id
    has_cancel = BookingScope.CANCEL in current_user.scopes
    if new_status == BookingStatus.CANCELLED and has_cancel and is_booker:
        return

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=(
            f"Transitioning to '{new_status}' requires '{BookingScope.MANAGE}' scope, "
            f"or '{BookingScope.CANCEL}' scope as the booking owner for cancellations."
        ),
    )


async def _get_visible_booking(booking_id: UUID, current_user: CurrentUser) -> BookingResponse:
    """Staff and read-only admins see every booking, customers only their own."""
    if current_user.sees_all_bookings:
        booking = await booking_crud.get_booking(booking_id)
    else:
        booking = await booking_crud.get_booking(booking_id, user_id=current_user.id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )
    return booking


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/availability/{service_name}", response_model=AvailabilityResponse)
async def check_availability(
    service_name: str,
    booking_date: date = Query(alias="date"),
) -> AvailabilityResponse:
    """Business-hours grid for a service on one day, each slot flagged free/taken."""
    cached = await get_slots_cache(service_name, booking_date)
    if cached is not None:
        logger.debug("Cache hit for slots: {} {}", service_name, booking_date)
        slots = [TimeSlot(**s) for s in cached]
    else:
        logger.debug("Cache miss for slots: {} {}", service_name, booking_date)
        slots = await booking_crud.get_available_slots(service_name, booking_date)
        await set_slots_cache(
            service_name, booking_date, [s.model_dump(mode="json") for s in slots]
        )

    return AvailabilityResponse(
        service=service_name, booking_date=booking_date, available_slots=slots
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    current_user: CurrentUser | None = Depends(get_optional_user),
) -> BookingResponse:
    booking = await booking_crud.create_booking(
        payload, user_id=current_user.id if current_user else None
    )
    await invalidate_slots_cache(booking.service_name, booking.booking_date)
    return booking


# ---------------------------------------------------------------------------
# Listing / reporting
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[BookingResponse])
async def list_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(can_read_or_manage_booking),
) -> list[BookingResponse]:
    if current_user.sees_all_bookings:
        return await booking_crud.list_bookings(filters=filters)
    return await booking_crud.list_bookings(filters=filters, user_id=current_user.id)


@router.get("/my", response_model=list[BookingResponse])
async def list_my_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[BookingResponse]:
    return await booking_crud.list_bookings(filters=filters, user_id=current_user.id)


@router.get(
    "/customer/{email}",
    response_model=list[BookingResponse],
    dependencies=[Depends(can_view_all_bookings)],
)
async def get_customer_bookings(email: str) -> list[BookingResponse]:
    return await booking_crud.get_customer_bookings(email)


@router.get(
    "/calendar/{start_date}/{end_date}",
    response_model=list[BookingResponse],
    dependencies=[Depends(can_view_all_bookings)],
)
async def get_calendar_bookings(
    start_date: date,
    end_date: date,
    technician: str | None = None,
) -> list[BookingResponse]:
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )
    return await booking_crud.get_bookings_by_date_range(start_date, end_date, technician)


@router.get(
    "/stats",
    response_model=BookingStats,
    dependencies=[Depends(can_view_all_bookings)],
)
async def get_booking_stats(
    date_from: date | None = None,
    date_to: date | None = None,
) -> BookingStats:
    return await booking_crud.get_booking_stats(date_from, date_to)


# ---------------------------------------------------------------------------
# Single booking
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(can_read_or_manage_booking),
) -> BookingResponse:
    return await _get_visible_booking(booking_id, current_user)


@router.put(
    "/{booking_id}",
    response_model=BookingResponse,
    dependencies=[Depends(can_manage_booking)],
)
async def update_booking(booking_id: UUID, payload: BookingUpdate) -> BookingResponse:
    before = await booking_crud.get_booking(booking_id)
    if not before:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )
    updated = await booking_crud.update_booking(booking_id, payload)
    await invalidate_slots_cache(
        updated.service_name, before.booking_date, updated.booking_date
    )
    return updated


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> BookingResponse:
    booking = await booking_crud.get_booking(booking_id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )

    _assert_can_set_status(booking, payload.status, current_user)

    updated = await booking_crud.update_booking_status(booking_id, payload.status)
    await invalidate_slots_cache(updated.service_name, updated.booking_date)
    return updated


async def _transition(booking_id: UUID, new_status: BookingStatus) -> BookingResponse:
    updated = await booking_crud.update_booking_status(booking_id, new_status)
    await invalidate_slots_cache(updated.service_name, updated.booking_date)
    return updated


@router.put(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    dependencies=[Depends(can_manage_booking)],
)
async def confirm_booking(booking_id: UUID) -> BookingResponse:
    return await _transition(booking_id, BookingStatus.CONFIRMED)


@router.put(
    "/{booking_id}/start",
    response_model=BookingResponse,
    dependencies=[Depends(can_manage_booking)],
)
async def start_booking(booking_id: UUID) -> BookingResponse:
    return await _transition(booking_id, BookingStatus.IN_PROGRESS)


@router.put(
    "/{booking_id}/complete",
    response_model=BookingResponse,
    dependencies=[Depends(can_manage_booking)],
)
async def complete_booking(
    booking_id: UUID,
    payload: BookingComplete | None = None,
) -> BookingResponse:
    payload = payload or BookingComplete()
    return await booking_crud.complete_booking(
        booking_id, actual_cost=payload.actual_cost, notes=payload.notes
    )


@router.put(
    "/{booking_id}/assign",
    response_model=BookingResponse,
    dependencies=[Depends(can_manage_booking)],
)
async def assign_technician(booking_id: UUID, payload: TechnicianAssign) -> BookingResponse:
    return await booking_crud.assign_technician(booking_id, payload.technician)


@router.delete("/{booking_id}", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> BookingResponse:
    """Cancel a booking. Customers may only cancel their own."""
    booking = await _get_visible_booking(booking_id, current_user)
    _assert_can_set_status(booking, BookingStatus.CANCELLED, current_user)

    cancelled = await booking_crud.cancel_booking(booking_id)
    await invalidate_slots_cache(cancelled.service_name, cancelled.booking_date)
    return cancelled
