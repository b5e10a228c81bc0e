from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from loguru import logger
from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from app.availability import (
    INACTIVE_STATUSES,
    AvailabilityEngine,
    availability_engine,
    compute_slots,
    find_slot,
)
from app.exceptions import (
    BookingNotFound,
    ServiceAlreadyExists,
    ServiceNotFound,
    SlotUnavailable,
)
from app.lifecycle import apply_status
from app.models import Booking, BookingStatus, Service
from app.schemas import (
    BookingCreate,
    BookingFilters,
    BookingResponse,
    BookingStats,
    BookingUpdate,
    ServiceCreate,
    ServiceFilters,
    ServiceResponse,
    ServiceUpdate,
    TimeSlot,
)


def _booking(inst: Booking) -> BookingResponse:
    return BookingResponse.model_validate(inst, from_attributes=True)


def _service(inst: Service) -> ServiceResponse:
    return ServiceResponse.model_validate(inst, from_attributes=True)


class ServiceCRUD:
    async def create_service(self, payload: ServiceCreate) -> ServiceResponse:
        try:
            inst = await Service.create(**payload.model_dump())
        except IntegrityError:
            raise ServiceAlreadyExists() from None
        logger.info("Service created: {} ({})", inst.name, inst.id)
        return _service(inst)

    async def get_service(self, service_id: UUID) -> ServiceResponse | None:
        inst = await Service.get_or_none(id=service_id)
        return _service(inst) if inst else None

    async def list_services(self, filters: ServiceFilters) -> list[ServiceResponse]:
        qs = Service.all()
        if filters.category is not None:
            qs = qs.filter(category=filters.category)
        if filters.is_active is not None:
            qs = qs.filter(is_active=filters.is_active)
        if filters.search:
            qs = qs.filter(
                Q(name__icontains=filters.search)
                | Q(description__icontains=filters.search)
            )

        offset = (filters.page - 1) * filters.page_size
        services = await qs.order_by("name").offset(offset).limit(filters.page_size)
        return [_service(s) for s in services]

    async def update_service(
        self, service_id: UUID, payload: ServiceUpdate
    ) -> ServiceResponse:
        inst = await Service.get_or_none(id=service_id)
        if not inst:
            raise ServiceNotFound()
        changes = payload.model_dump(exclude_unset=True)
        inst.update_from_dict(changes)
        try:
            await inst.save()
        except IntegrityError:
            raise ServiceAlreadyExists() from None
        return _service(inst)

    async def delete_service(self, service_id: UUID) -> None:
        """Soft delete: the service stops being offered, history stays intact."""
        updated = await Service.filter(id=service_id).update(is_active=False)
        if not updated:
            raise ServiceNotFound()
        logger.info("Service deactivated: {}", service_id)

    async def list_bookable_services(self) -> list[ServiceResponse]:
        services = await Service.filter(
            is_active=True, is_available_for_booking=True
        ).order_by("name")
        return [_service(s) for s in services]

    async def list_services_by_category(self, category: str) -> list[ServiceResponse]:
        services = await Service.filter(category=category, is_active=True).order_by(
            "name"
        )
        return [_service(s) for s in services]


class BookingCRUD:
    def __init__(self, engine: AvailabilityEngine) -> None:
        self.engine = engine

    async def get_available_slots(
        self, service_name: str, booking_date: date
    ) -> list[TimeSlot]:
        return await self.engine.get_available_slots(service_name, booking_date)

    async def create_booking(
        self,
        payload: BookingCreate,
        user_id: UUID | None = None,
    ) -> BookingResponse:
        """
        Persist a new pending booking after re-checking availability.

        The service row is locked for the duration of the transaction, so two
        requests for the same service serialise on the check-then-insert
        instead of both passing the availability check.
        """
        async with in_transaction():
            service = await self.engine.resolve_service(payload.service, for_update=True)
            slots = await self.engine.slots_for(service, payload.booking_date)
            slot = find_slot(slots, payload.booking_time)
            if slot is None or not slot.available:
                raise SlotUnavailable(payload.booking_date, payload.booking_time)

            inst = await Booking.create(
                user_id=user_id,
                service=service,
                service_name=service.name,
                service_type=payload.service_type,
                booking_date=payload.booking_date,
                booking_time=payload.booking_time,
                duration=service.estimated_duration,
                priority=payload.priority,
                customer_name=payload.customer_name,
                customer_phone=payload.customer_phone,
                customer_email=payload.customer_email,
                service_address=payload.service_address,
                service_description=payload.service_description,
                special_instructions=payload.special_instructions,
                estimated_cost=service.base_price,
            )

        logger.info(
            "Booking created: id={} service={} at {} {}",
            inst.id,
            service.name,
            inst.booking_date,
            inst.booking_time,
        )
        return _booking(inst)

    async def _get_or_raise(self, booking_id: UUID) -> Booking:
        inst = await Booking.get_or_none(id=booking_id)
        if not inst:
            raise BookingNotFound()
        return inst

    async def get_booking(
        self,
        booking_id: UUID,
        user_id: UUID | None = None,
    ) -> BookingResponse | None:
        if user_id is not None:
            inst = await Booking.get_or_none(id=booking_id, user_id=user_id)
        else:
            inst = await Booking.get_or_none(id=booking_id)

        if not inst:
            return None
        return _booking(inst)

    async def list_bookings(
        self,
        filters: BookingFilters,
        user_id: UUID | None = None,
    ) -> list[BookingResponse]:
        qs = Booking.all()

        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if filters.status is not None:
            qs = qs.filter(status=filters.status)
        if filters.service_type is not None:
            qs = qs.filter(service_type=filters.service_type)
        if filters.customer_email:
            qs = qs.filter(customer_email__icontains=filters.customer_email)
        if filters.assigned_technician:
            qs = qs.filter(assigned_technician=filters.assigned_technician)
        if filters.date_from is not None:
            qs = qs.filter(booking_date__gte=filters.date_from)
        if filters.date_to is not None:
            qs = qs.filter(booking_date__lte=filters.date_to)

        offset = (filters.page - 1) * filters.page_size
        qs = qs.order_by("-booking_date", "-booking_time")
        bookings = await qs.offset(offset).limit(filters.page_size)
        return [_booking(b) for b in bookings]

    async def get_customer_bookings(self, customer_email: str) -> list[BookingResponse]:
        bookings = await Booking.filter(customer_email=customer_email).order_by(
            "-booking_date", "-booking_time"
        )
        return [_booking(b) for b in bookings]

    async def update_booking(
        self, booking_id: UUID, payload: BookingUpdate
    ) -> BookingResponse:
        """Staff edit. Moving a booking re-checks the target window."""
        changes = payload.model_dump(exclude_unset=True, exclude={"status"})
        new_status = payload.status

        async with in_transaction():
            inst = await Booking.filter(id=booking_id).select_for_update().first()
            if not inst:
                raise BookingNotFound()

            new_date = changes.get("booking_date", inst.booking_date)
            new_time = changes.get("booking_time", inst.booking_time)
            moved = (new_date, new_time) != (inst.booking_date, inst.booking_time)
            # inactive bookings hold no slot
            if moved and (new_status or inst.status) not in INACTIVE_STATUSES:
                await self._assert_can_move(inst, new_date, new_time)

            inst.update_from_dict(changes)
            if new_status is not None and new_status != inst.status:
                apply_status(inst, new_status)
            await inst.save()

        logger.info("Booking updated: id={} fields={}", booking_id, sorted(changes))
        return _booking(inst)

    async def _assert_can_move(self, inst: Booking, new_date: date, new_time: str) -> None:
        service = await Service.filter(id=inst.service_id).select_for_update().first()
        if service is None:
            raise ServiceNotFound()
        windows = await self.engine.active_windows(service.id, new_date, exclude_id=inst.id)
        slot = find_slot(compute_slots(self.engine.grid, inst.duration, windows), new_time)
        if slot is None or not slot.available:
            raise SlotUnavailable(new_date, new_time)

    async def update_booking_status(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
    ) -> BookingResponse:
        inst = await self._get_or_raise(booking_id)
        old_status = inst.status
        changed = apply_status(inst, new_status)
        await inst.save(update_fields=[*changed, "updated_at"])
        logger.info("Booking {} status: {} -> {}", booking_id, old_status, new_status)
        return _booking(inst)

    async def complete_booking(
        self,
        booking_id: UUID,
        actual_cost: Decimal | None = None,
        notes: str | None = None,
    ) -> BookingResponse:
        inst = await self._get_or_raise(booking_id)
        changed = apply_status(inst, BookingStatus.COMPLETED)
        if actual_cost is not None:
            inst.actual_cost = actual_cost
            changed.append("actual_cost")
        if notes is not None:
            inst.notes = notes
            changed.append("notes")
        await inst.save(update_fields=[*changed, "updated_at"])
        logger.info("Booking {} completed", booking_id)
        return _booking(inst)

    async def assign_technician(self, booking_id: UUID, technician: str) -> BookingResponse:
        inst = await self._get_or_raise(booking_id)
        inst.assigned_technician = technician
        await inst.save(update_fields=["assigned_technician", "updated_at"])
        return _booking(inst)

    async def cancel_booking(self, booking_id: UUID) -> BookingResponse:
        inst = await self._get_or_raise(booking_id)
        changed = apply_status(inst, BookingStatus.CANCELLED)
        await inst.save(update_fields=[*changed, "updated_at"])
        logger.info("Booking {} cancelled", booking_id)
        return _booking(inst)

    async def get_bookings_by_date_range(
        self,
        start_date: date,
        end_date: date,
        technician: str | None = None,
    ) -> list[BookingResponse]:
        qs = Booking.filter(
            booking_date__gte=start_date,
            booking_date__lte=end_date,
            status__not_in=INACTIVE_STATUSES,
        )
        if technician:
            qs = qs.filter(assigned_technician=technician)
        bookings = await qs.order_by("booking_date", "booking_time")
        return [_booking(b) for b in bookings]

    async def get_booking_stats(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> BookingStats:
        qs = Booking.all()
        if date_from is not None:
            qs = qs.filter(booking_date__gte=date_from)
        if date_to is not None:
            qs = qs.filter(booking_date__lte=date_to)

        rows = await qs.values("status", "estimated_cost", "actual_cost")
        return aggregate_stats(rows)


def aggregate_stats(rows: list[dict]) -> BookingStats:
    """Counts per status plus revenue (actual cost, else estimate, else 0)."""
    stats = BookingStats(total=len(rows))
    revenue = Decimal("0")
    for row in rows:
        status = BookingStatus(row["status"])
        setattr(stats, status.value, getattr(stats, status.value) + 1)
        cost = row["actual_cost"] if row["actual_cost"] is not None else row["estimated_cost"]
        revenue += Decimal(str(cost)) if cost is not None else Decimal("0")
    stats.revenue = revenue
    return stats


service_crud = ServiceCRUD()
booking_crud = BookingCRUD(availability_engine)
