from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.cache import invalidate_service_slots
from app.crud import service_crud
from app.deps import can_manage_services
from app.exceptions import ServiceNotFound
from app.models import ServiceCategory
from app.schemas import ServiceCreate, ServiceFilters, ServiceResponse, ServiceUpdate

router = APIRouter(prefix="/services", tags=["services"])


@router.get("/", response_model=list[ServiceResponse])
async def list_services(filters: ServiceFilters = Depends()) -> list[ServiceResponse]:
    return await service_crud.list_services(filters)


@router.get("/available", response_model=list[ServiceResponse])
async def list_bookable_services() -> list[ServiceResponse]:
    """Active services that customers can currently book."""
    return await service_crud.list_bookable_services()


@router.get("/category/{category}", response_model=list[ServiceResponse])
async def list_services_by_category(category: ServiceCategory) -> list[ServiceResponse]:
    return await service_crud.list_services_by_category(category)


async def _get_or_raise(service_id: UUID) -> ServiceResponse:
    service = await service_crud.get_service(service_id)
    if not service:
        raise ServiceNotFound()
    return service


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: UUID) -> ServiceResponse:
    return await _get_or_raise(service_id)


@router.post(
    "/",
    response_model=ServiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_manage_services)],
)
async def create_service(payload: ServiceCreate) -> ServiceResponse:
    return await service_crud.create_service(payload)


@router.put(
    "/{service_id}",
    response_model=ServiceResponse,
    dependencies=[Depends(can_manage_services)],
)
async def update_service(service_id: UUID, payload: ServiceUpdate) -> ServiceResponse:
    before = await _get_or_raise(service_id)
    updated = await service_crud.update_service(service_id, payload)
    # cached grids depend on name, duration and bookability
    await invalidate_service_slots(before.name)
    if updated.name != before.name:
        await invalidate_service_slots(updated.name)
    return updated


@router.delete(
    "/{service_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(can_manage_services)],
)
async def delete_service(service_id: UUID) -> None:
    before = await _get_or_raise(service_id)
    await service_crud.delete_service(service_id)
    await invalidate_service_slots(before.name)
