"""Endpoint tests for the /services catalog router (CRUD patched, no DB)."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.deps import get_current_user
from app.exceptions import ServiceAlreadyExists, ServiceNotFound
from app.schemas import TimeSlot

from .factories import (
    BOOKING_DATE,
    SERVICE_ID,
    SERVICE_NAME,
    make_customer,
    service_create_payload,
    service_model,
    service_response,
)

CRUD_PATH = "app.routers.service.service_crud"
BOOKING_CRUD_PATH = "app.routers.booking.booking_crud"


class TestPublicCatalog:
    def test_list_services(self, anon_app):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.list_services = AsyncMock(return_value=[service_response()])
            with TestClient(anon_app) as c:
                resp = c.get("/services/", params={"search": "lock", "page_size": 5})
        assert resp.status_code == 200
        assert resp.json()[0]["name"] == SERVICE_NAME
        filters = mock_crud.list_services.call_args.args[0]
        assert filters.search == "lock"
        assert filters.page_size == 5

    def test_available_services(self, anon_app):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.list_bookable_services = AsyncMock(return_value=[service_response()])
            with TestClient(anon_app) as c:
                resp = c.get("/services/available")
        assert resp.status_code == 200
        assert len(resp.json()) == 1

    def test_by_category(self, anon_app):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.list_services_by_category = AsyncMock(return_value=[])
            with TestClient(anon_app) as c:
                resp = c.get("/services/category/repair")
        assert resp.status_code == 200
        mock_crud.list_services_by_category.assert_awaited_once_with("repair")

    def test_unknown_category_returns_422(self, anon_app):
        with TestClient(anon_app) as c:
            resp = c.get("/services/category/plumbing")
        assert resp.status_code == 422

    def test_get_service(self, anon_app):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_service = AsyncMock(return_value=service_model())
            with TestClient(anon_app) as c:
                resp = c.get(f"/services/{SERVICE_ID}")
        assert resp.status_code == 200
        assert resp.json()["estimated_duration"] == 120

    def test_get_missing_service_returns_404(self, anon_app):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_service = AsyncMock(return_value=None)
            with TestClient(anon_app) as c:
                resp = c.get(f"/services/{SERVICE_ID}")
        assert resp.status_code == 404


class TestManageCatalog:
    def test_admin_creates_service(self, admin_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.create_service = AsyncMock(return_value=service_response())
            resp = admin_client.post("/services/", json=service_create_payload())
        assert resp.status_code == 201
        assert resp.json()["id"] == str(SERVICE_ID)

    def test_duplicate_name_returns_409(self, admin_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.create_service = AsyncMock(side_effect=ServiceAlreadyExists())
            resp = admin_client.post("/services/", json=service_create_payload())
        assert resp.status_code == 409

    def test_duration_below_minimum_returns_422(self, admin_client):
        resp = admin_client.post(
            "/services/", json=service_create_payload(estimated_duration=5)
        )
        assert resp.status_code == 422

    def test_update_service(self, admin_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_service = AsyncMock(return_value=service_model())
            mock_crud.update_service = AsyncMock(
                return_value=service_model(base_price="175.00")
            )
            resp = admin_client.put(
                f"/services/{SERVICE_ID}", json={"base_price": "175.00"}
            )
        assert resp.status_code == 200
        payload = mock_crud.update_service.call_args.args[1]
        assert payload.model_dump(exclude_unset=True).keys() == {"base_price"}

    def test_update_missing_service_returns_404(self, admin_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_service = AsyncMock(return_value=None)
            mock_crud.update_service = AsyncMock()
            resp = admin_client.put(f"/services/{SERVICE_ID}", json={"name": "X"})
        assert resp.status_code == 404
        mock_crud.update_service.assert_not_awaited()

    def test_delete_service(self, admin_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_service = AsyncMock(return_value=service_model())
            mock_crud.delete_service = AsyncMock(return_value=None)
            resp = admin_client.delete(f"/services/{SERVICE_ID}")
        assert resp.status_code == 204
        mock_crud.delete_service.assert_awaited_once_with(SERVICE_ID)

    def test_staff_without_services_scope_gets_403(self, staff_client):
        resp = staff_client.post("/services/", json=service_create_payload())
        assert resp.status_code == 403

    def test_customer_cannot_delete(self, anon_app):
        async def _customer():
            return make_customer()

        anon_app.dependency_overrides[get_current_user] = _customer
        with TestClient(anon_app) as c:
            resp = c.delete(f"/services/{SERVICE_ID}")
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Catalog edits vs. cached availability
# ---------------------------------------------------------------------------


class _DictSlotsCache:
    """In-process stand-in for the Redis slots cache, keyed like the real one."""

    def __init__(self):
        self.store: dict[tuple[str, date], list] = {}

    async def get(self, service_name, booking_date):
        return self.store.get((service_name, booking_date))

    async def set(self, service_name, booking_date, slots):
        self.store[(service_name, booking_date)] = slots

    async def invalidate_service(self, service_name):
        for key in [k for k in self.store if k[0] == service_name]:
            del self.store[key]


def _grid() -> list[TimeSlot]:
    return [TimeSlot(time=f"{h:02d}:00", available=True) for h in range(9, 17)]


class TestCatalogEditsRefreshAvailability:
    @pytest.fixture()
    def slots_cache(self):
        fake = _DictSlotsCache()
        with (
            patch("app.routers.booking.get_slots_cache", fake.get),
            patch("app.routers.booking.set_slots_cache", fake.set),
            patch("app.routers.service.invalidate_service_slots", fake.invalidate_service),
        ):
            yield fake

    def _availability(self, client, name=SERVICE_NAME):
        return client.get(
            f"/bookings/availability/{name}",
            params={"date": BOOKING_DATE.isoformat()},
        )

    def test_deactivated_service_stops_serving_cached_grid(self, admin_client, slots_cache):
        with (
            patch(CRUD_PATH) as service_crud,
            patch(BOOKING_CRUD_PATH) as booking_crud,
        ):
            booking_crud.get_available_slots = AsyncMock(return_value=_grid())
            assert self._availability(admin_client).status_code == 200
            assert (SERVICE_NAME, BOOKING_DATE) in slots_cache.store

            service_crud.get_service = AsyncMock(return_value=service_model())
            service_crud.delete_service = AsyncMock(return_value=None)
            assert admin_client.delete(f"/services/{SERVICE_ID}").status_code == 204

            booking_crud.get_available_slots = AsyncMock(
                side_effect=ServiceNotFound(SERVICE_NAME)
            )
            assert self._availability(admin_client).status_code == 404

    def test_duration_change_recomputes_grid(self, admin_client, slots_cache):
        with (
            patch(CRUD_PATH) as service_crud,
            patch(BOOKING_CRUD_PATH) as booking_crud,
        ):
            booking_crud.get_available_slots = AsyncMock(return_value=_grid())
            self._availability(admin_client)

            service_crud.get_service = AsyncMock(return_value=service_model())
            service_crud.update_service = AsyncMock(
                return_value=service_model(estimated_duration=240)
            )
            admin_client.put(f"/services/{SERVICE_ID}", json={"estimated_duration": 240})
            assert slots_cache.store == {}

            self._availability(admin_client)
        assert booking_crud.get_available_slots.await_count == 2

    def test_rename_clears_old_and_new_names(self, admin_client, slots_cache):
        slots_cache.store[(SERVICE_NAME, BOOKING_DATE)] = []
        slots_cache.store[("Lock Fitting", BOOKING_DATE)] = []
        slots_cache.store[("Lock Repair", BOOKING_DATE)] = []
        with patch(CRUD_PATH) as service_crud:
            service_crud.get_service = AsyncMock(return_value=service_model())
            service_crud.update_service = AsyncMock(
                return_value=service_model(name="Lock Fitting")
            )
            resp = admin_client.put(f"/services/{SERVICE_ID}", json={"name": "Lock Fitting"})
        assert resp.status_code == 200
        assert list(slots_cache.store) == [("Lock Repair", BOOKING_DATE)]

    def test_failed_update_leaves_cache_alone(self, admin_client, slots_cache):
        slots_cache.store[(SERVICE_NAME, BOOKING_DATE)] = []
        with patch(CRUD_PATH) as service_crud:
            service_crud.get_service = AsyncMock(return_value=service_model())
            service_crud.update_service = AsyncMock(side_effect=ServiceAlreadyExists())
            resp = admin_client.put(f"/services/{SERVICE_ID}", json={"name": "Taken"})
        assert resp.status_code == 409
        assert (SERVICE_NAME, BOOKING_DATE) in slots_cache.store
