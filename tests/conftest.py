"""
Shared pytest fixtures available to every test file automatically.
pytest picks this file up by convention, test modules never import it.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise, connections

from app.deps import get_current_user, get_optional_user
from app.exceptions import register_exception_handlers
from app.routers.booking import router as booking_router
from app.routers.service import router as service_router
from app.settings import TORTOISE_MODULES

from .factories import make_admin, make_customer, make_staff

# ---------------------------------------------------------------------------
# Redis is never reached from tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _no_slots_cache():
    with (
        patch("app.routers.booking.get_slots_cache", AsyncMock(return_value=None)),
        patch("app.routers.booking.set_slots_cache", AsyncMock()),
        patch("app.routers.booking.invalidate_slots_cache", AsyncMock()),
        patch("app.routers.service.invalidate_service_slots", AsyncMock()),
    ):
        yield


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def _bare_app() -> FastAPI:
    app = FastAPI()
    app.include_router(booking_router)
    app.include_router(service_router)
    register_exception_handlers(app)
    return app


def build_app(current_user) -> FastAPI:
    """
    Fresh FastAPI app whose identity dependencies return `current_user`.

    Scope checks (can_manage_booking etc.) still run against that user,
    so permission behaviour is exercised for real.
    """
    app = _bare_app()

    async def _user():
        return current_user

    app.dependency_overrides[get_current_user] = _user
    app.dependency_overrides[get_optional_user] = _user
    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_client():
    return TestClient(build_app(make_customer()), raise_server_exceptions=True)


@pytest.fixture()
def staff_client():
    return TestClient(build_app(make_staff()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def anon_app():
    """
    Bare app with NO dependency overrides.
    Use this when you want real scope/auth deps to run so you can assert 401/403/422.
    """
    return _bare_app()


@pytest.fixture()
def client_factory():
    def _make(current_user) -> TestClient:
        return TestClient(build_app(current_user), raise_server_exceptions=True)

    return _make


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def db():
    """Fresh in-memory SQLite database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules=TORTOISE_MODULES)
    await Tortoise.generate_schemas()
    yield
    await connections.close_all(discard=True)
