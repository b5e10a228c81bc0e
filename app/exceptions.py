from __future__ import annotations

from datetime import date

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from tortoise.exceptions import BaseORMException


class BookingServiceError(Exception):
    """Base for every error the booking core raises towards the HTTP layer."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class ServiceNotFound(BookingServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Service not available"

    def __init__(self, service: str | None = None) -> None:
        super().__init__(
            f"Service '{service}' is not available" if service else None
        )


class ServiceAlreadyExists(BookingServiceError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Service with this name already exists"


class SlotUnavailable(BookingServiceError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Selected time slot is not available"

    def __init__(self, booking_date: date | None = None, time: str | None = None) -> None:
        super().__init__(
            f"Time slot {time} on {booking_date} is not available"
            if booking_date and time
            else None
        )


class BookingNotFound(BookingServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Booking not found"


class InvalidStatusTransition(BookingServiceError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, old_status: str, new_status: str, allowed: list[str]) -> None:
        self.old_status = old_status
        self.new_status = new_status
        super().__init__(
            f"Cannot transition from '{old_status}' to '{new_status}'. "
            f"Allowed: {allowed}"
        )


class PersistenceFailure(BookingServiceError):
    detail = "Storage failure, please try again later"


def _error_response(exc: BookingServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_exception_handlers(app: FastAPI) -> None:
    """Map core errors (and stray ORM faults) to JSON error responses."""

    @app.exception_handler(BookingServiceError)
    async def _booking_error(_: Request, exc: BookingServiceError) -> JSONResponse:
        if isinstance(exc, PersistenceFailure):
            logger.error("Persistence failure: {}", exc.detail)
        return _error_response(exc)

    @app.exception_handler(BaseORMException)
    async def _orm_error(request: Request, exc: BaseORMException) -> JSONResponse:
        logger.opt(exception=exc).error(
            "Unhandled ORM error on {} {}", request.method, request.url.path
        )
        return _error_response(PersistenceFailure())
