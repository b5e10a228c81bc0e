import sys

from fastapi import FastAPI
from loguru import logger
from tortoise.contrib.fastapi import register_tortoise

from app import settings
from app.exceptions import register_exception_handlers
from app.routers.booking import router as booking_router
from app.routers.service import router as service_router
from app.settings import TORTOISE_MODULES

logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)


def create_app() -> FastAPI:
    app = FastAPI(title="Bookings")
    app.include_router(booking_router)
    app.include_router(service_router)
    register_exception_handlers(app)

    register_tortoise(
        app,
        db_url=settings.db_url,
        modules=TORTOISE_MODULES,
        generate_schemas=settings.GENERATE_SCHEMAS,
    )
    return app


app = create_app()
