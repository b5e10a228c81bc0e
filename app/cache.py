import json
from datetime import date

from loguru import logger
from redis.asyncio import Redis

from app.settings import REDIS_URL

_redis: Redis | None = None
SLOTS_TTL = 60  # 1 minute


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


def _slots_key(service_name: str, booking_date: date) -> str:
    return f"slots:{service_name}:{booking_date.isoformat()}"


async def get_slots_cache(service_name: str, booking_date: date) -> list | None:
    try:
        data = await get_redis().get(_slots_key(service_name, booking_date))
        return json.loads(data) if data else None
    except Exception:
        logger.opt(exception=True).warning("Redis get failed, skipping slots cache")
        return None


async def set_slots_cache(service_name: str, booking_date: date, slots: list) -> None:
    try:
        await get_redis().setex(
            _slots_key(service_name, booking_date), SLOTS_TTL, json.dumps(slots)
        )
    except Exception:
        logger.opt(exception=True).warning("Redis set failed, skipping slots cache")


async def invalidate_slots_cache(service_name: str, *booking_dates: date) -> None:
    keys = [_slots_key(service_name, d) for d in booking_dates]
    if not keys:
        return
    try:
        await get_redis().delete(*keys)
    except Exception:
        logger.opt(exception=True).warning("Redis invalidate failed for slots cache")


def _glob_escape(value: str) -> str:
    return "".join(f"\\{c}" if c in "*?[]\\" else c for c in value)


async def invalidate_service_slots(service_name: str) -> None:
    """Drop every cached day of a service, e.g. after a catalog edit."""
    pattern = f"slots:{_glob_escape(service_name)}:*"
    try:
        redis = get_redis()
        keys = [key async for key in redis.scan_iter(match=pattern)]
        if keys:
            await redis.delete(*keys)
    except Exception:
        logger.opt(exception=True).warning("Redis invalidate failed for service slots")
