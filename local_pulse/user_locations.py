# user_locations.py
from __future__ import annotations

import logging
from typing import Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from local_pulse.errors import ServiceUnavailableError
from local_pulse.models import CountryCode, UserLocation

log = logging.getLogger(__name__)

USER_TTL_SECONDS = 90 * 86400  # 90 days


def user_key(user_id: str) -> str:
    return f"user:{user_id}:location"


def _country_or_none(value: Optional[str]) -> Optional[CountryCode]:
    try:
        return CountryCode(value) if value else None
    except ValueError:
        return None


class InMemoryUserLocationStore:
    """Per-process store used when no Redis is configured (dev, tests)."""

    def __init__(self, initial: Optional[Dict[str, UserLocation]] = None):
        self._users: Dict[str, UserLocation] = dict(initial or {})

    async def get(self, user_id: str) -> UserLocation:
        return self._users.get(user_id) or UserLocation()

    async def save(self, user_id: str, location: UserLocation) -> None:
        self._users[user_id] = location

    async def set_current_city(self, user_id: str, city: str) -> UserLocation:
        current = await self.get(user_id)
        updated = current.model_copy(update={"current_city": city})
        await self.save(user_id, updated)
        return updated


class RedisUserLocationStore:
    """
    One hash per user: current_city, home_city, detected_city, country.
    Reads fail open (empty preferences); writes surface as SERVICE_UNAVAILABLE.
    """

    def __init__(self, redis: Redis, ttl_seconds: int = USER_TTL_SECONDS):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def get(self, user_id: str) -> UserLocation:
        try:
            data = await self.redis.hgetall(user_key(user_id))
        except RedisError:
            log.warning("Redis unavailable while reading user location")
            return UserLocation()

        data = data or {}
        return UserLocation(
            current_city=data.get("current_city") or None,
            home_city=data.get("home_city") or None,
            detected_city=data.get("detected_city") or None,
            country=_country_or_none(data.get("country")),
        )

    async def set_current_city(self, user_id: str, city: str) -> UserLocation:
        await self._write(user_id, {"current_city": city})
        return await self.get(user_id)

    async def _write(self, user_id: str, mapping: Dict[str, str]) -> None:
        key = user_key(user_id)
        try:
            await self.redis.hset(key, mapping=mapping)
            await self.redis.expire(key, self.ttl_seconds)
        except RedisError:
            log.error("Redis unavailable while saving user location")
            raise ServiceUnavailableError("Could not save location preference")
