# pulse_service.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Union

from local_pulse.aqi_service import AirQualityService
from local_pulse.errors import (
    AirQualityNotAvailableError,
    InvalidCoordinatesError,
    LocationRequiredError,
    PulseError,
    ServiceUnavailableError,
)
from local_pulse.location_resolver import capitalize_city, resolve
from local_pulse.models import (
    AirQualitySnapshot,
    CountryCode,
    HealthStatus,
    LocalHighlight,
    LocationInfo,
    PulseSnapshot,
    SourceHealth,
    UserLocation,
    WeatherSnapshot,
)
from local_pulse.news_service import NewsService
from local_pulse.user_locations import InMemoryUserLocationStore, RedisUserLocationStore
from local_pulse.weather_service import (
    MOOD_LINES,
    WeatherService,
    local_hour,
    mood_bucket,
    valid_coordinates,
)

log = logging.getLogger(__name__)

UserStore = Union[InMemoryUserLocationStore, RedisUserLocationStore]

CURRENT_LOCATION = "Current Location"
MIN_PLACE_LENGTH = 2
MAX_HIGHLIGHTS = 3


async def fan_out(*aws: Awaitable[Any]) -> List[Any]:
    """
    Run awaitables concurrently and return their results in order.
    The first failure (or cancellation of the caller) cancels and
    drains every sibling before the exception propagates.
    """
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _require_place(name: Optional[str]) -> str:
    place = " ".join((name or "").split())
    if len(place) < MIN_PLACE_LENGTH:
        raise LocationRequiredError("A city name is required")
    return place


class PulseService:
    """
    Resolve a place, fan out to weather / air quality / news, compose one snapshot.

    Weather failures are fatal to the request. Air quality and news never fail
    here: their sources absorb errors into None / fallback highlights.
    """

    def __init__(
        self,
        weather: WeatherService,
        air_quality: AirQualityService,
        news: NewsService,
        users: UserStore,
        *,
        refresh_interval_minutes: int = 15,
        now_fn: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.weather = weather
        self.air_quality = air_quality
        self.news = news
        self.users = users
        self.refresh_interval = timedelta(minutes=refresh_interval_minutes)
        self._now = now_fn

    # --------------------------
    # Pulse variants
    # --------------------------
    async def pulse_for_user(self, user_id: str) -> PulseSnapshot:
        prefs = await self.users.get(user_id)
        city = prefs.resolved_city()
        if not city:
            raise LocationRequiredError()
        return await self.pulse_for_place(city, prefs.country)

    async def pulse_for_place(self, name: str, country: Optional[CountryCode] = None) -> PulseSnapshot:
        place = _require_place(name)
        location = resolve(place, country)
        log.info("Pulse requested for %s", location.formatted_label)

        return await self._guard(self._place_snapshot(place, location))

    async def pulse_for_coordinates(self, lat: float, lon: float) -> PulseSnapshot:
        if not valid_coordinates(lat, lon):
            raise InvalidCoordinatesError()

        return await self._guard(self._coordinates_snapshot(lat, lon))

    async def refresh(self, name: str, country: Optional[CountryCode] = None) -> PulseSnapshot:
        """Drop every cached value for the place, then fetch a fresh pulse."""
        place = _require_place(name)
        location = resolve(place, country)

        self.weather.invalidate_place(place)
        self.air_quality.invalidate_place(place)
        self.news.invalidate(location.city, location.country_code)
        log.info("Caches invalidated for %s", location.formatted_label)

        return await self.pulse_for_place(place, country)

    # --------------------------
    # Single-source lookups
    # --------------------------
    async def weather_only(self, name: str) -> WeatherSnapshot:
        place = _require_place(name)
        return await self._guard(self.weather.by_place(place))

    async def air_quality_only(self, name: str) -> AirQualitySnapshot:
        place = _require_place(name)
        snapshot = await self.air_quality.by_place(place)
        if snapshot is None:
            raise AirQualityNotAvailableError()
        return snapshot

    async def highlights_only(
        self,
        city: str,
        state: Optional[str] = None,
        country: Optional[CountryCode] = None,
    ) -> List[LocalHighlight]:
        place = _require_place(city)
        location = resolve(place, country)
        return await self.news.highlights(location.city, state or location.state or None, location.country_code)

    # --------------------------
    # Users, caches, health
    # --------------------------
    async def update_user_city(self, user_id: str, city: str) -> UserLocation:
        place = capitalize_city(_require_place(city))
        log.info("Current city updated for user")
        return await self.users.set_current_city(user_id, place)

    def clear_all_caches(self) -> None:
        self.weather.cache.clear()
        self.air_quality.cache.clear()
        self.news.cache.clear()

    def health_status(self) -> HealthStatus:
        services = {
            "weather": SourceHealth(
                configured=self.weather.is_configured(),
                enabled=self.weather.is_configured(),
                cache_size=len(self.weather.cache),
            ),
            "air_quality": SourceHealth(
                configured=self.air_quality.is_configured(),
                enabled=self.air_quality.enabled,
                cache_size=len(self.air_quality.cache),
            ),
            "news": SourceHealth(
                configured=True,
                enabled=self.news.enabled,
                cache_size=len(self.news.cache),
            ),
        }
        healthy = services["weather"].configured and services["news"].enabled

        return HealthStatus(
            status="healthy" if healthy else "degraded",
            services=services,
            timestamp=self._now().isoformat(),
        )

    # --------------------------
    # Internals
    # --------------------------
    async def _place_snapshot(self, place: str, location: LocationInfo) -> PulseSnapshot:
        weather, aqi, highlights = await fan_out(
            self.weather.by_place(place),
            self.air_quality.by_place(place),
            self.news.highlights(location.city, location.state or None, location.country_code),
        )
        return self._compose(location, weather, aqi, highlights)

    async def _coordinates_snapshot(self, lat: float, lon: float) -> PulseSnapshot:
        weather, aqi = await fan_out(
            self.weather.by_coordinates(lat, lon),
            self.air_quality.by_coordinates(lat, lon),
        )

        if weather.place_name:
            location = resolve(weather.place_name)
            highlights = await self.news.highlights(location.city, location.state or None, location.country_code)
        else:
            location = LocationInfo(city=CURRENT_LOCATION)
            highlights = self.news.fallback_highlights(CURRENT_LOCATION, CountryCode.OTHER)

        return self._compose(location, weather, aqi, highlights)

    def _compose(
        self,
        location: LocationInfo,
        weather: WeatherSnapshot,
        aqi: Optional[AirQualitySnapshot],
        highlights: List[LocalHighlight],
    ) -> PulseSnapshot:
        now = self._now()

        # A cached line can predate the AQI reading or the current time of day
        aqi_value = aqi.aqi if aqi is not None else None
        if weather.mood_line not in MOOD_LINES[self._mood_bucket(weather, now, aqi_value)]:
            weather = weather.model_copy(
                update={"mood_line": self.weather.mood.for_snapshot(weather, now, aqi_value)}
            )

        return PulseSnapshot(
            location=location,
            weather=weather,
            air_quality=aqi,
            highlights=highlights[:MAX_HIGHLIGHTS],
            generated_at=now.isoformat(),
            next_refresh=(now + self.refresh_interval).isoformat(),
        )

    async def _guard(self, work: Awaitable[Any]) -> Any:
        try:
            return await work
        except PulseError:
            raise
        except Exception:
            log.exception("Unexpected failure while building pulse")
            raise ServiceUnavailableError()

    @staticmethod
    def _mood_bucket(weather: WeatherSnapshot, now: datetime, aqi: Optional[int]) -> str:
        hour = local_hour(now, weather.utc_offset_seconds)
        return mood_bucket(weather.condition, weather.temperature_c, hour, aqi)
