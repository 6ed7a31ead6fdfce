# weather_service.py
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from local_pulse.cache_store import TTLCache, coords_key, place_key
from local_pulse.errors import (
    InvalidCoordinatesError,
    LocationNotFoundError,
    RateLimitExceededError,
    ServiceUnavailableError,
    UpstreamError,
)
from local_pulse.http_utils import get_with_retry
from local_pulse.models import WeatherCondition, WeatherSnapshot

log = logging.getLogger(__name__)

_W = WeatherCondition


# -------------------------------------------------------------------
# OpenWeather condition id -> WeatherCondition
# Checked in order; first (start, end) inclusive range wins.
# -------------------------------------------------------------------
CONDITION_TABLE: List[Tuple[int, int, WeatherCondition]] = [
    (200, 299, _W.THUNDERSTORM),
    (300, 399, _W.LIGHT_RAIN),
    (500, 509, _W.RAIN),
    (510, 599, _W.HEAVY_RAIN),
    (600, 699, _W.SNOW),
    (701, 701, _W.MIST),
    (711, 711, _W.SMOKE),
    (721, 721, _W.MIST),
    (731, 731, _W.DUST),
    (741, 741, _W.FOG),
    (751, 751, _W.DUST),
    (761, 761, _W.DUST),
    (700, 799, _W.HAZE),
    (800, 800, _W.CLEAR),
    (801, 801, _W.PARTLY_CLOUDY),
    (802, 802, _W.CLOUDY),
    (803, 10_000, _W.OVERCAST),
]

_RAIN_FAMILY = {_W.LIGHT_RAIN, _W.RAIN, _W.HEAVY_RAIN}
_CLOUDY_FAMILY = {_W.PARTLY_CLOUDY, _W.CLOUDY, _W.OVERCAST}
_FOG_FAMILY = {_W.FOG, _W.MIST}

_COMPASS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def map_condition(code: Optional[int]) -> WeatherCondition:
    if code is None:
        return _W.CLEAR
    for start, end, condition in CONDITION_TABLE:
        if start <= code <= end:
            return condition
    return _W.CLEAR


def wind_direction(degrees: Optional[float]) -> str:
    return _COMPASS[int(round((degrees or 0) / 45.0)) % 8]


def unix_to_iso(ts: Optional[int]) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def time_of_day(hour: int) -> str:
    if 5 <= hour <= 11:
        return "morning"
    if 12 <= hour <= 16:
        return "afternoon"
    if 17 <= hour <= 20:
        return "evening"
    return "night"


# -------------------------------------------------------------------
# Mood lines
# -------------------------------------------------------------------
MOOD_LINES: Dict[str, List[str]] = {
    "clear_morning": [
        "Perfect morning for a fresh start",
        "Bright skies, bright ideas ahead",
        "Sunlight streaming, good vibes only",
        "Clear morning, clear mind",
    ],
    "clear_afternoon": [
        "Sunny afternoon, stay hydrated!",
        "Perfect weather for outdoor work",
        "Bright day, brighter possibilities",
        "Sun's out, energy levels up",
    ],
    "clear_evening": [
        "Golden hour vibes",
        "Beautiful evening ahead",
        "Perfect for an evening walk",
        "Sunset mode activated",
    ],
    "clear_night": [
        "Clear skies, starry night",
        "Perfect night for stargazing",
        "Calm and clear, rest well",
        "Peaceful night ahead",
    ],
    "cloudy_morning": [
        "Cloudy but cozy morning",
        "Overcast skies, chai weather",
        "Soft light, easy start",
        "Gentle morning, no harsh sun",
    ],
    "cloudy_afternoon": [
        "Cloudy afternoon, comfortable weather",
        "Perfect for indoor productivity",
        "Overcast but pleasant",
        "Easy on the eyes today",
    ],
    "cloudy_evening": [
        "Cloudy evening, relaxed vibes",
        "Soft skies this evening",
        "Comfortable evening ahead",
        "Mellow evening weather",
    ],
    "cloudy_night": [
        "Quiet cloudy night",
        "Cozy night in",
        "Soft skies, peaceful night",
        "Blanket weather tonight",
    ],
    "rain_morning": [
        "Rainy morning, perfect chai time",
        "Baarish ki subah, pakora mood",
        "Wet start, stay dry!",
        "Monsoon vibes this morning",
    ],
    "rain_afternoon": [
        "Rainy afternoon, work from a cozy corner",
        "Baarish continue hai, umbrella ready?",
        "Wet weather, stay indoors if possible",
        "Perfect for some hot chai",
    ],
    "rain_evening": [
        "Rainy evening, baarish ki shaam",
        "Wet evening, drive carefully",
        "Rain continues, cozy evening ahead",
        "Perfect pakora weather",
    ],
    "rain_night": [
        "Rainy night, sleep will be good",
        "Baarish ki raat, peaceful sleep ahead",
        "Wet night, stay warm",
        "Rain sounds for perfect sleep",
    ],
    "hot": [
        "Garmi hai, stay hydrated!",
        "Hot day, AC mode on",
        "Drink plenty of water today",
        "Beat the heat, stay cool",
        "Scorching, limit outdoor time",
    ],
    "cold": [
        "Thandi hai, layer up!",
        "Chilly weather, warm clothes ready?",
        "Cold day, hot chai mandatory",
        "Bundle up, it's cold outside",
        "Sweater weather activated",
    ],
    "fog": [
        "Foggy, drive slow and stay safe",
        "Low visibility, be careful outside",
        "Misty out there, take it slow",
        "Fog advisory, travel safe",
    ],
    "thunderstorm": [
        "Thunderstorm alert, stay indoors",
        "Toofan aa raha hai, be safe",
        "Storm warning, avoid travel",
        "Lightning risk, stay inside",
    ],
    "poor_air": [
        "Air quality poor, mask recommended",
        "Hazy skies, limit outdoor exposure",
        "Dusty conditions, stay indoors",
        "Poor air today, keep windows closed",
    ],
}

POOR_AIR_AQI = 150
HOT_ABOVE_C = 35
COLD_BELOW_C = 15


def mood_bucket(
    condition: WeatherCondition,
    temperature_c: int,
    hour: int,
    aqi: Optional[int] = None,
) -> str:
    """Pick the mood-line bucket; the first matching rule wins."""
    if condition == _W.THUNDERSTORM:
        return "thunderstorm"
    if aqi is not None and aqi > POOR_AIR_AQI:
        return "poor_air"
    if condition in _FOG_FAMILY:
        return "fog"
    if temperature_c > HOT_ABOVE_C:
        return "hot"
    if temperature_c < COLD_BELOW_C:
        return "cold"

    tod = time_of_day(hour)
    if condition in _RAIN_FAMILY:
        return f"rain_{tod}"
    if condition in _CLOUDY_FAMILY:
        return f"cloudy_{tod}"
    return f"clear_{tod}"


class MoodLineGenerator:
    """Chooses one phrase from the selected bucket using an injectable RNG."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def generate(
        self,
        condition: WeatherCondition,
        temperature_c: int,
        hour: int,
        aqi: Optional[int] = None,
    ) -> str:
        return self._rng.choice(MOOD_LINES[mood_bucket(condition, temperature_c, hour, aqi)])

    def for_snapshot(self, weather: WeatherSnapshot, now: datetime, aqi: Optional[int] = None) -> str:
        return self.generate(weather.condition, weather.temperature_c, local_hour(now, weather.utc_offset_seconds), aqi)


def local_hour(now: datetime, utc_offset_seconds: int) -> int:
    return (now.astimezone(timezone.utc) + timedelta(seconds=utc_offset_seconds)).hour


# -------------------------------------------------------------------
# Weather source
# -------------------------------------------------------------------
class WeatherService:
    """
    Current conditions from OpenWeather, memoized per place / rounded coordinates.
    Failures are fatal to the caller: 404 -> not found, 429 -> rate limited,
    anything else -> service unavailable.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache[WeatherSnapshot],
        *,
        api_key: str,
        base_url: str,
        timeout: float = 10.0,
        attempts: int = 2,
        coord_decimals: int = 2,
        mood: Optional[MoodLineGenerator] = None,
        now_fn: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.cache = cache
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.attempts = attempts
        self.coord_decimals = coord_decimals
        self.mood = mood or MoodLineGenerator()
        self._now = now_fn

        if not self.api_key:
            log.warning("OPENWEATHER_API_KEY not set; weather calls will fail")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def by_place(self, name: str) -> WeatherSnapshot:
        key = place_key(name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        log.info("Fetching weather for place")
        snapshot = await self._fetch({"q": name.strip()})
        self.cache.set(key, snapshot)
        return snapshot

    async def by_coordinates(self, lat: float, lon: float) -> WeatherSnapshot:
        if not valid_coordinates(lat, lon):
            raise InvalidCoordinatesError()

        key = coords_key(lat, lon, self.coord_decimals)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        log.info("Fetching weather for coordinates %s", key)
        snapshot = await self._fetch({"lat": lat, "lon": lon})
        self.cache.set(key, snapshot)
        return snapshot

    def invalidate_place(self, name: str) -> None:
        self.cache.invalidate(place_key(name))

    async def _fetch(self, query: Dict[str, Any]) -> WeatherSnapshot:
        if not self.api_key:
            raise ServiceUnavailableError("Weather API key not configured")

        params = {**query, "appid": self.api_key, "units": "metric"}
        try:
            r = await get_with_retry(
                self.client, self.base_url, params, timeout=self.timeout, attempts=self.attempts
            )
            data = r.json()
        except UpstreamError as e:
            if e.status_code == 404:
                raise LocationNotFoundError("Location not found by weather provider")
            if e.status_code == 429:
                raise RateLimitExceededError("Weather API rate limit exceeded")
            raise ServiceUnavailableError("Failed to fetch weather data")
        except ValueError:
            log.error("Weather provider returned a non-JSON body")
            raise ServiceUnavailableError("Failed to fetch weather data")

        try:
            snapshot = self.transform(data)
        except (KeyError, IndexError, TypeError, ValueError):
            log.error("Weather provider returned an unexpected payload")
            raise ServiceUnavailableError("Failed to fetch weather data")

        log.info("Weather fetched: %s°C, %s", snapshot.temperature_c, snapshot.condition.value)
        return snapshot

    def transform(self, data: Dict[str, Any], aqi: Optional[int] = None) -> WeatherSnapshot:
        wx = data["weather"][0]
        main = data["main"]
        wind = data.get("wind") or {}
        sys = data.get("sys") or {}

        code = int(wx["id"])
        condition = map_condition(code)
        temperature = int(round(main["temp"]))
        offset = int(data.get("timezone") or 0)
        now = self._now()

        return WeatherSnapshot(
            temperature_c=temperature,
            feels_like_c=int(round(main.get("feels_like", main["temp"]))),
            humidity_pct=int(main.get("humidity") or 0),
            condition=condition,
            condition_code=code,
            icon=wx.get("icon") or "",
            wind_speed_kmh=int(round(float(wind.get("speed") or 0) * 3.6)),
            wind_direction=wind_direction(wind.get("deg")),
            visibility_km=int(round((data.get("visibility") or 10_000) / 1000)),
            pressure_hpa=int(main.get("pressure") or 0),
            sunrise=unix_to_iso(sys.get("sunrise")),
            sunset=unix_to_iso(sys.get("sunset")),
            mood_line=self.mood.generate(condition, temperature, local_hour(now, offset), aqi),
            place_name=data.get("name") or "",
            utc_offset_seconds=offset,
            fetched_at=now.isoformat(),
        )


def valid_coordinates(lat: float, lon: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lon <= 180
