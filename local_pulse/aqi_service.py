# aqi_service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional
from urllib.parse import quote

import httpx

from local_pulse.cache_store import TTLCache, coords_key, place_key
from local_pulse.errors import UpstreamError
from local_pulse.http_utils import get_with_retry
from local_pulse.models import AirQualitySnapshot, AQILevel

log = logging.getLogger(__name__)


class AQIBand(NamedTuple):
    upper: int
    level: AQILevel
    color: str
    message: str
    recommendation: str


# US EPA bands; AQI above the last bound is still Hazardous
AQI_BANDS = (
    AQIBand(
        50, AQILevel.GOOD, "#00E400",
        "Clean air, outdoor-friendly today",
        "Perfect day for outdoor activities!",
    ),
    AQIBand(
        100, AQILevel.MODERATE, "#FFFF00",
        "Acceptable air quality",
        "Unusually sensitive people should limit prolonged outdoor exertion.",
    ),
    AQIBand(
        150, AQILevel.UNHEALTHY_FOR_SENSITIVE, "#FF7E00",
        "Sensitive groups take care",
        "Children, elderly, and those with respiratory issues should limit outdoor time.",
    ),
    AQIBand(
        200, AQILevel.UNHEALTHY, "#FF0000",
        "Health risk, limit outdoor exposure",
        "Everyone should reduce prolonged outdoor exertion. Wear a mask if going out.",
    ),
    AQIBand(
        300, AQILevel.VERY_UNHEALTHY, "#8F3F97",
        "Serious health risk, stay indoors",
        "Avoid outdoor activities. Keep windows closed. Use an air purifier if available.",
    ),
    AQIBand(
        500, AQILevel.HAZARDOUS, "#7E0023",
        "Emergency conditions, do not go outside",
        "Stay indoors with windows sealed. Use an N95 mask if you must go out.",
    ),
)

POLLUTANT_NAMES = {
    "pm25": "PM2.5",
    "pm10": "PM10",
    "o3": "Ozone",
    "no2": "Nitrogen Dioxide",
    "so2": "Sulfur Dioxide",
    "co": "Carbon Monoxide",
}


def aqi_band(aqi: int) -> AQIBand:
    for band in AQI_BANDS:
        if aqi <= band.upper:
            return band
    return AQI_BANDS[-1]


def pollutant_name(code: Optional[str]) -> str:
    if not isinstance(code, str) or not code:
        return "PM2.5"
    return POLLUTANT_NAMES.get(code.lower(), code.upper())


class AirQualityService:
    """
    AQICN feed lookups. Best-effort: every failure (disabled, HTTP error,
    timeout, non-ok status, malformed payload) yields None.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache[AirQualitySnapshot],
        *,
        api_key: str,
        base_url: str,
        timeout: float = 5.0,
        attempts: int = 1,
        coord_decimals: int = 2,
    ):
        self.client = client
        self.cache = cache
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.attempts = attempts
        self.coord_decimals = coord_decimals
        self.enabled = bool(api_key)

        if not self.enabled:
            log.warning("AQICN_API_KEY not set; air quality disabled")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def by_place(self, name: str) -> Optional[AirQualitySnapshot]:
        if not self.enabled:
            return None

        key = place_key(name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        snapshot = await self._fetch(f"{self.base_url}/{quote(name.strip(), safe='')}/")
        if snapshot is not None:
            self.cache.set(key, snapshot)
        return snapshot

    async def by_coordinates(self, lat: float, lon: float) -> Optional[AirQualitySnapshot]:
        if not self.enabled:
            return None
        if not (-90 <= lat <= 90 and -180 <= lon <= 180):
            log.warning("Invalid coordinates for AQI")
            return None

        key = coords_key(lat, lon, self.coord_decimals)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        snapshot = await self._fetch(f"{self.base_url}/geo:{lat};{lon}/")
        if snapshot is not None:
            self.cache.set(key, snapshot)
        return snapshot

    def invalidate_place(self, name: str) -> None:
        self.cache.invalidate(place_key(name))

    async def _fetch(self, url: str) -> Optional[AirQualitySnapshot]:
        try:
            r = await get_with_retry(
                self.client,
                url,
                {"token": self.api_key},
                timeout=self.timeout,
                attempts=self.attempts,
            )
            payload = r.json()
        except UpstreamError as e:
            log.warning("AQI unavailable (%s)", e.status_code or e.reason)
            return None
        except ValueError:
            log.warning("AQI provider returned a non-JSON body")
            return None

        if not isinstance(payload, dict) or payload.get("status") != "ok":
            log.warning("AQI not available for this location")
            return None

        try:
            snapshot = self.transform(payload["data"])
        except (AttributeError, KeyError, TypeError, ValueError):
            log.warning("AQI provider returned an unexpected payload")
            return None

        log.info("AQI fetched: %s (%s)", snapshot.aqi, snapshot.level.value)
        return snapshot

    @staticmethod
    def transform(data: Dict[str, Any]) -> AirQualitySnapshot:
        # AQICN reports "-" when a station has no reading
        aqi = int(data["aqi"])
        band = aqi_band(aqi)
        stamp = data.get("time")
        iso = stamp.get("iso") if isinstance(stamp, dict) else None
        fetched_at = iso if isinstance(iso, str) and iso else datetime.now(timezone.utc).isoformat()

        return AirQualitySnapshot(
            aqi=aqi,
            level=band.level,
            dominant_pollutant=pollutant_name(data.get("dominentpol")),
            color_hint=band.color,
            advisory_message=band.message,
            recommendation=band.recommendation,
            fetched_at=fetched_at,
        )
