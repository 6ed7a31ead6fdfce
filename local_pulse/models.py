# models.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field


# -----------------------------------------------------------
# Enums
# -----------------------------------------------------------
class CountryCode(str, Enum):
    IN = "IN"
    PK = "PK"
    BD = "BD"
    LK = "LK"
    NP = "NP"
    US = "US"
    CA = "CA"
    MX = "MX"
    GB = "GB"
    DE = "DE"
    FR = "FR"
    IT = "IT"
    ES = "ES"
    NL = "NL"
    CH = "CH"
    SE = "SE"
    NO = "NO"
    DK = "DK"
    FI = "FI"
    IE = "IE"
    PL = "PL"
    AT = "AT"
    BE = "BE"
    PT = "PT"
    GR = "GR"
    CZ = "CZ"
    HU = "HU"
    RO = "RO"
    AE = "AE"
    SA = "SA"
    QA = "QA"
    KW = "KW"
    OM = "OM"
    BH = "BH"
    IL = "IL"
    AU = "AU"
    NZ = "NZ"
    SG = "SG"
    JP = "JP"
    CN = "CN"
    HK = "HK"
    TW = "TW"
    KR = "KR"
    TH = "TH"
    MY = "MY"
    ID = "ID"
    PH = "PH"
    VN = "VN"
    BR = "BR"
    ZA = "ZA"
    OTHER = "OTHER"


class Region(str, Enum):
    DOMESTIC = "IN"
    INTERNATIONAL = "INTL"


class WeatherCondition(str, Enum):
    CLEAR = "Clear"
    PARTLY_CLOUDY = "Partly Cloudy"
    CLOUDY = "Cloudy"
    OVERCAST = "Overcast"
    LIGHT_RAIN = "Light Rain"
    RAIN = "Rain"
    HEAVY_RAIN = "Heavy Rain"
    THUNDERSTORM = "Thunderstorm"
    SNOW = "Snow"
    MIST = "Mist"
    FOG = "Fog"
    HAZE = "Haze"
    DUST = "Dust"
    SMOKE = "Smoke"


class AQILevel(str, Enum):
    GOOD = "Good"
    MODERATE = "Moderate"
    UNHEALTHY_FOR_SENSITIVE = "Unhealthy for Sensitive"
    UNHEALTHY = "Unhealthy"
    VERY_UNHEALTHY = "Very Unhealthy"
    HAZARDOUS = "Hazardous"


class HighlightCategory(str, Enum):
    TRAFFIC = "traffic"
    MARKET = "market"
    WEATHER_ALERT = "weather_alert"
    EVENT = "event"
    UTILITY = "utility"
    GENERAL = "general"


# -----------------------------------------------------------
# Location
# -----------------------------------------------------------
class CountryInfo(BaseModel):
    code: CountryCode
    name: str
    region: Region
    timezone: str
    news_language: str
    news_edition: str
    currency: str


class LocaleParams(BaseModel):
    language: str
    news_region_code: str
    news_edition: str
    timezone: str


class LocationInfo(BaseModel):
    city: str
    state: str = ""
    country_code: CountryCode = CountryCode.OTHER
    country_name: str = "Other"
    region: Region = Region.INTERNATIONAL

    @computed_field  # type: ignore[misc]
    @property
    def formatted_label(self) -> str:
        # location_resolver imports this module
        from local_pulse.location_resolver import format_label

        return format_label(self.city, self.state, self.country_code)


# -----------------------------------------------------------
# Source snapshots
# -----------------------------------------------------------
class WeatherSnapshot(BaseModel):
    temperature_c: int
    feels_like_c: int
    humidity_pct: int
    condition: WeatherCondition
    condition_code: int
    icon: str = ""
    wind_speed_kmh: int
    wind_direction: str
    visibility_km: int
    pressure_hpa: int
    sunrise: str
    sunset: str
    mood_line: str
    place_name: str = ""
    utc_offset_seconds: int = 0
    fetched_at: str


class AirQualitySnapshot(BaseModel):
    aqi: int
    level: AQILevel
    dominant_pollutant: str
    color_hint: str
    advisory_message: str
    recommendation: str
    fetched_at: str


class LocalHighlight(BaseModel):
    id: str
    icon: str
    title: str = Field(max_length=60)
    description: str = Field(max_length=100)
    category: HighlightCategory
    source: Optional[str] = None
    url: Optional[str] = None
    published_at: str


# -----------------------------------------------------------
# Aggregate + envelope
# -----------------------------------------------------------
class PulseSnapshot(BaseModel):
    location: LocationInfo
    weather: WeatherSnapshot
    air_quality: Optional[AirQualitySnapshot] = None
    highlights: List[LocalHighlight] = Field(default_factory=list, max_length=3)
    generated_at: str
    next_refresh: str


class PulseResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None


class UserLocation(BaseModel):
    current_city: Optional[str] = None
    home_city: Optional[str] = None
    detected_city: Optional[str] = None
    country: Optional[CountryCode] = None

    def resolved_city(self) -> Optional[str]:
        """Current-location override, else home, else last detected."""
        return self.current_city or self.home_city or self.detected_city


class SourceHealth(BaseModel):
    configured: bool
    enabled: bool
    cache_size: int


class HealthStatus(BaseModel):
    status: str
    services: Dict[str, SourceHealth]
    timestamp: str
