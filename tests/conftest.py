"""
Shared fixtures. Every upstream (OpenWeather, AQICN, Google News RSS) is served
by one httpx.MockTransport, so no test touches the network.
"""
import os

# Minimal env so pydantic-settings doesn't require a real .env file
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("OPENWEATHER_API_KEY", "test-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ["REDIS_URL"] = ""

import random
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Callable, Dict, List, Optional
from xml.sax.saxutils import escape

import httpx
import pytest

from local_pulse.aqi_service import AirQualityService
from local_pulse.cache_store import TTLCache
from local_pulse.news_service import NewsService
from local_pulse.pulse_service import PulseService
from local_pulse.user_locations import InMemoryUserLocationStore
from local_pulse.weather_service import MoodLineGenerator, WeatherService

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
AQI_URL = "https://api.waqi.info/feed"
NEWS_URL = "https://news.google.com/rss/search"

_HOSTS = {
    "api.openweathermap.org": "weather",
    "api.waqi.info": "aqi",
    "news.google.com": "news",
}


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------
def weather_payload(temp: float = 22.0, code: int = 800, name: str = "Ferozepur", **extra) -> Dict:
    payload = {
        "name": name,
        "weather": [{"id": code, "main": "Clear", "description": "clear sky", "icon": "01d"}],
        "main": {"temp": temp, "feels_like": temp - 1, "humidity": 40, "pressure": 1012},
        "wind": {"speed": 2.5, "deg": 90},
        "visibility": 8000,
        "sys": {"sunrise": 1760835600, "sunset": 1760877000},
        "timezone": 19800,
        "cod": 200,
    }
    payload.update(extra)
    return payload


def aqi_payload(aqi=72, pollutant: str = "pm25") -> Dict:
    return {
        "status": "ok",
        "data": {"aqi": aqi, "dominentpol": pollutant, "time": {"iso": "2026-10-19T14:00:00+05:30"}},
    }


def rss_item(
    title: str,
    description: Optional[str] = None,
    source: str = "The Tribune",
    published: Optional[datetime] = NOW - timedelta(hours=2),
) -> Dict:
    return {"title": title, "description": description, "source": source, "published": published}


def rss_feed(items: List[Dict]) -> str:
    parts = []
    for i, item in enumerate(items):
        xml = [f"<title>{escape(item['title'])}</title>", f"<link>https://news.example.com/{i}</link>"]
        if item.get("published") is not None:
            xml.append(f"<pubDate>{format_datetime(item['published'])}</pubDate>")
        if item.get("description") is not None:
            xml.append(f"<description>{escape(item['description'])}</description>")
        xml.append(f'<source url="https://news.example.com">{escape(item["source"])}</source>')
        parts.append("<item>" + "".join(xml) + "</item>")

    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Local news</title>'
        + "".join(parts)
        + "</channel></rss>"
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
class FakeClock:
    def __init__(self, start: float = 1_760_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Upstreams:
    """
    Routes each request by host and counts calls per upstream.
    Replace `weather` / `aqi` / `news` with any handler(request) -> httpx.Response.
    """

    def __init__(self):
        self.calls = {"weather": 0, "aqi": 0, "news": 0}
        self.requests: Dict[str, List[httpx.Request]] = {"weather": [], "aqi": [], "news": []}
        self.weather: Callable[[httpx.Request], httpx.Response] = lambda r: httpx.Response(
            200, json=weather_payload()
        )
        self.aqi: Callable[[httpx.Request], httpx.Response] = lambda r: httpx.Response(200, json=aqi_payload())
        self.news: Callable[[httpx.Request], httpx.Response] = lambda r: httpx.Response(
            200, text=rss_feed([rss_item("Ferozepur mandi prices steady this week")])
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        name = _HOSTS[request.url.host]
        self.calls[name] += 1
        self.requests[name].append(request)
        return getattr(self, name)(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def upstreams() -> Upstreams:
    return Upstreams()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_weather(upstreams, clock):
    def _make(api_key: str = "test-key", seed: int = 7) -> WeatherService:
        return WeatherService(
            upstreams.client(),
            TTLCache("weather", 900, clock=clock),
            api_key=api_key,
            base_url=WEATHER_URL,
            attempts=2,
            mood=MoodLineGenerator(random.Random(seed)),
            now_fn=lambda: NOW,
        )

    return _make


@pytest.fixture()
def make_aqi(upstreams, clock):
    def _make(api_key: str = "aqi-token") -> AirQualityService:
        return AirQualityService(
            upstreams.client(),
            TTLCache("aqi", 1800, clock=clock),
            api_key=api_key,
            base_url=AQI_URL,
        )

    return _make


@pytest.fixture()
def make_news(upstreams, clock):
    def _make(enabled: bool = True) -> NewsService:
        return NewsService(
            upstreams.client(),
            TTLCache("news", 600, clock=clock),
            feed_url=NEWS_URL,
            enabled=enabled,
            attempts=1,
            now_fn=lambda: NOW,
        )

    return _make


@pytest.fixture()
def make_pulse(make_weather, make_aqi, make_news):
    def _make(
        weather_key: str = "test-key",
        aqi_key: str = "",
        news_enabled: bool = True,
        users: Optional[InMemoryUserLocationStore] = None,
    ) -> PulseService:
        return PulseService(
            make_weather(api_key=weather_key),
            make_aqi(api_key=aqi_key),
            make_news(enabled=news_enabled),
            users or InMemoryUserLocationStore(),
            refresh_interval_minutes=15,
            now_fn=lambda: NOW,
        )

    return _make
