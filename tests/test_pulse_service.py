import asyncio
from datetime import datetime, timedelta

import httpx
import pytest

from conftest import NOW, aqi_payload, rss_feed, rss_item, weather_payload
from local_pulse.cache_store import place_key
from local_pulse.errors import (
    AirQualityNotAvailableError,
    ErrorKind,
    InvalidCoordinatesError,
    LocationNotFoundError,
    LocationRequiredError,
    ServiceUnavailableError,
)
from local_pulse.models import CountryCode, UserLocation
from local_pulse.pulse_service import fan_out
from local_pulse.user_locations import InMemoryUserLocationStore
from local_pulse.weather_service import MOOD_LINES


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------
def test_place_pulse_with_one_relevant_item_and_no_aqi(make_pulse, upstreams):
    upstreams.weather = lambda r: httpx.Response(200, json=weather_payload(temp=22, code=800))
    upstreams.news = lambda r: httpx.Response(
        200,
        text=rss_feed([rss_item("Ferozepur mandi prices steady"), rss_item("Stock markets close higher")]),
    )

    snap = asyncio.run(make_pulse(aqi_key="").pulse_for_place("Ferozepur"))

    assert snap.location.state == "Punjab"
    assert snap.location.country_code == CountryCode.IN
    assert snap.air_quality is None
    assert len(snap.highlights) == 1
    assert snap.weather.temperature_c == 22
    assert upstreams.calls["aqi"] == 0


def test_invalid_coordinates_fail_before_any_call(make_pulse, upstreams):
    with pytest.raises(InvalidCoordinatesError) as exc:
        asyncio.run(make_pulse(aqi_key="aqi-token").pulse_for_coordinates(91, 0))

    assert exc.value.code == ErrorKind.INVALID_COORDINATES
    assert upstreams.calls == {"weather": 0, "aqi": 0, "news": 0}


def test_unknown_place_is_not_found_and_siblings_are_discarded(make_pulse, upstreams):
    upstreams.weather = lambda r: httpx.Response(404, json={"cod": "404", "message": "city not found"})

    async def slow_aqi(request):
        await asyncio.sleep(0.05)
        return httpx.Response(200, json=aqi_payload())

    async def slow_news(request):
        await asyncio.sleep(0.05)
        return httpx.Response(200, text=rss_feed([rss_item("Nowhereville fair opens")]))

    upstreams.aqi = slow_aqi
    upstreams.news = slow_news
    svc = make_pulse(aqi_key="aqi-token")

    with pytest.raises(LocationNotFoundError) as exc:
        asyncio.run(svc.pulse_for_place("Nowhereville"))

    assert exc.value.code == ErrorKind.LOCATION_NOT_FOUND
    assert exc.value.status_code == 404
    # siblings still waiting on their upstreams are cancelled before they cache
    assert len(svc.air_quality.cache) == len(svc.news.cache) == 0


def test_fan_out_cancels_siblings_on_first_failure():
    state = {"cancelled": False}

    async def slow():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    async def boom():
        await asyncio.sleep(0)
        raise LocationNotFoundError()

    with pytest.raises(LocationNotFoundError):
        asyncio.run(fan_out(slow(), boom()))
    assert state["cancelled"] is True


def test_fan_out_keeps_argument_order():
    async def value(v, delay):
        await asyncio.sleep(delay)
        return v

    assert asyncio.run(fan_out(value("a", 0.02), value("b", 0), value("c", 0.01))) == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# Snapshot composition
# ---------------------------------------------------------------------------
def test_next_refresh_is_fixed_interval_after_generation(make_pulse):
    snap = asyncio.run(make_pulse().pulse_for_place("Ferozepur"))

    generated = datetime.fromisoformat(snap.generated_at)
    next_refresh = datetime.fromisoformat(snap.next_refresh)
    assert (next_refresh - generated).total_seconds() == 15 * 60


def test_poor_air_rederives_mood_line(make_pulse, upstreams):
    upstreams.aqi = lambda r: httpx.Response(200, json=aqi_payload(aqi=180))
    snap = asyncio.run(make_pulse(aqi_key="aqi-token").pulse_for_place("Ferozepur"))

    assert snap.air_quality.aqi == 180
    assert snap.weather.mood_line in MOOD_LINES["poor_air"]


def test_moderate_air_keeps_weather_mood_line(make_pulse, upstreams):
    svc = make_pulse(aqi_key="aqi-token")
    snap = asyncio.run(svc.pulse_for_place("Ferozepur"))

    assert snap.air_quality.aqi == 72
    assert snap.weather.mood_line in MOOD_LINES["clear_afternoon"]


def test_cached_weather_mood_line_follows_local_time(make_pulse, upstreams):
    svc = make_pulse()
    first = asyncio.run(svc.pulse_for_place("Ferozepur"))
    assert first.weather.mood_line in MOOD_LINES["clear_afternoon"]

    # 17:30 local time, weather still served from cache
    svc._now = lambda: NOW + timedelta(hours=3)
    later = asyncio.run(svc.pulse_for_place("Ferozepur"))

    assert upstreams.calls["weather"] == 1
    assert later.weather.mood_line in MOOD_LINES["clear_evening"]
    assert svc.weather.cache.get(place_key("Ferozepur")).mood_line in MOOD_LINES["clear_afternoon"]


def test_aqi_with_loose_optional_fields_still_composes(make_pulse, upstreams):
    upstreams.aqi = lambda r: httpx.Response(
        200, json={"status": "ok", "data": {"aqi": 72, "dominentpol": 25, "time": "2026-10-19 14:00:00"}}
    )
    snap = asyncio.run(make_pulse(aqi_key="aqi-token").pulse_for_place("Ferozepur"))

    assert snap.air_quality.aqi == 72
    assert snap.air_quality.dominant_pollutant == "PM2.5"


def test_country_hint_flows_to_location_and_news(make_pulse, upstreams):
    snap = asyncio.run(make_pulse().pulse_for_place("Ferozepur", CountryCode.PK))

    assert snap.location.country_code == CountryCode.PK
    assert upstreams.requests["news"][0].url.params["gl"] == "PK"


@pytest.mark.parametrize("name", ["", "   ", "x", None])
def test_blank_place_requires_location(make_pulse, upstreams, name):
    with pytest.raises(LocationRequiredError):
        asyncio.run(make_pulse().pulse_for_place(name))
    assert upstreams.calls["weather"] == 0


def test_unexpected_failure_becomes_service_unavailable(make_pulse):
    svc = make_pulse()

    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    svc.news.highlights = broken
    with pytest.raises(ServiceUnavailableError) as exc:
        asyncio.run(svc.pulse_for_place("Ferozepur"))
    assert exc.value.code == ErrorKind.SERVICE_UNAVAILABLE


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------
def test_coordinates_resolve_through_provider_place_name(make_pulse, upstreams):
    snap = asyncio.run(make_pulse(aqi_key="aqi-token").pulse_for_coordinates(30.93, 74.61))

    assert snap.location.city == "Ferozepur"
    assert snap.location.state == "Punjab"
    assert snap.air_quality is not None
    assert upstreams.calls == {"weather": 1, "aqi": 1, "news": 1}


def test_coordinates_without_place_name_use_current_location(make_pulse, upstreams):
    upstreams.weather = lambda r: httpx.Response(200, json=weather_payload(name=""))
    snap = asyncio.run(make_pulse().pulse_for_coordinates(0.5, 0.5))

    assert snap.location.city == "Current Location"
    assert snap.location.formatted_label == "Current Location"
    assert snap.location.country_code == CountryCode.OTHER
    assert len(snap.highlights) == 3
    assert upstreams.calls["news"] == 0


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "prefs, expected",
    [
        (UserLocation(current_city="Mumbai", home_city="Pune", detected_city="Delhi"), "Mumbai"),
        (UserLocation(home_city="Pune", detected_city="Delhi"), "Pune"),
        (UserLocation(detected_city="Delhi"), "Delhi"),
    ],
)
def test_user_resolution_order(make_pulse, upstreams, prefs, expected):
    users = InMemoryUserLocationStore({"u1": prefs})
    asyncio.run(make_pulse(users=users).pulse_for_user("u1"))

    assert upstreams.requests["weather"][0].url.params["q"] == expected


def test_user_without_any_location_is_rejected(make_pulse, upstreams):
    with pytest.raises(LocationRequiredError) as exc:
        asyncio.run(make_pulse().pulse_for_user("stranger"))

    assert exc.value.code == ErrorKind.LOCATION_REQUIRED
    assert upstreams.calls["weather"] == 0


def test_update_user_city_sets_current_override(make_pulse, upstreams):
    users = InMemoryUserLocationStore({"u1": UserLocation(home_city="Pune")})
    svc = make_pulse(users=users)

    updated = asyncio.run(svc.update_user_city("u1", "  ferozepur "))
    assert updated.current_city == "Ferozepur"
    assert updated.home_city == "Pune"

    snap = asyncio.run(svc.pulse_for_user("u1"))
    assert snap.location.state == "Punjab"


# ---------------------------------------------------------------------------
# Single-source lookups, refresh, caches, health
# ---------------------------------------------------------------------------
def test_single_source_lookups(make_pulse, upstreams):
    svc = make_pulse(aqi_key="aqi-token")

    assert asyncio.run(svc.weather_only("Ferozepur")).place_name == "Ferozepur"
    assert asyncio.run(svc.air_quality_only("Ferozepur")).aqi == 72
    assert len(asyncio.run(svc.highlights_only("Ferozepur"))) == 1


def test_air_quality_only_reports_missing_reading(make_pulse):
    with pytest.raises(AirQualityNotAvailableError) as exc:
        asyncio.run(make_pulse(aqi_key="").air_quality_only("Ferozepur"))
    assert exc.value.status_code == 404


def test_refresh_bypasses_every_cache(make_pulse, upstreams):
    svc = make_pulse(aqi_key="aqi-token")

    asyncio.run(svc.pulse_for_place("Ferozepur"))
    asyncio.run(svc.pulse_for_place("Ferozepur"))
    assert upstreams.calls == {"weather": 1, "aqi": 1, "news": 1}

    asyncio.run(svc.refresh("Ferozepur"))
    assert upstreams.calls == {"weather": 2, "aqi": 2, "news": 2}


def test_clear_all_caches(make_pulse):
    svc = make_pulse(aqi_key="aqi-token")
    asyncio.run(svc.pulse_for_place("Ferozepur"))

    svc.clear_all_caches()
    assert len(svc.weather.cache) == len(svc.air_quality.cache) == len(svc.news.cache) == 0


def test_health_reports_per_source_state(make_pulse):
    svc = make_pulse()
    asyncio.run(svc.pulse_for_place("Ferozepur"))

    health = svc.health_status()
    assert health.status == "healthy"
    assert health.services["weather"].cache_size == 1
    assert health.services["air_quality"].configured is False
    assert health.services["news"].enabled is True


@pytest.mark.parametrize("weather_key, news_enabled", [("", True), ("test-key", False)])
def test_health_is_degraded_without_weather_or_news(make_pulse, weather_key, news_enabled):
    health = make_pulse(weather_key=weather_key, news_enabled=news_enabled).health_status()
    assert health.status == "degraded"
