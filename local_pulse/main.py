# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from local_pulse.aqi_service import AirQualityService
from local_pulse.cache_store import TTLCache
from local_pulse.errors import PulseError
from local_pulse.models import PulseResponse
from local_pulse.news_service import NewsService
from local_pulse.pulse_service import PulseService
from local_pulse.ratelimit import limiter
from local_pulse.redis_client import close_redis, init_redis
from local_pulse.routes import router as api_router
from local_pulse.settings import Settings, settings
from local_pulse.user_locations import InMemoryUserLocationStore, RedisUserLocationStore
from local_pulse.weather_service import WeatherService

log = logging.getLogger(__name__)


def build_pulse_service(
    client: httpx.AsyncClient,
    redis: Optional[Redis] = None,
    cfg: Settings = settings,
) -> PulseService:
    """Wire every source with its own cache; the process owns them all."""
    weather = WeatherService(
        client,
        TTLCache("weather", cfg.weather_cache_ttl_seconds),
        api_key=cfg.openweather_api_key,
        base_url=cfg.openweather_current_url,
        timeout=cfg.weather_timeout_seconds,
        attempts=cfg.upstream_attempts,
        coord_decimals=cfg.coord_round_decimals,
    )
    air_quality = AirQualityService(
        client,
        TTLCache("aqi", cfg.aqi_cache_ttl_seconds),
        api_key=cfg.aqicn_api_key,
        base_url=cfg.aqicn_feed_url,
        timeout=cfg.aqi_timeout_seconds,
        coord_decimals=cfg.coord_round_decimals,
    )
    news = NewsService(
        client,
        TTLCache("news", cfg.news_cache_ttl_seconds),
        feed_url=cfg.news_rss_url,
        enabled=cfg.news_enabled,
        timeout=cfg.news_timeout_seconds,
        attempts=cfg.upstream_attempts,
        max_items=cfg.news_max_items,
        max_age_days=cfg.news_max_age_days,
        user_agent=cfg.news_user_agent,
    )
    users = RedisUserLocationStore(redis) if redis is not None else InMemoryUserLocationStore()

    return PulseService(
        weather,
        air_quality,
        news,
        users,
        refresh_interval_minutes=cfg.refresh_interval_minutes,
    )


async def pulse_error_handler(request: Request, exc: PulseError) -> JSONResponse:
    body = PulseResponse(success=False, data=None, error=exc.code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def create_app(pulse: Optional[PulseService] = None) -> FastAPI:
    """
    Build the API. Pass `pulse` to reuse an already wired service
    (its upstream client is then owned by the caller).
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if pulse is not None:
            app.state.pulse = pulse
            yield
            return

        redis = await init_redis(settings.redis_url) if settings.redis_url else None
        async with httpx.AsyncClient(follow_redirects=True) as client:
            app.state.pulse = build_pulse_service(client, redis)
            log.info("Local Pulse ready (redis=%s)", "on" if redis is not None else "off")
            try:
                yield
            finally:
                await close_redis()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ---------------------------
    # SlowAPI (rate limiting)
    # ---------------------------
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(PulseError, pulse_error_handler)

    # ---------------------------------------------------------
    # CORS CONFIGURATION
    # ---------------------------------------------------------
    allowed_origins = [origin.strip() for origin in settings.frontend_cors_origin.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------------------------------------
    # Mount API routes AFTER adding CORS
    # ---------------------------------------------------------
    app.include_router(api_router)

    @app.get("/", tags=["meta"])
    async def root():
        return {
            "name": settings.app_name,
            "status": "ok",
            "docs": "/docs",
        }

    return app


app = create_app()
