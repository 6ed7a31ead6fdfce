# settings.py
from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # API keys (empty means the source runs degraded)
    api_key: str = ""
    openweather_api_key: str = ""
    aqicn_api_key: str = ""
    session_secret: str = "change-me"

    # External API base URLs
    openweather_current_url: str = "https://api.openweathermap.org/data/2.5/weather"
    aqicn_feed_url: str = "https://api.waqi.info/feed"
    news_rss_url: str = "https://news.google.com/rss/search"
    news_user_agent: str = "LocalPulse/1.0 (News Aggregator)"

    # News
    news_enabled: bool = True
    news_max_items: int = 3
    news_max_age_days: int = 7

    # Cache TTLs (seconds)
    weather_cache_ttl_seconds: int = 15 * 60
    aqi_cache_ttl_seconds: int = 30 * 60
    news_cache_ttl_seconds: int = 10 * 60
    coord_round_decimals: int = 2

    # Upstream timeouts (seconds)
    weather_timeout_seconds: float = 10.0
    news_timeout_seconds: float = 15.0
    aqi_timeout_seconds: float = 5.0
    upstream_attempts: int = 2

    # Client polling hint
    refresh_interval_minutes: int = 15

    # App
    app_name: str = "Local Pulse API"
    log_level: str = "INFO"
    redis_url: str = ""
    frontend_cors_origin: str = "*"
    rate_limit_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
