# news_service.py
from __future__ import annotations

import calendar
import html
import io
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import feedparser
import httpx

from local_pulse.cache_store import TTLCache
from local_pulse.errors import UpstreamError
from local_pulse.http_utils import get_with_retry
from local_pulse.location_resolver import country_info, locale_params, normalize_place
from local_pulse.models import CountryCode, HighlightCategory, LocalHighlight

log = logging.getLogger(__name__)

_HC = HighlightCategory

TITLE_MAX = 60
DESCRIPTION_MAX = 100


# --------------------------
# Category detection
# --------------------------
# Checked in this order; first keyword hit wins, otherwise general.
CATEGORY_KEYWORDS: Dict[HighlightCategory, List[str]] = {
    _HC.TRAFFIC: [
        "traffic", "road", "highway", "jam", "accident", "collision",
        "blocked", "diversion", "construction", "bridge", "flyover",
        "sadak", "rasta", "hadsa",
        "مرور", "حادث",
    ],
    _HC.MARKET: [
        "market", "price", "rate", "stock", "inflation", "cost",
        "expensive", "cheap", "wholesale", "retail", "economy",
        "mandi", "bazaar", "sabzi", "petrol", "diesel", "gold", "silver",
        "سوق", "أسعار",
    ],
    _HC.WEATHER_ALERT: [
        "weather", "rain", "storm", "flood", "heat", "cold", "fog",
        "warning", "alert", "cyclone", "thunder", "lightning", "snow",
        "hurricane", "tornado", "heatwave",
        "baarish", "toofan", "baadh", "garmi", "sardi", "kohra",
        "طقس", "أمطار",
    ],
    _HC.EVENT: [
        "festival", "event", "celebration", "rally", "protest",
        "march", "inauguration", "ceremony", "concert", "match",
        "tyohaar", "utsav", "dharna", "juloos", "mela", "fair",
        "مهرجان",
    ],
    _HC.UTILITY: [
        "power", "electricity", "water", "supply", "outage", "cut",
        "gas", "internet", "network", "service", "maintenance",
        "bijli", "paani",
        "كهرباء", "مياه",
    ],
}

CATEGORY_ICONS: Dict[HighlightCategory, str] = {
    _HC.TRAFFIC: "🚗",
    _HC.MARKET: "📊",
    _HC.WEATHER_ALERT: "⚠️",
    _HC.EVENT: "🎉",
    _HC.UTILITY: "💡",
    _HC.GENERAL: "📰",
}


def detect_category(text: str) -> HighlightCategory:
    lowered = (text or "").lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(k in lowered for k in keywords):
            return category
    return _HC.GENERAL


# --------------------------
# Text helpers
# --------------------------
_TAG_RE = re.compile(r"<[^>]*>")


def clean_text(text: Optional[str]) -> str:
    """Strip markup and unescape entities; feed text arrives HTML-escaped."""
    if not text:
        return ""
    unescaped = html.unescape(_TAG_RE.sub("", html.unescape(text)))
    return " ".join(unescaped.split())


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3].rstrip() + "..."


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# --------------------------
# Feed parsing
# --------------------------
def parse_feed(body: bytes) -> List[Dict[str, Any]]:
    """
    Parse an RSS body into plain dicts:
    title, link, published (aware datetime or None), source, description.
    Items without a title are dropped.
    """
    # a stream is never mistaken for a path or URL
    parsed = feedparser.parse(io.BytesIO(body))
    items: List[Dict[str, Any]] = []

    for entry in parsed.entries or []:
        title = clean_text(entry.get("title"))
        if not title:
            continue

        published = None
        stamp = entry.get("published_parsed") or entry.get("updated_parsed")
        if stamp:
            published = datetime.fromtimestamp(calendar.timegm(stamp), tz=timezone.utc)

        source = entry.get("source") or {}
        items.append(
            {
                "title": title,
                "link": entry.get("link") or None,
                "published": published,
                "source": clean_text(source.get("title") if hasattr(source, "get") else str(source)) or None,
                "description": clean_text(entry.get("summary") or entry.get("description")),
            }
        )

    return items


def is_relevant(item: Dict[str, Any], city: str, state: Optional[str] = None) -> bool:
    haystack = f"{item.get('title', '')} {item.get('description', '')}".lower()
    if normalize_place(city) and normalize_place(city) in haystack:
        return True
    return bool(state) and normalize_place(state) in haystack


# --------------------------
# News source
# --------------------------
class NewsService:
    """
    Local highlights from a Google-News-style RSS search feed.
    Never returns an empty list: no relevant items, a disabled source or a
    failed feed all produce the three fallback highlights.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache[List[LocalHighlight]],
        *,
        feed_url: str,
        enabled: bool = True,
        timeout: float = 15.0,
        attempts: int = 2,
        max_items: int = 3,
        max_age_days: int = 7,
        user_agent: str = "LocalPulse/1.0 (News Aggregator)",
        now_fn: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.cache = cache
        self.feed_url = feed_url
        self.enabled = enabled
        self.timeout = timeout
        self.attempts = attempts
        self.max_items = max_items
        self.max_age_days = max_age_days
        self.user_agent = user_agent
        self._now = now_fn

    @staticmethod
    def cache_key(city: str, country: Optional[CountryCode]) -> str:
        code = CountryCode(country).value if country else CountryCode.OTHER.value
        return f"{code}:{normalize_place(city)}"

    def invalidate(self, city: str, country: Optional[CountryCode]) -> None:
        self.cache.invalidate(self.cache_key(city, country))

    async def highlights(
        self,
        city: str,
        state: Optional[str] = None,
        country: Optional[CountryCode] = CountryCode.OTHER,
    ) -> List[LocalHighlight]:
        if not self.enabled:
            return self.fallback_highlights(city, country)

        key = self.cache_key(city, country)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            items = await self._fetch_items(city, state, country)
        except UpstreamError as e:
            log.warning("News feed unavailable (%s); using fallback highlights", e.status_code or e.reason)
            return self.fallback_highlights(city, country)
        except Exception:
            log.exception("News feed could not be parsed; using fallback highlights")
            return self.fallback_highlights(city, country)

        relevant = [i for i in items if is_relevant(i, city, state)][: self.max_items]
        highlights = [self.to_highlight(i) for i in relevant] or self.fallback_highlights(city, country)

        self.cache.set(key, highlights)
        log.info("News fetched: %s highlights (%s relevant)", len(highlights), len(relevant))
        return highlights

    async def _fetch_items(
        self, city: str, state: Optional[str], country: Optional[CountryCode]
    ) -> List[Dict[str, Any]]:
        locale = locale_params(country)
        query = f"{city.strip()} {state.strip()}" if state else city.strip()
        params = {
            "q": query,
            "hl": locale.language,
            "gl": locale.news_region_code,
            "ceid": locale.news_edition,
        }
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/rss+xml, application/xml, text/xml",
        }

        r = await get_with_retry(
            self.client, self.feed_url, params, timeout=self.timeout, attempts=self.attempts, headers=headers
        )
        items = parse_feed(r.content)

        cutoff = self._now() - timedelta(days=self.max_age_days)
        return [i for i in items if i["published"] is None or i["published"] >= cutoff]

    def to_highlight(self, item: Dict[str, Any]) -> LocalHighlight:
        description = item.get("description") or ""
        category = detect_category(f"{item['title']} {description}")
        published = item.get("published") or self._now()

        return LocalHighlight(
            id=_new_id("highlight"),
            icon=CATEGORY_ICONS[category],
            title=truncate(item["title"], TITLE_MAX),
            description=truncate(description or f"Latest update from {item.get('source') or 'News'}", DESCRIPTION_MAX),
            category=category,
            source=item.get("source"),
            url=item.get("link"),
            published_at=published.isoformat(),
        )

    def fallback_highlights(self, city: str, country: Optional[CountryCode]) -> List[LocalHighlight]:
        name = city.strip() or "Your city"
        country_name = country_info(country).name
        where = name if country_name == "Other" else f"{name}, {country_name}"
        now = self._now().isoformat()

        def _item(category: HighlightCategory, title: str, description: str) -> LocalHighlight:
            return LocalHighlight(
                id=_new_id(f"default_{category.value}"),
                icon=CATEGORY_ICONS[category],
                title=truncate(title, TITLE_MAX),
                description=truncate(description, DESCRIPTION_MAX),
                category=category,
                published_at=now,
            )

        return [
            _item(_HC.TRAFFIC, f"{name} traffic normal", f"No major congestion reported around {where}."),
            _item(_HC.MARKET, f"{name} markets stable", "No major price fluctuations reported today."),
            _item(_HC.GENERAL, f"{name} update", f"All systems normal in {where}. Have a great day!"),
        ]
