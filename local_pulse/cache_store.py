# cache_store.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from local_pulse.location_resolver import normalize_place

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """
    Process-wide, TTL-only memo for one source.

    - key -> CacheEntry(value, expires_at)
    - expired entries are dropped when looked up, never swept
    - concurrent fills for the same key are last-writer-wins
    """

    def __init__(self, name: str, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        log.debug("%s cache hit: %s", self.name, key)
        return entry.value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        log.info("%s cache cleared", self.name)

    def keys(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def rounded_coords(lat: float, lon: float, decimals: int) -> Tuple[float, float]:
    return (round(lat, decimals), round(lon, decimals))


def place_key(name: str) -> str:
    return "place:" + normalize_place(name)


def coords_key(lat: float, lon: float, decimals: int = 2) -> str:
    rlat, rlon = rounded_coords(lat, lon, decimals)
    return f"coords:{rlat:.{decimals}f}:{rlon:.{decimals}f}"
