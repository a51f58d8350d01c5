"""
In-memory response cache partitioned into regions, one per NASA resource.

Entries expire lazily: nothing sweeps the store in the background, an expired
entry is dropped the next time it is looked at.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


class CacheRegion(str, Enum):
    DAILY_IMAGE = "apod"
    ROVER_PHOTOS = "mars"
    NEAR_EARTH_OBJECTS = "neo"
    EARTH_IMAGERY = "epic"
    MEDIA_SEARCH = "search"


# Seconds. Upstream data changes at most daily.
REGION_TTLS: Dict[CacheRegion, int] = {
    CacheRegion.DAILY_IMAGE: 3600,
    CacheRegion.ROVER_PHOTOS: 7200,
    CacheRegion.NEAR_EARTH_OBJECTS: 3600,
    CacheRegion.EARTH_IMAGERY: 3600,
    CacheRegion.MEDIA_SEARCH: 7200,
}


def canonical_key(path: str, query_items: Iterable[Tuple[str, str]] = ()) -> str:
    """Build a cache key from a request path and its query parameters.

    Parameters are sorted so that ``?a=1&b=2`` and ``?b=2&a=1`` share a key.
    """
    items = sorted((str(k), str(v)) for k, v in query_items)
    if not items:
        return path
    return f"{path}?{urlencode(items)}"


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now > self.stored_at + self.ttl


class _Region:
    def __init__(self, ttl: float):
        self.ttl = ttl
        self.entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0


class ResponseCache:
    """Lightweight in-memory cache with a fixed TTL per region."""

    def __init__(
        self,
        ttls: Optional[Dict[CacheRegion, float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        # Overrides apply per region; every region always exists.
        merged = {**REGION_TTLS, **{CacheRegion(r): ttl for r, ttl in (ttls or {}).items()}}
        self._regions: Dict[CacheRegion, _Region] = {
            region: _Region(ttl) for region, ttl in merged.items()
        }

    def _region(self, region) -> _Region:
        return self._regions[CacheRegion(region)]

    def get(self, region, key: str) -> Optional[Any]:
        """Get value from cache if present and not expired."""
        store = self._region(region)
        entry = store.entries.get(key)

        if entry is not None and entry.is_expired(self._clock()):
            del store.entries[key]
            entry = None

        if entry is None:
            store.misses += 1
            return None

        store.hits += 1
        logger.debug("Cache hit for: %s", key)
        return entry.value

    def put(self, region, key: str, value: Any) -> None:
        """Store value with the region's TTL, replacing any existing entry."""
        store = self._region(region)
        store.entries[key] = CacheEntry(
            key=key, value=value, stored_at=self._clock(), ttl=store.ttl
        )
        logger.debug("Cached: %s", key)

    def flush(self, region=None) -> None:
        """Drop every entry in one region, or in all regions."""
        targets = [self._region(region)] if region is not None else self._regions.values()
        for store in targets:
            store.entries.clear()

    def stats(self, region=None) -> Dict[str, Any]:
        """Entry count and hit/miss counters.

        Returns the figures for one region when ``region`` is given, otherwise
        a mapping of region name to figures.
        """
        if region is not None:
            return self._region_stats(self._region(region))
        return {name.value: self._region_stats(store) for name, store in self._regions.items()}

    def _region_stats(self, store: _Region) -> Dict[str, Any]:
        now = self._clock()
        for key in [k for k, e in store.entries.items() if e.is_expired(now)]:
            del store.entries[key]

        lookups = store.hits + store.misses
        return {
            "count": len(store.entries),
            "hits": store.hits,
            "misses": store.misses,
            "hitRate": store.hits / lookups if lookups else 0,
        }
