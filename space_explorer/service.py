"""Cache-then-upstream lookup with fallback substitution on rate limiting."""

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from space_explorer.cache import CacheRegion, ResponseCache
from space_explorer.errors import UpstreamError
from space_explorer.fallback import DegradationPolicy, FallbackCategory, is_fallback

logger = logging.getLogger(__name__)


class NASADataService:
    def __init__(self, cache: ResponseCache, policy: DegradationPolicy):
        self.cache = cache
        self.policy = policy

    async def fetch(
        self,
        category: FallbackCategory,
        call: Callable[[], Awaitable[Any]],
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Make one upstream call.

        Rate-limit failures are answered with marked sample data when the
        category has some bundled; every other failure is re-raised.
        """
        try:
            return await call()
        except UpstreamError as e:
            substitute = self.policy.substitute(e, category, params)
            if substitute is None:
                raise
            return substitute

    async def cached(
        self,
        region: CacheRegion,
        key: str,
        produce: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Serve ``key`` from ``region``, producing and storing it on a miss.

        Only genuine results are stored: errors propagate without touching
        the cache and sample data is returned but not kept.

        Concurrent misses for one key each call ``produce``; the last write
        wins.
        """
        cached_value = self.cache.get(region, key)
        if cached_value is not None:
            return cached_value

        value = await produce()
        if is_fallback(value):
            logger.info("Not caching fallback data for: %s", key)
        else:
            self.cache.put(region, key, value)
        return value
