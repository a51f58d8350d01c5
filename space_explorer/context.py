"""Per-process state shared by request handlers."""

from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from fastapi import Request

from space_explorer.cache import ResponseCache
from space_explorer.config import Settings
from space_explorer.fallback import DegradationPolicy
from space_explorer.nasa_client import NASAClient
from space_explorer.rate_limiter import FixedWindowRateLimiter
from space_explorer.service import NASADataService


@dataclass
class AppContext:
    settings: Settings
    cache: ResponseCache
    general_limiter: FixedWindowRateLimiter
    nasa_limiter: FixedWindowRateLimiter
    client: NASAClient
    service: NASADataService

    @classmethod
    def build(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache_clock: Optional[Callable[[], float]] = None,
        limiter_clock: Optional[Callable[[], float]] = None,
    ) -> "AppContext":
        cache = ResponseCache(clock=cache_clock) if cache_clock else ResponseCache()
        limiter_kwargs = {"clock": limiter_clock} if limiter_clock else {}

        return cls(
            settings=settings,
            cache=cache,
            general_limiter=FixedWindowRateLimiter(
                settings.rate_limit_max_requests,
                settings.rate_limit_window_seconds,
                name="general",
                **limiter_kwargs,
            ),
            nasa_limiter=FixedWindowRateLimiter(
                settings.nasa_rate_limit_max_requests,
                settings.rate_limit_window_seconds,
                name="nasa",
                **limiter_kwargs,
            ),
            client=NASAClient(settings, transport=transport),
            service=NASADataService(cache, DegradationPolicy(settings.rate_limit_indicators)),
        )


def get_context(request: Request) -> AppContext:
    return request.app.state.context
