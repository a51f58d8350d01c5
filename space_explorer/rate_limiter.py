"""
Fixed-window request limiter keyed by client identity.

Stale windows are swept on every call; the sweep is linear in the number of
identities seen within the last window.
"""

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int

    def headers(self) -> Dict[str, str]:
        """Informational headers describing the caller's allowance."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat(),
        }


class FixedWindowRateLimiter:
    """Counts requests per identity in fixed windows of ``window_seconds``."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 60,
        name: str = "general",
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}

    @property
    def tracked_identities(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float, keep: str) -> None:
        """Forget expired windows of every identity except ``keep``."""
        stale = [
            identity
            for identity, window in self._windows.items()
            if identity != keep and now - window.window_start > self.window_seconds
        ]
        for identity in stale:
            del self._windows[identity]

    def hit(self, identity: str) -> RateLimitResult:
        """Record one request from ``identity`` and decide whether it may proceed."""
        now = self._clock()
        self._sweep(now, keep=identity)

        window = self._windows.get(identity)
        if window is None:
            window = RateWindow(window_start=now)
            self._windows[identity] = window

        if now - window.window_start > self.window_seconds:
            window.window_start = now
            window.count = 1
        else:
            window.count += 1

        reset_at = window.window_start + self.window_seconds
        allowed = window.count <= self.max_requests
        if not allowed:
            logger.warning(
                "Rate limit hit for %s on %s limiter: %d requests",
                identity, self.name, window.count,
            )

        return RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - window.count),
            reset_at=reset_at,
            retry_after=0 if allowed else max(1, math.ceil(reset_at - now)),
        )

    def reset(self) -> None:
        self._windows.clear()


def client_identity(request: Request, trust_proxy_headers: bool = False) -> str:
    """Identify the caller by source address."""
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"
