"""Error types and the standard JSON error envelope."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

from space_explorer import API_VERSION
from space_explorer.rate_limiter import RateLimitResult


class UpstreamError(Exception):
    """A call to a NASA API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, category: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.category = category


class UpstreamUnavailable(UpstreamError):
    """No response was received (connection failure or timeout)."""


class UpstreamDataError(UpstreamError):
    """The upstream answered with a non-success status."""


class UpstreamRateLimited(UpstreamDataError):
    """The upstream rejected the call with 429."""


class RateLimitExceeded(Exception):
    """An inbound client went over its request budget."""

    def __init__(self, result: RateLimitResult, message: str):
        super().__init__(message)
        self.result = result
        self.message = message


def error_body(code: str, message: str, **details: Any) -> Dict[str, Any]:
    """Create the standard error payload."""
    return {
        "status": "error",
        "error": {
            "code": code,
            "message": message,
            **details,
        },
        "metadata": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "api_version": API_VERSION,
        },
    }


def error_response(code: str, message: str, status_code: int = 400):
    """Create standard error response and raise HTTPException."""
    raise HTTPException(status_code=status_code, detail=error_body(code, message))
