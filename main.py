"""
NASA Space Explorer Backend
FastAPI proxy in front of NASA's open APIs (APOD, Mars Rover Photos, NeoWs,
EPIC and the Image and Video Library) with response caching, per-client
rate limiting and sample-data fallback while NASA is rate limiting us.
"""

import logging
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from space_explorer import __version__
from space_explorer.config import Settings, get_settings
from space_explorer.context import AppContext
from space_explorer.errors import (
    RateLimitExceeded,
    UpstreamDataError,
    UpstreamError,
    UpstreamRateLimited,
    UpstreamUnavailable,
    error_body,
)
from space_explorer.rate_limiter import RateLimitResult, client_identity
from space_explorer.routes import router

logger = logging.getLogger("space_explorer")

# Not subject to the inbound rate limiter
UNLIMITED_PATHS = {"/", "/health"}


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="[%(asctime)s] | [%(levelname)s] | [%(name)s] | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def rate_limited_response(result: RateLimitResult, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content=error_body("RATE_LIMITED", message, retryAfter=result.retry_after),
        headers={"Retry-After": str(result.retry_after), **result.headers()},
    )


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict):
            content = exc.detail
        elif exc.status_code == 404:
            content = error_body("NOT_FOUND", f"Cannot {request.method} {request.url.path}")
        else:
            content = error_body("HTTP_ERROR", str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        problems = [
            f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_body("INVALID_PARAMETER", "; ".join(problems) or "Invalid request"),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        return rate_limited_response(exc.result, exc.message)

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        details = {"category": exc.category, "upstream_status": exc.status_code}
        if isinstance(exc, UpstreamUnavailable):
            status_code, code = 503, "SERVICE_UNAVAILABLE"
        elif isinstance(exc, UpstreamRateLimited):
            status_code, code = 429, "UPSTREAM_RATE_LIMITED"
        elif isinstance(exc, UpstreamDataError) and exc.status_code == 404:
            status_code, code = 404, "NOT_FOUND"
        else:
            status_code, code = 502, "UPSTREAM_ERROR"
        return JSONResponse(status_code=status_code, content=error_body(code, exc.message, **details))

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        details = {}
        if settings.is_development:
            details = {
                "detail": str(exc),
                "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            }
        return JSONResponse(
            status_code=500,
            content=error_body("INTERNAL_ERROR", "Internal Server Error", **details),
        )


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    cache_clock: Optional[Callable[[], float]] = None,
    limiter_clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    settings = settings or get_settings()
    context = AppContext.build(
        settings, transport=transport, cache_clock=cache_clock, limiter_clock=limiter_clock
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "NASA Space Explorer backend starting (environment=%s, NASA API key %s)",
            settings.environment,
            "configured" if settings.nasa_api_key.get_secret_value() != "DEMO_KEY" else "missing, using DEMO_KEY",
        )
        yield
        logger.info("NASA Space Explorer backend stopped")

    app = FastAPI(
        title="NASA Space Explorer API",
        description="Caching proxy for NASA's open APIs",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.context = context

    # Middleware added last runs first.
    @app.middleware("http")
    async def enforce_rate_limit(request: Request, call_next):
        if request.url.path in UNLIMITED_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        identity = client_identity(request, settings.trust_proxy_headers)
        result = context.general_limiter.hit(identity)
        if not result.allowed:
            return rate_limited_response(
                result, "Please slow down your requests. Try again in a minute."
            )

        response = await call_next(request)
        for name, value in result.headers().items():
            response.headers[name] = value
        return response

    # Wraps the limiter, so 429 rejections are logged as well
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s %s %.1fms",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    register_exception_handlers(app, settings)
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "environment": settings.environment,
        }

    @app.get("/")
    async def root():
        """API information and documentation links."""
        return {
            "service": "NASA Space Explorer API",
            "version": __version__,
            "documentation": "/docs",
            "health": "/health",
            "endpoints": {
                "apod": "/api/apod",
                "apod_range": "/api/apod/range",
                "apod_random": "/api/apod/random",
                "mars_photos": "/api/mars",
                "rover_manifest": "/api/mars/manifest/{rover}",
                "rover_cameras": "/api/mars/cameras/{rover}",
                "neo": "/api/neo",
                "asteroid": "/api/neo/{asteroid_id}",
                "epic": "/api/epic",
                "epic_dates": "/api/epic/dates",
                "search": "/api/search",
                "asset": "/api/search/asset/{nasa_id}",
                "cache_stats": "/api/cache/stats",
            },
        }

    return app


configure_logging(get_settings().log_level)
app = create_app()


# ============================================================================
# APPLICATION STARTUP
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
