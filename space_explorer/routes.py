"""
NASA proxy endpoints.

Handlers validate their parameters, then go through the response cache and
the upstream client. Responses keep the upstream's shape apart from the
pagination and summaries added here.
"""

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from space_explorer.cache import CacheRegion, canonical_key
from space_explorer.context import AppContext, get_context
from space_explorer.errors import RateLimitExceeded, error_response
from space_explorer.fallback import FALLBACK_MARKER, FallbackCategory, is_fallback
from space_explorer.rate_limiter import client_identity

logger = logging.getLogger(__name__)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
APOD_FIRST_DATE = datetime(1995, 6, 16).date()
EPIC_FIRST_DATE = "2015-09-01"
MARS_PHOTOS_PER_PAGE = 25
SEARCH_RESULTS_PER_PAGE = 20
MAX_NEO_RANGE_DAYS = 7

VALID_ROVERS = ["curiosity", "opportunity", "spirit", "perseverance"]
VALID_MEDIA_TYPES = ["image", "video", "audio"]

_MER_CAMERAS = [
    {"abbrev": "FHAZ", "name": "Front Hazard Avoidance Camera"},
    {"abbrev": "RHAZ", "name": "Rear Hazard Avoidance Camera"},
    {"abbrev": "NAVCAM", "name": "Navigation Camera"},
    {"abbrev": "PANCAM", "name": "Panoramic Camera"},
    {"abbrev": "MINITES", "name": "Miniature Thermal Emission Spectrometer"},
]

ROVER_CAMERAS = {
    "curiosity": [
        {"abbrev": "FHAZ", "name": "Front Hazard Avoidance Camera"},
        {"abbrev": "RHAZ", "name": "Rear Hazard Avoidance Camera"},
        {"abbrev": "MAST", "name": "Mast Camera"},
        {"abbrev": "CHEMCAM", "name": "Chemistry and Camera Complex"},
        {"abbrev": "MAHLI", "name": "Mars Hand Lens Imager"},
        {"abbrev": "MARDI", "name": "Mars Descent Imager"},
        {"abbrev": "NAVCAM", "name": "Navigation Camera"},
    ],
    "opportunity": _MER_CAMERAS,
    "spirit": _MER_CAMERAS,
    "perseverance": [
        {"abbrev": "EDL_RUCAM", "name": "Rover Up-Look Camera"},
        {"abbrev": "EDL_RDCAM", "name": "Rover Down-Look Camera"},
        {"abbrev": "EDL_DDCAM", "name": "Descent Stage Down-Look Camera"},
        {"abbrev": "EDL_PUCAM1", "name": "Parachute Up-Look Camera A"},
        {"abbrev": "EDL_PUCAM2", "name": "Parachute Up-Look Camera B"},
        {"abbrev": "NAVCAM_LEFT", "name": "Navigation Camera - Left"},
        {"abbrev": "NAVCAM_RIGHT", "name": "Navigation Camera - Right"},
        {"abbrev": "MCZ_LEFT", "name": "Mast Camera Zoom - Left"},
        {"abbrev": "MCZ_RIGHT", "name": "Mast Camera Zoom - Right"},
        {"abbrev": "FRONT_HAZCAM_LEFT_A", "name": "Front Hazard Avoidance Camera - Left"},
        {"abbrev": "FRONT_HAZCAM_RIGHT_A", "name": "Front Hazard Avoidance Camera - Right"},
        {"abbrev": "REAR_HAZCAM_LEFT", "name": "Rear Hazard Avoidance Camera - Left"},
        {"abbrev": "REAR_HAZCAM_RIGHT", "name": "Rear Hazard Avoidance Camera - Right"},
    ],
}

# Lower sorts first
ASSET_SIZE_PRIORITY = {
    "original": 0,
    "large": 1,
    "medium": 2,
    "small": 3,
    "thumbnail": 4,
    "unknown": 5,
}


def enforce_nasa_rate_limit(request: Request, ctx: AppContext = Depends(get_context)):
    """Stricter per-client budget for endpoints that call the NASA API."""
    identity = client_identity(request, ctx.settings.trust_proxy_headers)
    result = ctx.nasa_limiter.hit(identity)
    if not result.allowed:
        raise RateLimitExceeded(
            result, "Too many requests to NASA API. Please wait before trying again."
        )


router = APIRouter(prefix="/api")
nasa_guard = [Depends(enforce_nasa_rate_limit)]


# ============================================================================
# HELPERS
# ============================================================================

def request_key(request: Request) -> str:
    return canonical_key(request.url.path, request.query_params.multi_items())


def carry_marker(source: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    """Flag a reshaped response as sample data when its source was."""
    if is_fallback(source):
        result[FALLBACK_MARKER] = True
    return result


def parse_date(value: str, field: str = "date"):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        error_response("INVALID_DATE", f"Invalid {field}. Use a real calendar date in YYYY-MM-DD format")


def today():
    return datetime.now(timezone.utc).date()


def validate_apod_date(value: str, field: str = "date"):
    date_obj = parse_date(value, field)
    if date_obj < APOD_FIRST_DATE:
        error_response("INVALID_DATE", "APOD started on June 16, 1995")
    if date_obj > today():
        error_response("INVALID_DATE", "Cannot retrieve APOD for future dates")
    return date_obj


def validate_rover(rover: str) -> str:
    rover_key = rover.lower()
    if rover_key not in VALID_ROVERS:
        error_response("INVALID_ROVER", f"Invalid rover. Must be one of: {', '.join(VALID_ROVERS)}")
    return rover_key


def paginate(items: List[Any], page: int, per_page: int) -> List[Any]:
    start = (page - 1) * per_page
    return items[start:start + per_page]


def total_pages(count: int, per_page: int) -> int:
    return -(-count // per_page)


# ============================================================================
# APOD
# ============================================================================

@router.get("/apod", dependencies=nasa_guard)
async def get_apod(
    request: Request,
    date: Optional[str] = Query(None, pattern=DATE_PATTERN, description="Date (YYYY-MM-DD), default today"),
    ctx: AppContext = Depends(get_context),
):
    """Astronomy Picture of the Day for one date."""
    if date:
        validate_apod_date(date)

    async def produce():
        return await ctx.service.fetch(
            FallbackCategory.DAILY_IMAGE, lambda: ctx.client.get_apod(date), {"date": date}
        )

    return await ctx.service.cached(CacheRegion.DAILY_IMAGE, request_key(request), produce)


@router.get("/apod/range", dependencies=nasa_guard)
async def get_apod_range(
    request: Request,
    start_date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    end_date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    ctx: AppContext = Depends(get_context),
):
    """Astronomy Pictures of the Day for an inclusive date range."""
    if not start_date or not end_date:
        error_response("MISSING_PARAMETER", "Both start_date and end_date are required")

    start = validate_apod_date(start_date, "start_date")
    end = validate_apod_date(end_date, "end_date")
    if start > end:
        error_response("INVALID_DATE", "start_date must not be after end_date")

    async def produce():
        return await ctx.service.fetch(
            FallbackCategory.DAILY_IMAGE,
            lambda: ctx.client.get_apod_range(start_date, end_date),
            {"start_date": start_date, "end_date": end_date},
        )

    return await ctx.service.cached(CacheRegion.DAILY_IMAGE, request_key(request), produce)


@router.get("/apod/random", dependencies=nasa_guard)
async def get_random_apod(ctx: AppContext = Depends(get_context)):
    """APOD for a random date since the archive began. Never cached."""
    span = (today() - APOD_FIRST_DATE).days
    date = (APOD_FIRST_DATE + timedelta(days=random.randint(0, span))).isoformat()
    logger.debug("Random APOD date: %s", date)

    return await ctx.service.fetch(
        FallbackCategory.DAILY_IMAGE, lambda: ctx.client.get_apod(date), {"date": date}
    )


# ============================================================================
# MARS ROVER PHOTOS
# ============================================================================

@router.get("/mars", dependencies=nasa_guard)
async def get_mars_photos(
    request: Request,
    sol: int = Query(1000, description="Martian sol"),
    camera: Optional[str] = Query(None, description="Camera abbreviation"),
    rover: str = Query("curiosity", description="Rover name"),
    page: int = Query(1, ge=1),
    ctx: AppContext = Depends(get_context),
):
    """Rover photos for a sol, 25 per page."""
    if sol < 0:
        error_response("INVALID_SOL", "Invalid sol value. Must be a non-negative number.")
    rover_key = validate_rover(rover)

    async def produce():
        data = await ctx.service.fetch(
            FallbackCategory.ROVER_PHOTOS,
            lambda: ctx.client.get_mars_photos(sol, camera, rover_key),
            {"sol": sol, "camera": camera, "rover": rover_key},
        )
        photos = data.get("photos", [])
        return carry_marker(data, {
            "photos": paginate(photos, page, MARS_PHOTOS_PER_PAGE),
            "total": len(photos),
            "page": page,
            "totalPages": total_pages(len(photos), MARS_PHOTOS_PER_PAGE),
            "sol": sol,
            "rover": rover,
            "camera": camera,
        })

    return await ctx.service.cached(CacheRegion.ROVER_PHOTOS, request_key(request), produce)


@router.get("/mars/manifest/{rover}", dependencies=nasa_guard)
async def get_rover_manifest(
    rover: str,
    request: Request,
    ctx: AppContext = Depends(get_context),
):
    """Mission details and available sols for a rover."""
    rover_key = validate_rover(rover)

    async def produce():
        return await ctx.service.fetch(
            FallbackCategory.ROVER_MANIFEST,
            lambda: ctx.client.get_rover_manifest(rover_key),
            {"rover": rover_key},
        )

    return await ctx.service.cached(CacheRegion.ROVER_PHOTOS, request_key(request), produce)


@router.get("/mars/cameras/{rover}")
async def get_rover_cameras(rover: str):
    cameras = ROVER_CAMERAS.get(rover.lower())
    if cameras is None:
        error_response("INVALID_ROVER", "Invalid rover name")
    return {"rover": rover, "cameras": cameras}


# ============================================================================
# NEAR EARTH OBJECTS
# ============================================================================

def summarize_neo_feed(data: Dict[str, Any], start_date: str, end_date: str) -> Dict[str, Any]:
    """
    Reshape a NEO feed for the dashboard.

    Adds per-day asteroid summaries, the number of potentially hazardous
    objects, the closest approach and the largest object in the feed.
    """
    result = {
        "element_count": data.get("element_count"),
        "links": data.get("links"),
        "start_date": start_date,
        "end_date": end_date,
        "asteroids_by_date": {},
        "potentially_hazardous_count": 0,
        "closest_approach": None,
        "largest_asteroid": None,
    }
    closest_km = None

    for day, asteroids in data.get("near_earth_objects", {}).items():
        summaries = []
        for asteroid in asteroids:
            diameter = asteroid["estimated_diameter"]["meters"]
            hazardous = asteroid["is_potentially_hazardous_asteroid"]
            approaches = asteroid.get("close_approach_data") or []

            if hazardous:
                result["potentially_hazardous_count"] += 1

            close_approach = None
            if approaches:
                approach = approaches[0]
                miss_km = float(approach["miss_distance"]["kilometers"])
                if closest_km is None or miss_km < closest_km:
                    closest_km = miss_km
                    result["closest_approach"] = {
                        "name": asteroid["name"],
                        "date": approach.get("close_approach_date_full"),
                        "miss_distance": approach["miss_distance"],
                        "velocity": approach["relative_velocity"],
                    }
                close_approach = {
                    "date": approach.get("close_approach_date_full"),
                    "miss_distance_km": miss_km,
                    "velocity_kmh": float(approach["relative_velocity"]["kilometers_per_hour"]),
                }

            largest = result["largest_asteroid"]
            if largest is None or diameter["estimated_diameter_max"] > largest["diameter"]:
                result["largest_asteroid"] = {
                    "name": asteroid["name"],
                    "diameter": diameter["estimated_diameter_max"],
                    "is_hazardous": hazardous,
                }

            summaries.append({
                "id": asteroid["id"],
                "name": asteroid["name"],
                "nasa_jpl_url": asteroid.get("nasa_jpl_url"),
                "is_potentially_hazardous": hazardous,
                "diameter_meters": {
                    "min": diameter["estimated_diameter_min"],
                    "max": diameter["estimated_diameter_max"],
                },
                "close_approach": close_approach,
            })
        result["asteroids_by_date"][day] = summaries

    return carry_marker(data, result)


@router.get("/neo", dependencies=nasa_guard)
async def get_neo_feed(
    request: Request,
    start_date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    end_date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    ctx: AppContext = Depends(get_context),
):
    """Near Earth Objects for at most seven days, default the coming week."""
    start_date = start_date or today().isoformat()
    end_date = end_date or (today() + timedelta(days=MAX_NEO_RANGE_DAYS)).isoformat()

    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if start > end:
        error_response("INVALID_DATE", "start_date must not be after end_date")
    if (end - start).days > MAX_NEO_RANGE_DAYS:
        error_response("INVALID_DATE_RANGE", "Date range cannot exceed 7 days")

    async def produce():
        data = await ctx.service.fetch(
            FallbackCategory.NEAR_EARTH_OBJECTS,
            lambda: ctx.client.get_neo_feed(start_date, end_date),
            {"start_date": start_date, "end_date": end_date},
        )
        return summarize_neo_feed(data, start_date, end_date)

    return await ctx.service.cached(CacheRegion.NEAR_EARTH_OBJECTS, request_key(request), produce)


@router.get("/neo/{asteroid_id}", dependencies=nasa_guard)
async def get_asteroid(
    asteroid_id: str,
    request: Request,
    ctx: AppContext = Depends(get_context),
):
    if not asteroid_id.isdigit():
        error_response("INVALID_ASTEROID_ID", "Invalid asteroid ID")

    async def produce():
        return await ctx.client.get_asteroid(asteroid_id)

    return await ctx.service.cached(CacheRegion.NEAR_EARTH_OBJECTS, request_key(request), produce)


# ============================================================================
# EPIC (Earth Polychromatic Imaging Camera)
# ============================================================================

@router.get("/epic", dependencies=nasa_guard)
async def get_epic_images(
    request: Request,
    date: Optional[str] = Query(None, pattern=DATE_PATTERN, description="Date (YYYY-MM-DD), default latest"),
    ctx: AppContext = Depends(get_context),
):
    """Natural-color EPIC images of Earth for a date."""
    if date:
        parse_date(date)

    async def produce():
        data = await ctx.service.fetch(
            FallbackCategory.EARTH_IMAGERY, lambda: ctx.client.get_epic(date), {"date": date}
        )
        if not data:
            return {
                "message": "No images available for this date",
                "date": date or "latest",
                "images": [],
            }
        return {
            "date": date or data[0]["date"],
            "image_count": len(data),
            "images": data,
        }

    return await ctx.service.cached(CacheRegion.EARTH_IMAGERY, request_key(request), produce)


@router.get("/epic/dates")
async def get_epic_info():
    return {
        "info": "EPIC provides daily images of Earth since 2015",
        "first_available": EPIC_FIRST_DATE,
        "update_frequency": "Daily (when operational)",
        "typical_images_per_day": "12-24",
        "note": "Use /api/epic?date=YYYY-MM-DD to get images for a specific date",
    }


# ============================================================================
# NASA IMAGE AND VIDEO LIBRARY
# ============================================================================

def summarize_search_item(item: Dict[str, Any]) -> Dict[str, Any]:
    info = item["data"][0]
    thumbnail = next(
        (link.get("href") for link in item.get("links", []) if link.get("rel") == "preview"),
        None,
    )
    return {
        "nasa_id": info.get("nasa_id"),
        "title": info.get("title"),
        "description": info.get("description"),
        "keywords": info.get("keywords"),
        "date_created": info.get("date_created"),
        "center": info.get("center"),
        "media_type": info.get("media_type"),
        "thumbnail": thumbnail,
        "location": info.get("location"),
    }


def asset_size(href: str) -> str:
    for marker, size in (
        ("~orig", "original"),
        ("~large", "large"),
        ("~medium", "medium"),
        ("~small", "small"),
        ("~thumb", "thumbnail"),
    ):
        if marker in href:
            return size
    return "unknown"


@router.get("/search", dependencies=nasa_guard)
async def search_library(
    request: Request,
    q: Optional[str] = Query(None, description="Search terms"),
    media_type: str = Query("image"),
    page: int = Query(1, ge=1),
    ctx: AppContext = Depends(get_context),
):
    """Search the NASA Image and Video Library, 20 results per page."""
    if not q or not q.strip():
        error_response("MISSING_PARAMETER", "Search query (q) is required")
    if media_type not in VALID_MEDIA_TYPES:
        error_response(
            "INVALID_MEDIA_TYPE",
            f"Invalid media_type. Must be one of: {', '.join(VALID_MEDIA_TYPES)}",
        )

    async def produce():
        data = await ctx.service.fetch(
            FallbackCategory.MEDIA_SEARCH,
            lambda: ctx.client.search_images(q, media_type),
            {"q": q, "media_type": media_type},
        )
        collection = data.get("collection", {})
        items = [summarize_search_item(item) for item in collection.get("items", [])]
        return carry_marker(data, {
            "query": q,
            "media_type": media_type,
            "total_hits": collection.get("metadata", {}).get("total_hits", len(items)),
            "page": page,
            "total_pages": total_pages(len(items), SEARCH_RESULTS_PER_PAGE),
            "results": paginate(items, page, SEARCH_RESULTS_PER_PAGE),
        })

    return await ctx.service.cached(CacheRegion.MEDIA_SEARCH, request_key(request), produce)


@router.get("/search/asset/{nasa_id}", dependencies=nasa_guard)
async def get_asset(
    nasa_id: str,
    request: Request,
    ctx: AppContext = Depends(get_context),
):
    """Downloadable renditions of a library item, largest first."""
    async def produce():
        data = await ctx.client.get_image_assets(nasa_id)
        assets = [
            {
                "href": item["href"],
                "title": item["href"].split("/")[-1],
                "size": asset_size(item["href"]),
            }
            for item in data.get("collection", {}).get("items", [])
        ]
        assets.sort(key=lambda asset: ASSET_SIZE_PRIORITY[asset["size"]])
        return {"nasa_id": nasa_id, "assets": assets}

    return await ctx.service.cached(CacheRegion.MEDIA_SEARCH, request_key(request), produce)


# ============================================================================
# CACHE STATS
# ============================================================================

@router.get("/cache/stats")
async def get_cache_stats(ctx: AppContext = Depends(get_context)):
    """Entry counts and hit rates per cache region."""
    return ctx.cache.stats()
