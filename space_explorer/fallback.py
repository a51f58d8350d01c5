"""
Sample data served in place of NASA responses while the NASA API is
rate limiting us.

Every payload has the same shape as the real API response so the route
handlers can process it unchanged. Substituted payloads carry
``FALLBACK_MARKER: True`` so the frontend can show its "demo data" notice.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from space_explorer.errors import UpstreamError

logger = logging.getLogger(__name__)

FALLBACK_MARKER = "_isFallbackData"


class FallbackCategory(str, Enum):
    DAILY_IMAGE = "apod"
    ROVER_PHOTOS = "mars"
    ROVER_MANIFEST = "manifest"
    NEAR_EARTH_OBJECTS = "neo"
    EARTH_IMAGERY = "epic"
    MEDIA_SEARCH = "search"


# ============================================================================
# BUNDLED DATASET
# ============================================================================

FALLBACK_APOD_COLLECTION: Dict[str, Dict[str, Any]] = {
    "2025-07-01": {
        "date": "2025-07-01",
        "explanation": "This colorized and digitally sharpened image of the Sun is composed of frames recording emission from hydrogen atoms in the solar chromosphere. A dark, serpentine filament snakes across the bright solar disk in this stunning view of solar cycle 25 activity.",
        "hdurl": "https://apod.nasa.gov/apod/image/2406/Sun_Meunier_4000.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "A Prominent Solar Filament",
        "url": "https://apod.nasa.gov/apod/image/2406/Sun_Meunier_1024.jpg",
    },
    "2025-06-30": {
        "date": "2025-06-30",
        "explanation": "This stunning view shows the International Space Station silhouetted against the Sun during a solar transit. The entire transit event lasted less than a second, but this single frame captures the moment when the ISS appeared as a dark spot against our star.",
        "hdurl": "https://apod.nasa.gov/apod/image/2306/IssTransitSun_Vantuyne_2048.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "International Space Station Transits the Sun",
        "url": "https://apod.nasa.gov/apod/image/2306/IssTransitSun_Vantuyne_1024.jpg",
    },
    "2025-06-29": {
        "date": "2025-06-29",
        "explanation": "What created this unusual planetary nebula? NGC 7027 is one of the smallest, brightest, and most unusual planetary nebulae known. The central white dwarf star is surrounded by shells of gas expelled during its final evolutionary stages.",
        "hdurl": "https://apod.nasa.gov/apod/image/2305/ngc7027_hubble_2048.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "Planetary Nebula NGC 7027",
        "url": "https://apod.nasa.gov/apod/image/2305/ngc7027_hubble_1024.jpg",
    },
    "2025-06-28": {
        "date": "2025-06-28",
        "explanation": "The Andromeda Galaxy is the nearest major galaxy to our Milky Way. This deep image shows Andromeda's spiral structure along with two prominent satellite galaxies. Also known as M31, the Andromeda Galaxy is located about 2.5 million light-years away.",
        "hdurl": "https://apod.nasa.gov/apod/image/2405/M31_Dyer_4096.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "The Andromeda Galaxy",
        "url": "https://apod.nasa.gov/apod/image/2405/M31_Dyer_1024.jpg",
    },
    "2025-06-27": {
        "date": "2025-06-27",
        "explanation": "This spectacular aurora was photographed from the International Space Station as it orbited high above the Earth. The dancing lights of the aurora are caused by charged particles from the Sun interacting with Earth's magnetic field and atmosphere.",
        "hdurl": "https://apod.nasa.gov/apod/image/2304/aurora_iss_4096.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "Aurora from the Space Station",
        "url": "https://apod.nasa.gov/apod/image/2304/aurora_iss_1024.jpg",
    },
    "2025-06-26": {
        "date": "2025-06-26",
        "explanation": "The Eagle Nebula is a star-forming region located about 7,000 light-years away in the constellation Serpens. This iconic nebula contains the famous 'Pillars of Creation' - towering columns of gas and dust where new stars are being born.",
        "hdurl": "https://apod.nasa.gov/apod/image/2304/eagle_nebula_hst_4096.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "The Eagle Nebula",
        "url": "https://apod.nasa.gov/apod/image/2304/eagle_nebula_hst_1024.jpg",
    },
    "2025-06-25": {
        "date": "2025-06-25",
        "explanation": "Saturn's largest moon Titan has a thick atmosphere and lakes of liquid methane. This infrared image from the Cassini spacecraft reveals the moon's surface features through its hazy atmosphere, showing a world both alien and fascinating.",
        "hdurl": "https://apod.nasa.gov/apod/image/2303/titan_cassini_4096.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "Titan: Saturn's Largest Moon",
        "url": "https://apod.nasa.gov/apod/image/2303/titan_cassini_1024.jpg",
    },
}

BASELINE_APOD_DATE = "2025-07-01"

FALLBACK_MARS_PHOTOS: Dict[str, Any] = {
    "photos": [
        {
            "id": 1000000,
            "sol": 1000,
            "camera": {
                "id": 20,
                "name": "FHAZ",
                "rover_id": 5,
                "full_name": "Front Hazard Avoidance Camera",
            },
            "img_src": "https://mars.nasa.gov/msl-raw-images/proj/msl/redops/ods/surface/sol/01000/opgs/edr/fcam/FLB_486265257EDR_F0481570FHAZ00323M_.JPG",
            "earth_date": "2015-05-30",
            "rover": {
                "id": 5,
                "name": "Curiosity",
                "landing_date": "2012-08-06",
                "launch_date": "2011-11-26",
                "status": "active",
            },
        }
    ],
    "total": 1,
}

FALLBACK_NEO_FEED: Dict[str, Any] = {
    "element_count": 2,
    "links": {
        "next": None,
        "prev": None,
        "self": "https://api.nasa.gov/neo/rest/v1/feed",
    },
    "near_earth_objects": {
        "2024-06-15": [
            {
                "id": "54016112",
                "neo_reference_id": "54016112",
                "name": "(2020 GE)",
                "nasa_jpl_url": "http://ssd.jpl.nasa.gov/sbdb.cgi?sstr=54016112",
                "absolute_magnitude_h": 22.1,
                "estimated_diameter": {
                    "meters": {
                        "estimated_diameter_min": 134.2,
                        "estimated_diameter_max": 300.1,
                    }
                },
                "is_potentially_hazardous_asteroid": True,
                "close_approach_data": [
                    {
                        "close_approach_date": "2024-06-15",
                        "close_approach_date_full": "2024-Jun-15 12:30",
                        "epoch_date_close_approach": 1718456400000,
                        "relative_velocity": {
                            "kilometers_per_second": "15.22",
                            "kilometers_per_hour": "54783.12",
                            "miles_per_hour": "34029.45",
                        },
                        "miss_distance": {
                            "astronomical": "0.0489",
                            "lunar": "19.03",
                            "kilometers": "7329803.2",
                            "miles": "4552678.8",
                        },
                    }
                ],
            },
            {
                "id": "54016113",
                "neo_reference_id": "54016113",
                "name": "(2020 AF)",
                "nasa_jpl_url": "http://ssd.jpl.nasa.gov/sbdb.cgi?sstr=54016113",
                "absolute_magnitude_h": 24.5,
                "estimated_diameter": {
                    "meters": {
                        "estimated_diameter_min": 45.8,
                        "estimated_diameter_max": 102.4,
                    }
                },
                "is_potentially_hazardous_asteroid": False,
                "close_approach_data": [
                    {
                        "close_approach_date": "2024-06-15",
                        "close_approach_date_full": "2024-Jun-15 08:15",
                        "epoch_date_close_approach": 1718441700000,
                        "relative_velocity": {
                            "kilometers_per_second": "6.43",
                            "kilometers_per_hour": "23156.78",
                            "miles_per_hour": "14384.23",
                        },
                        "miss_distance": {
                            "astronomical": "0.1031",
                            "lunar": "40.11",
                            "kilometers": "15432567.1",
                            "miles": "9587432.3",
                        },
                    }
                ],
            },
        ]
    },
}

FALLBACK_SEARCH_RESULTS: Dict[str, Any] = {
    "collection": {
        "version": "1.0",
        "href": "https://images-api.nasa.gov/search",
        "items": [
            {
                "href": "https://images-assets.nasa.gov/image/PIA12348/collection.json",
                "data": [
                    {
                        "nasa_id": "PIA12348",
                        "title": "Hubble Space Telescope",
                        "description": "The Hubble Space Telescope floating in space.",
                        "media_type": "image",
                        "date_created": "2009-05-11T00:00:00Z",
                    }
                ],
                "links": [
                    {
                        "href": "https://images-assets.nasa.gov/image/PIA12348/PIA12348~thumb.jpg",
                        "rel": "preview",
                        "render": "image",
                    }
                ],
            }
        ],
        "metadata": {"total_hits": 1},
    }
}

FALLBACK_ROVER_MANIFEST: Dict[str, Any] = {
    "photo_manifest": {
        "name": "Curiosity",
        "landing_date": "2012-08-06",
        "launch_date": "2011-11-26",
        "status": "active",
        "max_sol": 4000,
        "max_date": "2024-06-15",
        "total_photos": 695000,
        "photos": [
            {
                "sol": 1000,
                "earth_date": "2015-05-30",
                "total_photos": 45,
                "cameras": ["FHAZ", "RHAZ", "MAST", "CHEMCAM", "MAHLI", "MARDI", "NAVCAM"],
            }
        ],
    }
}

STATIC_FALLBACKS: Dict[FallbackCategory, Dict[str, Any]] = {
    FallbackCategory.ROVER_PHOTOS: FALLBACK_MARS_PHOTOS,
    FallbackCategory.ROVER_MANIFEST: FALLBACK_ROVER_MANIFEST,
    FallbackCategory.NEAR_EARTH_OBJECTS: FALLBACK_NEO_FEED,
    FallbackCategory.MEDIA_SEARCH: FALLBACK_SEARCH_RESULTS,
}


# ============================================================================
# SELECTION
# ============================================================================

def mark_fallback(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Shallow copy of ``payload`` flagged as sample data."""
    return {**payload, FALLBACK_MARKER: True}


def is_fallback(payload: Union[Mapping[str, Any], List[Any], None]) -> bool:
    """True if the payload, or any item of a list payload, is sample data."""
    if isinstance(payload, list):
        return any(is_fallback(item) for item in payload)
    if isinstance(payload, Mapping):
        return bool(payload.get(FALLBACK_MARKER))
    return False


def _parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def fallback_apod(requested_date: Optional[str] = None, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Pick the bundled APOD for a date.

    Exact matches win. Otherwise the nearest bundled date by day count is
    used, the earlier one on a tie. Without a date, today's entry is used
    if bundled, else the baseline entry.
    """
    if not requested_date:
        today = today or datetime.now(timezone.utc).date()
        entry = FALLBACK_APOD_COLLECTION.get(
            today.isoformat(), FALLBACK_APOD_COLLECTION[BASELINE_APOD_DATE]
        )
        return mark_fallback(entry)

    if requested_date in FALLBACK_APOD_COLLECTION:
        return mark_fallback(FALLBACK_APOD_COLLECTION[requested_date])

    target = _parse_date(requested_date)
    closest_date = None
    smallest_diff = None
    for available in sorted(FALLBACK_APOD_COLLECTION):
        diff = abs((_parse_date(available) - target).days)
        if smallest_diff is None or diff < smallest_diff:
            closest_date, smallest_diff = available, diff

    return mark_fallback(FALLBACK_APOD_COLLECTION[closest_date])


def fallback_apod_range(start_date: str, end_date: str) -> List[Dict[str, Any]]:
    """One substituted APOD per calendar day from start to end, inclusive."""
    start, end = _parse_date(start_date), _parse_date(end_date)
    days = (end - start).days
    return [
        fallback_apod((start + timedelta(days=offset)).isoformat())
        for offset in range(days + 1)
    ]


class DegradationPolicy:
    """Decides when an upstream failure may be answered with sample data."""

    def __init__(self, indicators: Iterable[str] = ("rate limit", "429")):
        self.indicators = [indicator.lower() for indicator in indicators]

    def is_degraded_condition(self, error: Exception) -> bool:
        """True for failures caused by NASA rate limiting."""
        if getattr(error, "status_code", None) == 429:
            return True
        message = (getattr(error, "message", None) or str(error)).lower()
        return any(indicator in message for indicator in self.indicators)

    def select_fallback(
        self,
        category: FallbackCategory,
        params: Optional[Mapping[str, Any]] = None,
        today: Optional[date] = None,
    ) -> Union[Dict[str, Any], List[Dict[str, Any]], None]:
        """Sample payload for a category, or None if nothing is bundled for it."""
        params = params or {}
        category = FallbackCategory(category)

        if category is FallbackCategory.DAILY_IMAGE:
            if params.get("start_date") and params.get("end_date"):
                return fallback_apod_range(params["start_date"], params["end_date"])
            return fallback_apod(params.get("date"), today=today)

        payload = STATIC_FALLBACKS.get(category)
        if payload is None:
            return None
        return mark_fallback(payload)

    def substitute(
        self,
        error: UpstreamError,
        category: FallbackCategory,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Union[Dict[str, Any], List[Dict[str, Any]], None]:
        """Fallback payload for ``error`` if it is a rate-limit failure, else None."""
        if not self.is_degraded_condition(error):
            return None
        payload = self.select_fallback(category, params)
        if payload is not None:
            logger.warning(
                "NASA API rate limited for %s, serving fallback data", FallbackCategory(category).value
            )
        return payload
