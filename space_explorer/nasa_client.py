"""
Client for the NASA open APIs (api.nasa.gov) and the NASA Image and Video
Library (images-api.nasa.gov).

Every failure is raised as an ``UpstreamError`` subclass carrying the HTTP
status (when there was a response) and the name of the endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from space_explorer.config import Settings
from space_explorer.errors import (
    UpstreamDataError,
    UpstreamError,
    UpstreamRateLimited,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("msg") or body.get("error_message")
        if not message and isinstance(body.get("error"), dict):
            message = body["error"].get("message")
        if message:
            return str(message)
    return response.reason_phrase


def translate_error(error: Exception, endpoint: str) -> UpstreamError:
    """Turn an httpx failure into the matching ``UpstreamError``."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return UpstreamRateLimited(
                "NASA API rate limit exceeded. Please try again later.", status, endpoint
            )
        if status == 403:
            return UpstreamDataError(
                "NASA API key is invalid or missing. Please check your configuration.",
                status, endpoint,
            )
        if status == 404:
            return UpstreamDataError(f"{endpoint}: Requested data not found.", status, endpoint)
        return UpstreamDataError(
            f"{endpoint} API Error ({status}): {_upstream_message(error.response)}",
            status, endpoint,
        )
    if isinstance(error, httpx.RequestError):
        return UpstreamUnavailable(
            f"{endpoint}: Unable to reach NASA API. Please check your connection.",
            None, endpoint,
        )
    return UpstreamError(f"{endpoint}: {error}", None, endpoint)


class NASAClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @property
    def api_key(self) -> str:
        return self.settings.nasa_api_key.get_secret_value()

    async def _get(
        self,
        endpoint: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        with_key: bool = True,
    ) -> Any:
        query = {k: v for k, v in (params or {}).items() if v is not None}
        if with_key:
            query["api_key"] = self.api_key

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.upstream_timeout_seconds,
                headers=DEFAULT_HEADERS,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=query)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "NASA API Error: %s - %s", e.response.status_code, _upstream_message(e.response)
            )
            raise translate_error(e, endpoint) from e
        except httpx.RequestError as e:
            logger.error("NASA API: No response received from %s (%s)", endpoint, e)
            raise translate_error(e, endpoint) from e
        except ValueError as e:
            logger.error("NASA API: %s returned a body that is not JSON", endpoint)
            raise UpstreamDataError(
                f"{endpoint}: NASA API returned an invalid response.", response.status_code, endpoint
            ) from e

    def _api(self, path: str) -> str:
        return f"{self.settings.nasa_base_url.rstrip('/')}{path}"

    # ------------------------------------------------------------------ APOD

    async def get_apod(self, date: Optional[str] = None) -> Dict[str, Any]:
        return await self._get(
            "APOD", self._api("/planetary/apod"), {"date": date, "thumbs": "true"}
        )

    async def get_apod_range(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        return await self._get(
            "APOD Range",
            self._api("/planetary/apod"),
            {"start_date": start_date, "end_date": end_date, "thumbs": "true"},
        )

    # ------------------------------------------------------------------ Mars

    async def get_mars_photos(
        self, sol: int = 1000, camera: Optional[str] = None, rover: str = "curiosity"
    ) -> Dict[str, Any]:
        return await self._get(
            "Mars Photos",
            self._api(f"/mars-photos/api/v1/rovers/{rover}/photos"),
            {"sol": sol, "camera": camera},
        )

    async def get_rover_manifest(self, rover: str = "curiosity") -> Dict[str, Any]:
        return await self._get("Rover Manifest", self._api(f"/mars-photos/api/v1/manifests/{rover}"))

    # ------------------------------------------------------------------ NEO

    async def get_neo_feed(self, start_date: str, end_date: str) -> Dict[str, Any]:
        return await self._get(
            "NEO",
            self._api("/neo/rest/v1/feed"),
            {"start_date": start_date, "end_date": end_date, "detailed": "true"},
        )

    async def get_asteroid(self, asteroid_id: str) -> Dict[str, Any]:
        return await self._get("Asteroid Details", self._api(f"/neo/rest/v1/neo/{asteroid_id}"))

    # ------------------------------------------------------------------ EPIC

    async def get_epic(self, date: Optional[str] = None) -> List[Dict[str, Any]]:
        path = f"/EPIC/api/natural/date/{date}" if date else "/EPIC/api/natural"
        data = await self._get("EPIC", self._api(path))

        if isinstance(data, list):
            return [{**item, "image_url": self.epic_image_url(item)} for item in data]
        return data

    def epic_image_url(self, item: Dict[str, Any]) -> str:
        year, month, day = item["date"].split()[0].split("-")
        base_url = f"{self.settings.epic_archive_url.rstrip('/')}/natural/{year}/{month}/{day}"
        return f"{base_url}/png/{item['image']}.png"

    # ------------------------------------------------------ Image library

    async def search_images(self, query: str, media_type: Optional[str] = None) -> Dict[str, Any]:
        return await self._get(
            "Image Search",
            f"{self.settings.nasa_images_url.rstrip('/')}/search",
            {"q": query, "media_type": media_type or "image", "page_size": 100},
            with_key=False,
        )

    async def get_image_assets(self, nasa_id: str) -> Dict[str, Any]:
        return await self._get(
            "Image Assets",
            f"{self.settings.nasa_images_url.rstrip('/')}/asset/{nasa_id}",
            with_key=False,
        )
