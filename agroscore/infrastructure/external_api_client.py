"""
Infrastructure layer: AgroMonitoring API client with retry logic.
"""
import re
import logging
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from agroscore.config import settings
from agroscore.domain.models import Coordinate, Ring
from agroscore.infrastructure.api_constants import AgroAPIEndpoints, APIConstants

logger = logging.getLogger(__name__)


class PolygonInfo(BaseModel):
    """Upstream ground-area registration."""
    id: str
    name: Optional[str] = None
    center: Optional[Coordinate] = None
    area_hectares: Optional[float] = Field(default=None, description="Area reported upstream in ha")
    ring: Optional[Ring] = None
    reused: bool = Field(default=False, description="True when an existing duplicate was reused")


class ExternalAPIError(Exception):
    """Custom exception for external API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    @property
    def http_status(self) -> int:
        """Status reported to our clients: upstream 4xx pass through, anything else is 502."""
        return self.status_code if 400 <= self.status_code < 500 else 502


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _parse_center(raw: Any) -> Optional[Coordinate]:
    """Upstream centers are GeoJSON-ordered ``[lon, lat]``."""
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        return None
    try:
        return Coordinate(latitude=raw[1], longitude=raw[0])
    except (TypeError, ValueError):
        return None


def _parse_ring(geo_json: Any) -> Optional[Ring]:
    try:
        coords = geo_json["geometry"]["coordinates"][0]
        return Ring.from_pairs([(lat, lon) for lon, lat in coords])
    except (KeyError, IndexError, TypeError, ValueError):
        return None


def _parse_polygon(data: Dict[str, Any]) -> PolygonInfo:
    area = data.get("area")
    return PolygonInfo(
        id=str(data["id"]),
        name=data.get("name"),
        center=_parse_center(data.get("center")),
        area_hectares=float(area) if isinstance(area, (int, float)) else None,
        ring=_parse_ring(data.get("geo_json")),
    )


class AgroMonitoringClient:
    """
    Client for the AgroMonitoring soil/vegetation API.
    Implements retry logic with exponential backoff.

    Serves as SoilDataSource and VegetationHistorySource for the core.
    """

    def __init__(self):
        """Initialize the API client with configuration."""
        self.base_url = settings.agro_api_base_url.rstrip("/")
        self.api_key = settings.agro_api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            params={APIConstants.API_KEY_PARAM: self.api_key},
            headers={"accept": APIConstants.CONTENT_TYPE_JSON},
            timeout=settings.agro_api_timeout,
        )

    async def __aenter__(self) -> "AgroMonitoringClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Any:
        """
        Make an HTTP request with retry logic.

        Server errors (5xx) and transport errors propagate so they are retried;
        client errors (4xx) are raised immediately as ExternalAPIError.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            **kwargs: Additional arguments for the request

        Returns:
            Decoded JSON body
        """
        response = await self.client.request(method, endpoint, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code >= 500:
                logger.warning(f"{method} {endpoint} returned {e.response.status_code}, retrying")
                raise
            raise ExternalAPIError(
                f"API request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
                details=_json_body(e.response),
            )

        try:
            return response.json()
        except ValueError:
            raise ExternalAPIError(f"API returned a non-JSON body for {endpoint}")

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Make a request and convert exhausted retries into ExternalAPIError.

        Raises:
            ExternalAPIError: For any upstream failure
        """
        try:
            return await self._make_request(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise ExternalAPIError(
                f"API request failed after retries: {e.response.status_code}",
                status_code=502,
                details=_json_body(e.response),
            ) from e
        except httpx.RequestError as e:
            raise ExternalAPIError(f"API request error: {str(e)}", status_code=503) from e

    async def create_polygon(
        self,
        ring: Ring,
        name: str = APIConstants.DEFAULT_POLYGON_NAME,
    ) -> PolygonInfo:
        """
        Register a ground area upstream.

        A duplicate of an existing polygon is resolved to the existing id
        when the upstream error reports it.

        Args:
            ring: Closed polygon boundary
            name: Display name stored upstream

        Returns:
            PolygonInfo of the created (or reused) polygon

        Raises:
            ExternalAPIError: If the polygon cannot be created (including quota exhaustion)
        """
        payload = {
            "name": name,
            "geo_json": {
                "type": "Feature",
                "properties": {},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[p.longitude, p.latitude] for p in ring.points]],
                },
            },
        }

        try:
            data = await self._request(
                "POST",
                AgroAPIEndpoints.POLYGONS,
                params={"duplicated": "true"},
                json=payload,
            )
        except ExternalAPIError as e:
            upstream_message = str(e.details.get("message", ""))
            if APIConstants.DUPLICATED_POLYGON_MARKER in upstream_message:
                match = re.search(APIConstants.POLYGON_ID_PATTERN, upstream_message, re.IGNORECASE)
                if match:
                    logger.info(f"Polygon already exists, reusing {match.group(1)}")
                    return PolygonInfo(id=match.group(1), ring=ring, reused=True)
            if APIConstants.POLYGON_LIMIT_MARKER in upstream_message:
                logger.warning("Upstream polygon creation limit reached")
            raise

        polygon = _parse_polygon(data)
        logger.info(f"Created polygon {polygon.id} (area={polygon.area_hectares} ha)")
        return polygon.model_copy(update={"ring": polygon.ring or ring})

    async def get_polygon(self, polygon_id: str) -> PolygonInfo:
        """
        Fetch a registered polygon.

        Args:
            polygon_id: Upstream polygon identifier

        Returns:
            PolygonInfo instance
        """
        data = await self._request("GET", AgroAPIEndpoints.get_polygon(polygon_id))
        return _parse_polygon(data)

    async def get_soil(self, polygon_id: str) -> Dict[str, Any]:
        """
        Fetch the current soil reading for a polygon.

        Args:
            polygon_id: Upstream polygon identifier

        Returns:
            Raw payload ``{dt, t0, t10, moisture}``
        """
        data = await self._request(
            "GET",
            AgroAPIEndpoints.SOIL,
            params={"polyid": polygon_id, "duplicated": "true"},
        )
        if not isinstance(data, dict):
            raise ExternalAPIError(f"Unexpected soil payload for polygon {polygon_id}")
        return data

    async def get_ndvi_history(
        self,
        polygon_id: str,
        start: int,
        end: int,
    ) -> Union[List[Any], Dict[str, Any]]:
        """
        Fetch NDVI captures for a polygon within a time window.

        Args:
            polygon_id: Upstream polygon identifier
            start: Window start (unix seconds)
            end: Window end (unix seconds)

        Returns:
            Raw history payload (usually a list of captures)
        """
        return await self._request(
            "GET",
            AgroAPIEndpoints.NDVI_HISTORY,
            params={"polyid": polygon_id, "start": start, "end": end},
        )


# Singleton instance
_api_client: Optional[AgroMonitoringClient] = None


def get_api_client() -> AgroMonitoringClient:
    """
    Get or create the singleton API client instance.

    Returns:
        AgroMonitoringClient instance
    """
    global _api_client
    if _api_client is None:
        _api_client = AgroMonitoringClient()
    return _api_client


async def close_api_client() -> None:
    """Close and forget the singleton API client, if one was created."""
    global _api_client
    if _api_client is not None:
        await _api_client.close()
        _api_client = None
