"""
API router for ground area endpoints.
"""
from fastapi import APIRouter, HTTPException, Path, Request
from typing import Annotated, NoReturn, Optional

from agroscore.api.dependencies import AreaAnalysisServiceDep, ComparisonSamplerDep
from agroscore.api.v1.models.requests import AreaRequest, ComparisonRequest, PolygonAnalysisRequest
from agroscore.api.v1.models.responses import AreaMeasurementResponse
from agroscore.config import settings
from agroscore.domain.models import AnalysisResult, ComparisonResult, Ring
from agroscore.infrastructure.external_api_client import ExternalAPIError
from agroscore.middleware.rate_limit import DEFAULT_LIMIT, limiter
from agroscore.utils.geodesy import (
    is_axis_aligned_rectangle,
    rectangle_dimensions_m,
    ring_area_m2,
    ring_center,
)


router = APIRouter(
    prefix="/areas",
    tags=["areas"],
)

COMMON_RESPONSES = {
    422: {"description": "Invalid coordinates"},
    429: {"description": "Rate limit exceeded"},
    502: {"description": "Upstream soil/vegetation API failure"},
}


def _ring_from(request: AreaRequest) -> Ring:
    try:
        return request.to_ring()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid coordinates: {e}")


def _raise_upstream(e: ExternalAPIError, subject: str) -> NoReturn:
    if e.http_status == 404:
        raise HTTPException(status_code=404, detail=f"{subject} not found upstream")
    if e.http_status == 502:
        raise HTTPException(status_code=502, detail=f"Failed to fetch data for {subject}: {e.message}")
    raise HTTPException(status_code=e.http_status, detail=e.message)


@router.post(
    "/measure",
    response_model=AreaMeasurementResponse,
    summary="Measure a drawn area",
    description="""
    Compute the area and centroid of a drawn shape.

    Axis-aligned rectangles are measured as width x height from haversine
    distances and also report both sides; any other polygon uses
    spherical-excess triangulation.
    """,
    responses={422: COMMON_RESPONSES[422], 429: COMMON_RESPONSES[429]},
)
@limiter.limit(DEFAULT_LIMIT)
async def measure_area(request: Request, body: AreaRequest) -> AreaMeasurementResponse:
    """
    Measure a drawn area.

    Args:
        request: Incoming request (used by the rate limiter)
        body: Area boundary

    Returns:
        AreaMeasurementResponse
    """
    ring = _ring_from(body)
    area_m2 = ring_area_m2(ring)
    if not is_axis_aligned_rectangle(ring):
        return AreaMeasurementResponse(
            shape="polygon",
            area_m2=area_m2,
            area_hectares=area_m2 / 10_000,
            center=ring_center(ring),
        )

    width_m, height_m = rectangle_dimensions_m(ring)
    return AreaMeasurementResponse(
        shape="rectangle",
        area_m2=area_m2,
        area_hectares=area_m2 / 10_000,
        center=ring_center(ring),
        width_m=width_m,
        height_m=height_m,
    )


@router.post(
    "/analysis",
    response_model=AnalysisResult,
    summary="Analyze a drawn area",
    description="""
    Register a drawn area upstream and assess its soil quality.

    This endpoint:
    1. Creates (or reuses) the upstream polygon
    2. Fetches the current soil reading
    3. Fetches NDVI history, narrowing the look-back window until data is found
    4. Normalizes the measurements and returns a score, confidence and recommendations
    """,
    responses=COMMON_RESPONSES,
)
@limiter.limit(DEFAULT_LIMIT)
async def analyze_area(
    request: Request,
    body: AreaRequest,
    analysis_service: AreaAnalysisServiceDep,
) -> AnalysisResult:
    """
    Analyze a drawn area.

    Args:
        request: Incoming request (used by the rate limiter)
        body: Area boundary
        analysis_service: Area analysis service (injected dependency)

    Returns:
        AnalysisResult
    """
    ring = _ring_from(body)
    try:
        return await analysis_service.analyze_ring(ring)
    except ExternalAPIError as e:
        _raise_upstream(e, "area")


@router.get(
    "/{polygon_id}/analysis",
    response_model=AnalysisResult,
    summary="Analyze a registered area",
    responses={404: {"description": "Polygon not found"}, **COMMON_RESPONSES},
)
@limiter.limit(DEFAULT_LIMIT)
async def analyze_polygon(
    request: Request,
    polygon_id: Annotated[str, Path(description="Upstream polygon identifier", min_length=1)],
    analysis_service: AreaAnalysisServiceDep,
) -> AnalysisResult:
    """
    Analyze an area that is already registered upstream.

    Args:
        request: Incoming request (used by the rate limiter)
        polygon_id: Upstream polygon identifier
        analysis_service: Area analysis service (injected dependency)

    Returns:
        AnalysisResult
    """
    try:
        return await analysis_service.analyze_polygon(polygon_id)
    except ExternalAPIError as e:
        _raise_upstream(e, f"Polygon '{polygon_id}'")


@router.post(
    "/{polygon_id}/analysis",
    response_model=AnalysisResult,
    summary="Analyze a registered area with supplied measurements",
    description="""
    Analyze a registered area using soil and NDVI payloads sent in the body.

    Any part left out (soil, NDVI history, area) is fetched upstream as for
    the GET variant. Supplied payloads may take any shape the upstream API
    returns; unreadable fields are reported as N/A.
    """,
    responses={404: {"description": "Polygon not found"}, **COMMON_RESPONSES},
)
@limiter.limit(DEFAULT_LIMIT)
async def analyze_polygon_with_data(
    request: Request,
    polygon_id: Annotated[str, Path(description="Upstream polygon identifier", min_length=1)],
    analysis_service: AreaAnalysisServiceDep,
    body: Optional[PolygonAnalysisRequest] = None,
) -> AnalysisResult:
    """
    Analyze a registered area, fetching only the measurements not supplied.

    Args:
        request: Incoming request (used by the rate limiter)
        polygon_id: Upstream polygon identifier
        analysis_service: Area analysis service (injected dependency)
        body: Optional soil reading, NDVI history and area

    Returns:
        AnalysisResult
    """
    body = body or PolygonAnalysisRequest()
    try:
        return await analysis_service.analyze_polygon(
            polygon_id,
            area_hectares=body.area_hectares,
            soil_payload=body.soil,
            ndvi_payload=body.ndvi_history,
        )
    except ExternalAPIError as e:
        _raise_upstream(e, f"Polygon '{polygon_id}'")


@router.post(
    "/comparison",
    response_model=ComparisonResult,
    summary="Compare with nearby areas",
    description="""
    Sample random 3-hectare squares around an area and rank them by score.

    Locations are kept apart by min(5 km, 10% of the radius) where possible.
    All locations are analyzed concurrently; locations that fail are dropped.
    The request fails only if no location could be analyzed.
    """,
    responses=COMMON_RESPONSES,
)
@limiter.limit(DEFAULT_LIMIT)
async def compare_areas(
    request: Request,
    body: ComparisonRequest,
    sampler: ComparisonSamplerDep,
) -> ComparisonResult:
    """
    Rank nearby comparison areas.

    Args:
        request: Incoming request (used by the rate limiter)
        body: Origin, radius and optional origin score
        sampler: Comparison sampler (injected dependency)

    Returns:
        ComparisonResult with ranked areas

    Raises:
        HTTPException: 502 if no comparison area could be produced
    """
    radius_km = body.radius_km or settings.comparison_default_radius_km

    try:
        ring = body.to_ring()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid coordinates: {e}")

    if ring is not None:
        result = await sampler.compare_ring(ring, radius_km, body.origin_score)
    else:
        result = await sampler.compare(body.center, radius_km, body.origin_score)

    if not result.succeeded:
        raise HTTPException(
            status_code=502,
            detail=(
                "Unable to create or analyze comparison areas. The upstream API may have "
                "reached its polygon creation limit; try again later."
            ),
        )

    return result
