"""
Application service: Orchestration layer for single-area analysis.
"""
import logging
from typing import Any, Optional

from agroscore.domain.collaborators import QualityAssessor
from agroscore.domain.models import AggregateStats, AnalysisResult, Ring
from agroscore.infrastructure.external_api_client import (
    AgroMonitoringClient,
    ExternalAPIError,
)
from agroscore.services.domain.data_normalizer import (
    extract_vegetation_stats,
    fetch_vegetation_history,
    normalize_soil,
)
from agroscore.services.domain.scoring_engine import build_analysis_result
from agroscore.utils.geodesy import ring_area_m2

logger = logging.getLogger(__name__)

M2_PER_HECTARE = 10_000


class AreaAnalysisService:
    """
    Application service for analyzing ground areas.

    Orchestrates data fetching, normalization and scoring. Follows the
    application layer pattern - no business logic here, only coordination
    between infrastructure and domain layers. Implements the
    AreaAnalysisCollaborator interface used by the comparison sampler.
    """

    def __init__(
        self,
        api_client: AgroMonitoringClient,
        assessor: QualityAssessor,
    ):
        """
        Initialize the service with dependencies.

        Args:
            api_client: External API client for polygon, soil and NDVI data
            assessor: Quality assessor producing the level/score judgement
        """
        self.api_client = api_client
        self.assessor = assessor

    async def analyze_ring(self, ring: Ring) -> AnalysisResult:
        """
        Register a ring upstream and analyze it.

        Args:
            ring: Closed polygon boundary

        Returns:
            AnalysisResult for the new (or reused) polygon

        Raises:
            ExternalAPIError: If the polygon cannot be created or soil data is unavailable
        """
        polygon = await self.api_client.create_polygon(ring)

        area_hectares = polygon.area_hectares
        if area_hectares is None:
            area_hectares = round(ring_area_m2(ring) / M2_PER_HECTARE, 4)

        return await self.analyze_polygon(polygon.id, area_hectares=area_hectares)

    async def analyze_polygon(
        self,
        polygon_id: str,
        area_hectares: Optional[float] = None,
        soil_payload: Optional[Any] = None,
        ndvi_payload: Optional[Any] = None,
    ) -> AnalysisResult:
        """
        Analyze an already registered polygon.

        This method orchestrates:
        1. Fetching the soil reading (required)
        2. Looking up the polygon area when unknown (best effort)
        3. Fetching NDVI history over shrinking windows (best effort)
        4. Normalizing, assessing and scoring

        Payloads passed in replace the matching upstream request and are
        normalized exactly like fetched ones.

        Args:
            polygon_id: Upstream polygon identifier
            area_hectares: Known area, skips the polygon lookup
            soil_payload: Raw soil reading, skips the soil request
            ndvi_payload: Raw NDVI history, skips the window retry

        Returns:
            AnalysisResult

        Raises:
            ExternalAPIError: If soil data cannot be fetched
        """
        if soil_payload is None:
            soil_payload = await self.api_client.get_soil(polygon_id)
        else:
            logger.info(f"Using supplied soil data for polygon {polygon_id}")
        sample = normalize_soil(soil_payload)

        if area_hectares is None:
            area_hectares = await self._lookup_area(polygon_id)

        if ndvi_payload is None:
            ndvi_payload = await fetch_vegetation_history(self.api_client, polygon_id)
        else:
            logger.info(f"Using supplied NDVI history for polygon {polygon_id}")

        if ndvi_payload is None:
            stats = AggregateStats()
        else:
            stats = extract_vegetation_stats(ndvi_payload)

        assessment = await self.assessor.assess(sample, stats, area_hectares)

        return build_analysis_result(
            sample=sample,
            stats=stats,
            assessment=assessment,
            area_hectares=area_hectares,
            polygon_id=polygon_id,
            analysis_source=self.assessor.name,
        )

    async def _lookup_area(self, polygon_id: str) -> Optional[float]:
        try:
            polygon = await self.api_client.get_polygon(polygon_id)
        except ExternalAPIError as e:
            logger.warning(f"Could not fetch polygon {polygon_id} info: {e.message}")
            return None

        if polygon.area_hectares is not None:
            return polygon.area_hectares
        if polygon.ring is not None:
            return round(ring_area_m2(polygon.ring) / M2_PER_HECTARE, 4)
        return None
