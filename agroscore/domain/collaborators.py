"""
Interfaces of the external capabilities the core depends on.

The core only relies on these shapes; concrete implementations live in the
infrastructure and application layers and tests substitute mocks.
"""
from typing import Any, Dict, List, Optional, Protocol, Union

from agroscore.domain.models import AggregateStats, AnalysisResult, Ring, SoilSample


class SoilDataSource(Protocol):
    """Provides the latest soil reading for a ground area."""

    async def get_soil(self, polygon_id: str) -> Dict[str, Any]:
        """Return ``{dt, t0, t10, moisture}`` (Kelvin and volumetric fraction)."""
        ...


class VegetationHistorySource(Protocol):
    """Provides NDVI captures for a ground area within a time window."""

    async def get_ndvi_history(
        self, polygon_id: str, start: int, end: int
    ) -> Union[List[Any], Dict[str, Any]]:
        ...


class AreaAnalysisCollaborator(Protocol):
    """Creates an upstream area for a ring and returns its assessment."""

    async def analyze_ring(self, ring: Ring) -> AnalysisResult:
        ...


class QualityAssessor(Protocol):
    """
    Turns normalized measurements into a categorical/numeric judgement.

    The returned dictionary uses the keys ``Soil_Quality_Level``,
    ``Soil_Quality_Index``, ``Confidence``, ``Field_Summary``,
    ``Predicted_Crops`` and ``Recommendations``; any of them may be absent.
    """

    name: str

    async def assess(
        self,
        sample: SoilSample,
        stats: AggregateStats,
        area_hectares: Optional[float] = None,
    ) -> Dict[str, Any]:
        ...
