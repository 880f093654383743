"""
API request models using Pydantic.
"""
from typing import Any, List, Optional
from pydantic import BaseModel, Field, model_validator

from agroscore.domain.models import Coordinate, Ring


class AreaRequest(BaseModel):
    """A drawn ground area."""
    coordinates: List[List[float]] = Field(
        min_length=3,
        description="Boundary as [latitude, longitude] pairs; closed automatically",
        examples=[[[-32.3285, 18.8255], [-32.3275, 18.8255], [-32.3275, 18.8270], [-32.3285, 18.8270]]],
    )

    def to_ring(self) -> Ring:
        return Ring.from_pairs(self.coordinates)


class ComparisonRequest(BaseModel):
    """Origin and radius of a comparison request."""
    coordinates: Optional[List[List[float]]] = Field(
        default=None,
        description="Analyzed area as [latitude, longitude] pairs; its centroid is the origin",
    )
    center: Optional[Coordinate] = Field(
        default=None,
        description="Origin, used when no coordinates are given",
    )
    radius_km: Optional[float] = Field(
        default=None,
        gt=0,
        le=500,
        description="Sampling radius in kilometres (defaults to the configured radius)",
    )
    origin_score: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Score of the analyzed area, echoed back for comparison",
    )

    @model_validator(mode="after")
    def _require_origin(self) -> "ComparisonRequest":
        if self.coordinates is None and self.center is None:
            raise ValueError("Either coordinates or center must be provided")
        if self.coordinates is not None and len(self.coordinates) < 3:
            raise ValueError("Coordinates must contain at least 3 points")
        return self

    def to_ring(self) -> Optional[Ring]:
        if self.coordinates is None:
            return None
        return Ring.from_pairs(self.coordinates)


class PolygonAnalysisRequest(BaseModel):
    """Measurements supplied for a registered area instead of fetching them."""
    soil: Optional[Any] = Field(
        default=None,
        description="Raw soil reading ({dt, t0, t10, moisture}, Kelvin)",
        examples=[{"dt": 1700000000, "t0": 293.15, "t10": 290.15, "moisture": 0.35}],
    )
    ndvi_history: Optional[Any] = Field(
        default=None,
        description="Raw NDVI history in any shape the history endpoint returns",
        examples=[[{"dt": 1700000000, "data": {"mean": 0.42}}]],
    )
    area_hectares: Optional[float] = Field(
        default=None,
        gt=0,
        description="Known area in hectares, skips the polygon lookup",
    )
