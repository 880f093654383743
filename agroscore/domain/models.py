"""
Domain models for ground areas, soil samples and quality assessments.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.).
All of them are immutable once produced and JSON-serializable.
"""
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from pydantic import BaseModel, Field, field_validator


class Coordinate(BaseModel):
    """A point on the Earth's surface in decimal degrees."""
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    class Config:
        frozen = True

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> "Coordinate":
        """Build a coordinate from a ``[latitude, longitude]`` pair."""
        if len(pair) < 2:
            raise ValueError("Coordinate pair must be [latitude, longitude]")
        return cls(latitude=pair[0], longitude=pair[1])

    def as_pair(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class Ring(BaseModel):
    """
    Closed polygon boundary.

    The first and last coordinates are always equal; an open sequence gets
    its closing point appended on construction. Self-intersection is not
    checked.
    """
    points: Tuple[Coordinate, ...]

    class Config:
        frozen = True

    @field_validator("points")
    @classmethod
    def _close_ring(cls, points: Tuple[Coordinate, ...]) -> Tuple[Coordinate, ...]:
        if len(points) < 3:
            raise ValueError("A ring needs at least 3 coordinates")
        if points[0] != points[-1]:
            points = points + (points[0],)
        return points

    @classmethod
    def from_pairs(cls, pairs: Sequence[Sequence[float]]) -> "Ring":
        """Build a ring from ``[latitude, longitude]`` pairs."""
        return cls(points=tuple(Coordinate.from_pair(p) for p in pairs))

    def as_pairs(self) -> List[Tuple[float, float]]:
        return [p.as_pair() for p in self.points]


class BoundingArea(BaseModel):
    """Circular sampling domain."""
    center: Coordinate
    radius_km: float = Field(gt=0, description="Sampling radius in kilometres")

    class Config:
        frozen = True


class SoilSample(BaseModel):
    """Soil reading converted to metric, percentage-scaled units."""
    timestamp_unix: Optional[int] = None
    surface_temp_c: Optional[float] = Field(default=None, description="Temperature at 0 cm in °C")
    depth10_temp_c: Optional[float] = Field(default=None, description="Temperature at 10 cm in °C")
    moisture_percent: Optional[float] = Field(
        default=None,
        description="Volumetric soil moisture, percentage-scaled (0.189 upstream -> 18.9)"
    )

    class Config:
        frozen = True


class NDVIObservation(BaseModel):
    """Per-capture NDVI statistics."""
    timestamp_unix: Optional[int] = None
    mean: float = Field(ge=-1.0, le=1.0)
    median: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    min: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    max: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    std: Optional[float] = None

    class Config:
        frozen = True


class AggregateStats(BaseModel):
    """NDVI statistics over one or more observations; any field may be missing."""
    mean: Optional[float] = None
    median: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    std: Optional[float] = None
    observation_count: int = 0
    source: Optional[str] = Field(default=None, description="Extractor that produced the stats")

    class Config:
        frozen = True

    @property
    def is_available(self) -> bool:
        return any(
            value is not None
            for value in (self.mean, self.median, self.min, self.max, self.std)
        )


class QualityLevel(str, Enum):
    """Categorical soil quality rating."""
    HIGH = "High"
    MODERATE = "Moderate"
    LOW = "Low"


class TemperatureCondition(BaseModel):
    surface: str = "N/A"
    depth_10cm: str = "N/A"
    status: str = "unknown"

    class Config:
        frozen = True


class MoistureCondition(BaseModel):
    value: str = "N/A"
    status: str = "unknown"

    class Config:
        frozen = True


class VegetationCondition(BaseModel):
    ndvi_mean: str = "N/A"
    ndvi_median: str = "N/A"
    ndvi_min: str = "N/A"
    ndvi_max: str = "N/A"
    ndvi_std: str = "N/A"
    status: str = "unknown"

    class Config:
        frozen = True


class FieldConditions(BaseModel):
    """Current conditions with formatted raw values and status labels."""
    temperature: TemperatureCondition = Field(default_factory=TemperatureCondition)
    moisture: MoistureCondition = Field(default_factory=MoistureCondition)
    vegetation: VegetationCondition = Field(default_factory=VegetationCondition)

    class Config:
        frozen = True


class AnalysisResult(BaseModel):
    """Quality assessment of a single ground area."""
    score: float = Field(ge=0.0, le=100.0, description="Soil quality index")
    confidence: float = Field(ge=0.0, le=1.0)
    level: QualityLevel
    summary: str
    recommendations: List[str]
    conditions: FieldConditions
    predicted_crops: List[str] = Field(default_factory=list)
    predicted_yield: str = Field(default="Unknown", description="Expected yield relative to typical fields")
    polygon_id: Optional[str] = None
    area_hectares: Optional[float] = None
    data_timestamp: Optional[str] = Field(default=None, description="ISO-8601 time of the soil sample")
    analysis_source: str = "unknown"

    class Config:
        frozen = True


class ComparisonArea(BaseModel):
    """A sampled nearby area with its own assessment."""
    ring: Ring
    center: Coordinate
    distance_km: float = Field(ge=0.0)
    analysis: AnalysisResult

    class Config:
        frozen = True

    @property
    def score(self) -> float:
        return self.analysis.score


class ComparisonState(str, Enum):
    """Lifecycle of a comparison request."""
    IDLE = "idle"
    SAMPLING = "sampling"
    CREATING_AREAS = "creating_areas"
    SCORING = "scoring"
    RANKED = "ranked"
    FAILED = "failed"


class ComparisonResult(BaseModel):
    """Outcome of a comparison request; areas are ranked best first."""
    state: ComparisonState
    transitions: List[ComparisonState]
    origin_center: Coordinate
    radius_km: float
    origin_score: Optional[float] = None
    requested: int
    failed: int
    areas: List[ComparisonArea] = Field(default_factory=list)

    class Config:
        frozen = True

    @property
    def succeeded(self) -> bool:
        return self.state == ComparisonState.RANKED
