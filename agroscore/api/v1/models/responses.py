"""
API response models using Pydantic.
"""
from typing import Optional
from pydantic import BaseModel, Field

from agroscore.domain.models import Coordinate


class AreaMeasurementResponse(BaseModel):
    """Response model for the area measurement endpoint."""
    shape: str = Field(
        description="'rectangle' for axis-aligned rectangles, otherwise 'polygon'"
    )
    area_m2: float = Field(
        description="Area in square metres"
    )
    area_hectares: float = Field(
        description="Area in hectares"
    )
    center: Coordinate = Field(
        description="Centroid of the area"
    )
    width_m: Optional[float] = Field(
        default=None,
        description="East-west side in metres (rectangles only)"
    )
    height_m: Optional[float] = Field(
        default=None,
        description="North-south side in metres (rectangles only)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "shape": "rectangle",
                "area_m2": 30000.0,
                "area_hectares": 3.0,
                "center": {"latitude": 41.8781, "longitude": -93.0977},
                "width_m": 173.2,
                "height_m": 173.2,
            }
        }


class HealthResponse(BaseModel):
    """Response model for the health endpoints."""
    status: str = Field(description="'healthy' while the service is running")
    service: str
    version: Optional[str] = None
    api_key_configured: Optional[bool] = Field(
        default=None,
        description="Whether an upstream API key is configured"
    )


class ErrorResponse(BaseModel):
    """Body returned by the error handling middleware."""
    error: str = Field(description="Error category")
    detail: str = Field(description="Human-readable explanation")
