"""
Application configuration using Pydantic settings.

Every field can be overridden through an environment variable of the same
name (case-insensitive) or a ``.env`` file, e.g. ``AGRO_API_KEY=...``.
"""
import logging

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream soil/vegetation monitoring API
    agro_api_base_url: str = Field(
        default="https://api.agromonitoring.com/agro/1.0",
        description="Base URL of the AgroMonitoring API"
    )
    agro_api_key: str = Field(
        default="",
        description="AgroMonitoring key, sent as the 'appid' query parameter"
    )
    agro_api_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds allowed for a single upstream HTTP request"
    )

    # Upstream retries (5xx and transport errors only)
    max_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per upstream request, including the first one"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Exponential backoff multiplier"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Shortest pause between attempts, in seconds"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Longest pause between attempts, in seconds"
    )

    # Nearby comparison areas
    comparison_area_count: int = Field(
        default=4,
        ge=1,
        description="Locations sampled per comparison request"
    )
    comparison_area_m2: float = Field(
        default=30_000.0,
        gt=0,
        description="Size of each comparison square in m² (3 hectares)"
    )
    comparison_max_separation_km: float = Field(
        default=5.0,
        description="Cap on the minimum distance kept between sampled locations"
    )
    comparison_separation_ratio: float = Field(
        default=0.1,
        description="Minimum distance between sampled locations as a share of the radius"
    )
    comparison_max_attempts: int = Field(
        default=50,
        ge=1,
        description="Rejection-sampling attempts per location before accepting the last candidate"
    )
    comparison_default_radius_km: float = Field(
        default=100.0,
        gt=0,
        description="Sampling radius used when a request gives none"
    )
    comparison_call_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds allowed to create and analyze one comparison area"
    )

    # Service
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )
    rate_limit_requests: int = Field(
        default=100,
        description="Requests per minute allowed per client address on each area endpoint"
    )
    app_name: str = Field(
        default="AgroScore Field Quality API",
        description="Service name reported by the health endpoints"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Service version"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


# Global settings instance
settings = Settings()
