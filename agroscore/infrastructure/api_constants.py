"""
API endpoint constants and configuration.

This module contains all external API endpoint paths and related constants.
Centralizing these values makes it easy to swap out endpoints or update API versions.
"""


# AgroMonitoring API Endpoints (relative to the configured base URL)
class AgroAPIEndpoints:
    """AgroMonitoring API endpoint paths."""

    POLYGONS = "/polygons"
    POLYGON_BY_ID = "/polygons/{polygon_id}"
    SOIL = "/soil"
    NDVI_HISTORY = "/ndvi/history"

    @classmethod
    def get_polygon(cls, polygon_id: str) -> str:
        """
        Get the endpoint for a single polygon.

        Args:
            polygon_id: Upstream polygon identifier

        Returns:
            Formatted endpoint path
        """
        return cls.POLYGON_BY_ID.format(polygon_id=polygon_id)


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"

    # Query parameter carrying the API key
    API_KEY_PARAM = "appid"

    # Upstream error fragments
    DUPLICATED_POLYGON_MARKER = "duplicated"
    POLYGON_LIMIT_MARKER = "can not create polygons"

    # Upstream polygon identifiers are 24 hex characters
    POLYGON_ID_PATTERN = r"([a-f0-9]{24})"

    DEFAULT_POLYGON_NAME = "Field polygon"
