"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Sample soil and NDVI payloads
- Sample rings
- Mock API client
- FastAPI test client
"""
import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from agroscore.main import app
from agroscore.domain.models import Coordinate, Ring
from agroscore.infrastructure.external_api_client import AgroMonitoringClient, PolygonInfo


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_soil_payload() -> dict:
    """Raw soil reading as returned by the soil endpoint."""
    return {
        "dt": 1700000000,
        "t0": 293.15,      # 20 °C
        "t10": 290.15,     # 17 °C
        "moisture": 0.35,  # 35 %
    }


@pytest.fixture
def sample_ndvi_history() -> list[dict]:
    """NDVI history with pre-aggregated statistics per capture."""
    return [
        {"dt": 1699000000, "type": "s2", "data": {"mean": 0.55, "median": 0.56, "min": 0.2, "max": 0.8, "std": 0.1}},
        {"dt": 1699500000, "type": "s2", "data": {"mean": 0.65, "median": 0.66, "min": 0.3, "max": 0.9, "std": 0.1}},
    ]


@pytest.fixture
def sample_ring() -> Ring:
    """Small rectangle in the Western Cape (about 1.3 ha)."""
    return Ring.from_pairs([
        [-32.3285, 18.8255],
        [-32.3275, 18.8255],
        [-32.3275, 18.8270],
        [-32.3285, 18.8270],
    ])


@pytest.fixture
def sample_coordinates() -> list[list[float]]:
    """Open [latitude, longitude] boundary as sent by clients."""
    return [
        [-32.3285, 18.8255],
        [-32.3275, 18.8255],
        [-32.3275, 18.8270],
        [-32.3285, 18.8270],
    ]


@pytest.fixture
def origin() -> Coordinate:
    """Comparison origin in Iowa."""
    return Coordinate(latitude=41.8781, longitude=-93.0977)


# ============================================================
# Mock API Client Fixtures
# ============================================================

@pytest.fixture
def mock_api_client(sample_soil_payload, sample_ndvi_history, sample_ring):
    """Create a mock monitoring API client."""
    mock_client = AsyncMock(spec=AgroMonitoringClient)
    mock_client.create_polygon.return_value = PolygonInfo(
        id="5aaa8052cbbbb5000b73ff66",
        area_hectares=1.3,
        ring=sample_ring,
    )
    mock_client.get_polygon.return_value = PolygonInfo(
        id="5aaa8052cbbbb5000b73ff66",
        area_hectares=1.3,
    )
    mock_client.get_soil.return_value = sample_soil_payload
    mock_client.get_ndvi_history.return_value = sample_ndvi_history
    return mock_client


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)
