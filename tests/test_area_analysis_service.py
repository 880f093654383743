"""
Unit tests for the area analysis service.

Tests cover:
- Ring analysis end to end with a mocked API client
- Area fallbacks
- Degradation without vegetation data
- Caller-supplied soil and NDVI payloads
- Soil failures propagating
"""
import pytest

from agroscore.infrastructure.external_api_client import ExternalAPIError, PolygonInfo
from agroscore.services.application.area_analysis_service import AreaAnalysisService
from agroscore.services.domain.quality_assessor import RuleBasedAssessor
from agroscore.utils.geodesy import ring_area_m2


@pytest.fixture
def service(mock_api_client) -> AreaAnalysisService:
    return AreaAnalysisService(api_client=mock_api_client, assessor=RuleBasedAssessor())


class TestAnalyzeRing:
    """Tests for analyzing a drawn ring."""

    @pytest.mark.asyncio
    async def test_analyze_ring(self, service, mock_api_client, sample_ring):
        """A drawn ring is registered, measured and scored."""
        result = await service.analyze_ring(sample_ring)

        mock_api_client.create_polygon.assert_awaited_once_with(sample_ring)
        mock_api_client.get_soil.assert_awaited_once_with("5aaa8052cbbbb5000b73ff66")
        mock_api_client.get_polygon.assert_not_awaited()

        assert result.polygon_id == "5aaa8052cbbbb5000b73ff66"
        assert result.area_hectares == 1.3
        assert result.conditions.temperature.surface == "20.00°C"
        assert result.conditions.moisture.value == "35.0%"
        assert result.conditions.vegetation.ndvi_mean == "0.6000"
        assert result.analysis_source == "Rule-based assessor"
        assert result.confidence == 1.0
        assert 0 <= result.score <= 100

    @pytest.mark.asyncio
    async def test_area_computed_locally_when_missing(self, service, mock_api_client, sample_ring):
        """Without an upstream area the ring is measured locally."""
        mock_api_client.create_polygon.return_value = PolygonInfo(
            id="5aaa8052cbbbb5000b73ff66", ring=sample_ring, reused=True
        )

        result = await service.analyze_ring(sample_ring)

        assert result.area_hectares == pytest.approx(ring_area_m2(sample_ring) / 10_000, abs=1e-4)

    @pytest.mark.asyncio
    async def test_polygon_creation_failure_propagates(self, service, mock_api_client, sample_ring):
        """A quota error surfaces to the caller."""
        mock_api_client.create_polygon.side_effect = ExternalAPIError(
            "can not create polygons", status_code=403
        )

        with pytest.raises(ExternalAPIError):
            await service.analyze_ring(sample_ring)


class TestAnalyzePolygon:
    """Tests for analyzing a registered polygon."""

    @pytest.mark.asyncio
    async def test_area_looked_up(self, service, mock_api_client):
        """A polygon analyzed by id gets its area from the polygon endpoint."""
        result = await service.analyze_polygon("5aaa8052cbbbb5000b73ff66")

        mock_api_client.get_polygon.assert_awaited_once_with("5aaa8052cbbbb5000b73ff66")
        assert result.area_hectares == 1.3

    @pytest.mark.asyncio
    async def test_area_lookup_is_best_effort(self, service, mock_api_client):
        """A failed polygon lookup only lowers confidence."""
        mock_api_client.get_polygon.side_effect = ExternalAPIError("boom", status_code=500)

        result = await service.analyze_polygon("5aaa8052cbbbb5000b73ff66")

        assert result.area_hectares is None
        assert result.confidence == 0.8

    @pytest.mark.asyncio
    async def test_missing_vegetation_degrades(self, service, mock_api_client):
        """Empty NDVI history in every window still gives a result."""
        mock_api_client.get_ndvi_history.return_value = []

        result = await service.analyze_polygon("5aaa8052cbbbb5000b73ff66", area_hectares=2.0)

        assert mock_api_client.get_ndvi_history.await_count == 6
        assert result.conditions.vegetation.status == "unknown"
        assert result.conditions.vegetation.ndvi_mean == "N/A"
        assert result.confidence == 0.75

    @pytest.mark.asyncio
    async def test_supplied_payloads_skip_fetches(self, service, mock_api_client):
        """Soil and NDVI sent by the caller replace the upstream requests."""
        result = await service.analyze_polygon(
            "5aaa8052cbbbb5000b73ff66",
            soil_payload={"dt": 1700000000, "t0": 283.15, "t10": 281.15, "moisture": 0.25},
            ndvi_payload=[{"dt": 1, "value": 0.3}, {"dt": 2, "value": 0.5}],
        )

        mock_api_client.get_soil.assert_not_awaited()
        mock_api_client.get_ndvi_history.assert_not_awaited()
        mock_api_client.get_polygon.assert_awaited_once_with("5aaa8052cbbbb5000b73ff66")
        assert result.conditions.temperature.surface == "10.00°C"
        assert result.conditions.moisture.value == "25.0%"
        assert result.conditions.vegetation.ndvi_mean == "0.4000"
        assert result.area_hectares == 1.3

    @pytest.mark.asyncio
    async def test_only_missing_parts_are_fetched(self, service, mock_api_client):
        """Supplying NDVI and area still fetches soil, and nothing else."""
        result = await service.analyze_polygon(
            "5aaa8052cbbbb5000b73ff66",
            area_hectares=4.0,
            ndvi_payload={"data": [{"dt": 1, "data": {"mean": 0.45}}]},
        )

        mock_api_client.get_soil.assert_awaited_once_with("5aaa8052cbbbb5000b73ff66")
        mock_api_client.get_polygon.assert_not_awaited()
        mock_api_client.get_ndvi_history.assert_not_awaited()
        assert result.conditions.vegetation.ndvi_mean == "0.4500"
        assert result.area_hectares == 4.0

    @pytest.mark.asyncio
    async def test_malformed_supplied_payloads_degrade(self, service, mock_api_client):
        """Unreadable supplied payloads are reported as N/A rather than failing."""
        result = await service.analyze_polygon(
            "5aaa8052cbbbb5000b73ff66",
            soil_payload={"t0": 10 ** 400, "moisture": "wet"},
            ndvi_payload=[{"value": 10 ** 400}, "capture"],
        )

        mock_api_client.get_soil.assert_not_awaited()
        assert result.conditions.temperature.surface == "N/A"
        assert result.conditions.moisture.value == "N/A"
        assert result.conditions.vegetation.status == "unknown"
        assert result.confidence == 0.2

    @pytest.mark.asyncio
    async def test_soil_failure_propagates(self, service, mock_api_client):
        """Soil data is required."""
        mock_api_client.get_soil.side_effect = ExternalAPIError("not found", status_code=404)

        with pytest.raises(ExternalAPIError) as exc_info:
            await service.analyze_polygon("missing")

        assert exc_info.value.status_code == 404


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
