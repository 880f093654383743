"""
Unit tests for the comparison sampler.

Tests cover:
- Partial failures still ranking
- Total failure
- Ranking order and tie stability
- Per-call timeouts
- State transitions
"""
import asyncio

import numpy as np
import pytest

from agroscore.domain.models import (
    AnalysisResult,
    ComparisonState,
    FieldConditions,
    Ring,
)
from agroscore.infrastructure.external_api_client import ExternalAPIError
from agroscore.services.application.comparison_sampler import ComparisonConfig, ComparisonSampler
from agroscore.services.domain.scoring_engine import level_from_score
from agroscore.utils.geodesy import haversine_distance_km, ring_area_m2, ring_center

HANG = object()


def make_result(score: float) -> AnalysisResult:
    return AnalysisResult(
        score=score,
        confidence=0.8,
        level=level_from_score(score),
        summary="test",
        recommendations=["none"],
        conditions=FieldConditions(),
    )


class FakeCollaborator:
    """Returns one scripted outcome per analyze_ring call, in call order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.rings: list[Ring] = []

    def analyze_ring(self, ring: Ring):
        outcome = self.outcomes[len(self.rings)]
        self.rings.append(ring)
        return self._resolve(outcome)

    async def _resolve(self, outcome):
        if outcome is HANG:
            await asyncio.sleep(10)
        if isinstance(outcome, Exception):
            raise outcome
        return make_result(outcome)


def make_sampler(outcomes, **config) -> tuple[ComparisonSampler, FakeCollaborator]:
    collaborator = FakeCollaborator(outcomes)
    sampler = ComparisonSampler(
        collaborator=collaborator,
        config=ComparisonConfig(area_count=len(outcomes), **config),
        rng=np.random.default_rng(11),
    )
    return sampler, collaborator


# ============================================================
# Configuration Tests
# ============================================================

class TestComparisonConfig:
    """Tests for comparison configuration."""

    def test_min_separation(self):
        """Separation is 10% of the radius, capped at 5 km."""
        config = ComparisonConfig()

        assert config.min_separation_km(20) == pytest.approx(2.0)
        assert config.min_separation_km(100) == 5.0

    def test_from_settings_defaults(self):
        """Settings defaults match the documented sampling policy."""
        config = ComparisonConfig.from_settings()

        assert config.area_count == 4
        assert config.area_m2 == 30_000
        assert config.max_attempts == 50


# ============================================================
# Ranking Tests
# ============================================================

class TestRanking:
    """Tests for ranking comparison areas."""

    @pytest.mark.asyncio
    async def test_partial_failure_still_ranks(self, origin):
        """2 of 4 failures leave 2 ranked areas and a successful result."""
        sampler, _ = make_sampler([
            40.0,
            ExternalAPIError("can not create polygons", status_code=403),
            75.0,
            ExternalAPIError("upstream down", status_code=502),
        ])

        result = await sampler.compare(origin, radius_km=50)

        assert result.succeeded
        assert result.state == ComparisonState.RANKED
        assert len(result.areas) == 2
        assert [a.score for a in result.areas] == [75.0, 40.0]
        assert result.requested == 4
        assert result.failed == 2

    @pytest.mark.asyncio
    async def test_ranked_best_first(self, origin):
        """Scores [80.1, 52.3, 30.0] rank in that order whatever the sampling order."""
        sampler, _ = make_sampler([52.3, 30.0, 80.1])

        result = await sampler.compare(origin, radius_km=50, origin_score=45.0)

        assert [a.score for a in result.areas] == [80.1, 52.3, 30.0]
        assert result.origin_score == 45.0

    @pytest.mark.asyncio
    async def test_ties_keep_sampling_order(self, origin):
        """Equal scores keep the order in which locations were sampled."""
        sampler, collaborator = make_sampler([60.0, 60.0, 70.0])

        result = await sampler.compare(origin, radius_km=50)

        assert result.areas[0].ring == collaborator.rings[2]
        assert result.areas[1].ring == collaborator.rings[0]
        assert result.areas[2].ring == collaborator.rings[1]

    @pytest.mark.asyncio
    async def test_areas_are_three_hectare_squares_inside_radius(self, origin):
        """Every comparison ring is a 3 ha square within the radius."""
        sampler, _ = make_sampler([50.0, 60.0, 70.0, 80.0])

        result = await sampler.compare(origin, radius_km=30)

        for area in result.areas:
            assert ring_area_m2(area.ring) == pytest.approx(30_000, rel=0.001)
            # Longitude correction uses the origin latitude, so allow a small overshoot
            assert area.distance_km <= 30 * 1.01
            assert area.distance_km == pytest.approx(haversine_distance_km(origin, area.center))

    @pytest.mark.asyncio
    async def test_compare_ring_uses_centroid(self, sample_ring):
        """A drawn ring is compared around its centroid."""
        sampler, _ = make_sampler([50.0])

        result = await sampler.compare_ring(sample_ring, radius_km=10)

        assert result.origin_center == ring_center(sample_ring)
        assert result.radius_km == 10


# ============================================================
# Failure Tests
# ============================================================

class TestFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_all_failures(self, origin):
        """When every call fails the result is failed with no areas."""
        sampler, _ = make_sampler([ExternalAPIError("quota", status_code=403)] * 4)

        result = await sampler.compare(origin, radius_km=50)

        assert not result.succeeded
        assert result.state == ComparisonState.FAILED
        assert result.areas == []
        assert result.failed == 4
        assert result.transitions == [
            ComparisonState.IDLE,
            ComparisonState.SAMPLING,
            ComparisonState.CREATING_AREAS,
            ComparisonState.SCORING,
            ComparisonState.FAILED,
        ]

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, origin):
        """A call exceeding the timeout is dropped without blocking the others."""
        sampler, _ = make_sampler([55.0, HANG, 65.0], call_timeout=0.05)

        result = await sampler.compare(origin, radius_km=50)

        assert result.succeeded
        assert [a.score for a in result.areas] == [65.0, 55.0]
        assert result.failed == 1

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_isolated(self, origin):
        """Any ordinary exception only drops its own location."""
        sampler, _ = make_sampler([ValueError("bad ring"), 33.0])

        result = await sampler.compare(origin, radius_km=50)

        assert [a.score for a in result.areas] == [33.0]

    @pytest.mark.asyncio
    async def test_successful_transitions(self, origin):
        """A successful request walks idle -> sampling -> creating_areas -> scoring -> ranked."""
        sampler, _ = make_sampler([50.0])

        result = await sampler.compare(origin, radius_km=50)

        assert result.transitions == [
            ComparisonState.IDLE,
            ComparisonState.SAMPLING,
            ComparisonState.CREATING_AREAS,
            ComparisonState.SCORING,
            ComparisonState.RANKED,
        ]

    @pytest.mark.asyncio
    async def test_result_serializes(self, origin):
        """The result serializes with string states."""
        sampler, _ = make_sampler([50.0, ExternalAPIError("x")])

        data = (await sampler.compare(origin, radius_km=50)).model_dump(mode="json")

        assert data["state"] == "ranked"
        assert data["areas"][0]["analysis"]["score"] == 50.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
