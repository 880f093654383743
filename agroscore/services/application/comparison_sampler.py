"""
Application service: Nearby comparison areas.

Samples random locations around an analyzed area, registers a fixed-size
square at each one, analyzes them concurrently and ranks the results:

    idle -> sampling -> creating_areas -> scoring -> ranked | failed

A single failed location never aborts the others; the request only fails
when no location could be analyzed at all.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from agroscore.config import settings
from agroscore.domain.collaborators import AreaAnalysisCollaborator
from agroscore.domain.models import (
    AnalysisResult,
    BoundingArea,
    ComparisonArea,
    ComparisonResult,
    ComparisonState,
    Coordinate,
    Ring,
)
from agroscore.utils.geodesy import (
    haversine_distance_km,
    ring_center,
    sample_non_overlapping_points,
    square_ring_around_center,
)

logger = logging.getLogger(__name__)


@dataclass
class ComparisonConfig:
    """Configuration for comparison sampling."""

    area_count: int = 4
    """Number of locations to sample"""

    area_m2: float = 30_000.0
    """Size of each comparison square (3 hectares)"""

    max_separation_km: float = 5.0
    """Cap on the minimum separation between sampled points"""

    separation_ratio: float = 0.1
    """Minimum separation as a ratio of the radius (capped above)"""

    max_attempts: int = 50
    """Rejection-sampling attempts per point"""

    call_timeout: Optional[float] = 60.0
    """Seconds allowed for one create-and-analyze call; None disables it"""

    @classmethod
    def from_settings(cls) -> "ComparisonConfig":
        return cls(
            area_count=settings.comparison_area_count,
            area_m2=settings.comparison_area_m2,
            max_separation_km=settings.comparison_max_separation_km,
            separation_ratio=settings.comparison_separation_ratio,
            max_attempts=settings.comparison_max_attempts,
            call_timeout=settings.comparison_call_timeout,
        )

    def min_separation_km(self, radius_km: float) -> float:
        return min(self.max_separation_km, radius_km * self.separation_ratio)


@dataclass
class _Candidate:
    index: int
    center: Coordinate
    ring: Ring


class ComparisonSampler:
    """
    Produces ranked comparison areas around an origin.

    Each request runs its own state machine; the sampler holds no
    per-request state and can serve concurrent requests.
    """

    def __init__(
        self,
        collaborator: AreaAnalysisCollaborator,
        config: Optional[ComparisonConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize the sampler.

        Args:
            collaborator: Creates and analyzes an area for a ring
            config: Sampling configuration (defaults to settings)
            rng: Random generator for point sampling (for reproducibility)
        """
        self.collaborator = collaborator
        self.config = config or ComparisonConfig.from_settings()
        self.rng = rng if rng is not None else np.random.default_rng()

    async def compare_ring(
        self,
        ring: Ring,
        radius_km: float,
        origin_score: Optional[float] = None,
    ) -> ComparisonResult:
        """Compare around the centroid of a drawn ring."""
        return await self.compare(ring_center(ring), radius_km, origin_score)

    async def compare(
        self,
        origin: Coordinate,
        radius_km: float,
        origin_score: Optional[float] = None,
    ) -> ComparisonResult:
        """
        Sample, analyze and rank comparison areas around an origin.

        Args:
            origin: Center of the analyzed area
            radius_km: Sampling radius
            origin_score: Score of the analyzed area, echoed in the result

        Returns:
            ComparisonResult in state ``ranked`` (at least one area) or ``failed``
        """
        area = BoundingArea(center=origin, radius_km=radius_km)
        transitions = [ComparisonState.IDLE]

        def enter(state: ComparisonState) -> None:
            transitions.append(state)
            logger.debug(f"Comparison around ({origin.latitude:.5f}, {origin.longitude:.5f}): {state.value}")

        # Sampling
        enter(ComparisonState.SAMPLING)
        min_separation = self.config.min_separation_km(radius_km)
        points = sample_non_overlapping_points(
            area,
            count=self.config.area_count,
            min_separation_km=min_separation,
            max_attempts_per_point=self.config.max_attempts,
            rng=self.rng,
        )
        logger.info(
            f"Sampled {len(points)} locations within {radius_km}km "
            f"(min separation {min_separation:.2f}km)"
        )

        # Creating areas: one independent call per point, all settled before ranking
        enter(ComparisonState.CREATING_AREAS)
        candidates = [
            _Candidate(index=i, center=p, ring=square_ring_around_center(p, self.config.area_m2))
            for i, p in enumerate(points)
        ]
        outcomes = await asyncio.gather(
            *(self._analyze(candidate) for candidate in candidates),
            return_exceptions=True,
        )

        # Scoring
        enter(ComparisonState.SCORING)
        areas: List[ComparisonArea] = []
        for candidate, outcome in zip(candidates, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning(
                    f"Comparison location {candidate.index + 1} dropped: "
                    f"{type(outcome).__name__}: {outcome}"
                )
                continue
            areas.append(ComparisonArea(
                ring=candidate.ring,
                center=candidate.center,
                distance_km=haversine_distance_km(origin, candidate.center),
                analysis=outcome,
            ))

        failed = len(candidates) - len(areas)

        if not areas:
            enter(ComparisonState.FAILED)
            logger.error(f"All {len(candidates)} comparison locations failed")
            return ComparisonResult(
                state=ComparisonState.FAILED,
                transitions=transitions,
                origin_center=origin,
                radius_km=radius_km,
                origin_score=origin_score,
                requested=len(candidates),
                failed=failed,
            )

        # Ranked: sorted() is stable, ties keep sampling order
        enter(ComparisonState.RANKED)
        ranked = sorted(areas, key=lambda a: a.score, reverse=True)
        logger.info(
            f"Ranked {len(ranked)}/{len(candidates)} comparison areas, "
            f"scores={[a.score for a in ranked]}"
        )

        return ComparisonResult(
            state=ComparisonState.RANKED,
            transitions=transitions,
            origin_center=origin,
            radius_km=radius_km,
            origin_score=origin_score,
            requested=len(candidates),
            failed=failed,
            areas=ranked,
        )

    async def _analyze(self, candidate: _Candidate) -> AnalysisResult:
        call = self.collaborator.analyze_ring(candidate.ring)
        if self.config.call_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.config.call_timeout)
