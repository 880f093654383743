"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from agroscore.infrastructure.external_api_client import (
    AgroMonitoringClient,
    get_api_client,
)
from agroscore.services.application.area_analysis_service import AreaAnalysisService
from agroscore.services.application.comparison_sampler import ComparisonSampler
from agroscore.services.domain.quality_assessor import RuleBasedAssessor


def get_quality_assessor() -> RuleBasedAssessor:
    """
    Dependency factory for the quality assessor.

    Returns:
        RuleBasedAssessor instance
    """
    return RuleBasedAssessor()


def get_area_analysis_service(
    api_client: Annotated[AgroMonitoringClient, Depends(get_api_client)],
    assessor: Annotated[RuleBasedAssessor, Depends(get_quality_assessor)],
) -> AreaAnalysisService:
    """
    Dependency factory for AreaAnalysisService.

    Args:
        api_client: External API client (injected)
        assessor: Quality assessor (injected)

    Returns:
        AreaAnalysisService instance
    """
    return AreaAnalysisService(api_client=api_client, assessor=assessor)


def get_comparison_sampler(
    analysis_service: Annotated[AreaAnalysisService, Depends(get_area_analysis_service)],
) -> ComparisonSampler:
    """
    Dependency factory for ComparisonSampler.

    Args:
        analysis_service: Area analysis service used as the collaborator (injected)

    Returns:
        ComparisonSampler instance
    """
    return ComparisonSampler(collaborator=analysis_service)


# Type aliases for cleaner route signatures
AreaAnalysisServiceDep = Annotated[AreaAnalysisService, Depends(get_area_analysis_service)]
ComparisonSamplerDep = Annotated[ComparisonSampler, Depends(get_comparison_sampler)]
