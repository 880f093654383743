"""
Domain service: Deterministic soil quality assessment.

Stands in for the generative scoring step. Produces the same response shape
(Soil_Quality_Level, Soil_Quality_Index, Field_Summary, Predicted_Crops,
Predicted_Yield, Recommendations) from the status labels alone, so results
are reproducible and need no external service.
"""
import logging
from typing import Any, Dict, List, Optional

from agroscore.domain.models import AggregateStats, QualityLevel, SoilSample
from agroscore.services.domain.scoring_engine import (
    level_from_score,
    moisture_status,
    temperature_status,
    vegetation_status,
)

logger = logging.getLogger(__name__)


# Sub-score (0-1) of each status label
TEMPERATURE_FACTORS = {"optimal": 1.0, "warm": 0.6, "cold": 0.4}
MOISTURE_FACTORS = {"sufficient": 1.0, "moderate": 0.6, "excessive": 0.4, "low": 0.3}
VEGETATION_FACTORS = {
    "excellent": 1.0,
    "good": 0.8,
    "moderate": 0.6,
    "poor": 0.3,
    "very_poor": 0.1,
}

COMPONENT_WEIGHTS = {"temperature": 0.25, "moisture": 0.35, "vegetation": 0.40}

RECOMMENDATIONS = {
    ("temperature", "cold"): "Delay sowing or use mulch to warm the topsoil before planting.",
    ("temperature", "warm"): "Apply mulch and irrigate early in the day to limit heat stress.",
    ("moisture", "low"): "Increase irrigation and add organic matter to improve water retention.",
    ("moisture", "moderate"): "Monitor soil moisture weekly and irrigate before it drops below 20%.",
    ("moisture", "excessive"): "Improve field drainage and avoid irrigation until the soil dries.",
    ("vegetation", "very_poor"): "Re-establish ground cover with a fast-growing cover crop.",
    ("vegetation", "poor"): "Add compost or a balanced fertilizer to support plant growth.",
    ("vegetation", "moderate"): "Scout for nutrient deficiencies and pests in weaker patches.",
    ("vegetation", "unknown"): "Re-check vegetation (NDVI) data in a few days once captures are processed.",
}
MAINTENANCE_RECOMMENDATIONS = [
    "Keep adding organic compost to maintain soil structure.",
    "Rotate crops to preserve soil fertility.",
    "Monitor NDVI again next week to track vegetation trends.",
]

CROPS_BY_TEMPERATURE = {
    "cold": ["barley", "rye", "oats"],
    "optimal": ["wheat", "maize", "soybean"],
    "warm": ["sorghum", "millet", "cotton"],
}
DRY_TOLERANT_CROPS = ["sorghum", "millet", "chickpea"]

YIELD_BY_LEVEL = {
    QualityLevel.HIGH: "Above average",
    QualityLevel.MODERATE: "Average",
    QualityLevel.LOW: "Below average",
}


class RuleBasedAssessor:
    """
    Quality assessor combining weighted status sub-scores.

    Only components whose status is known contribute; their weights are
    renormalized. No confidence is reported, so the scoring engine falls
    back to data completeness.
    """

    name = "Rule-based assessor"

    async def assess(
        self,
        sample: SoilSample,
        stats: AggregateStats,
        area_hectares: Optional[float] = None,
    ) -> Dict[str, Any]:
        return self.evaluate(sample, stats)

    def evaluate(self, sample: SoilSample, stats: AggregateStats) -> Dict[str, Any]:
        statuses = {
            "temperature": temperature_status(sample.surface_temp_c),
            "moisture": moisture_status(sample.moisture_percent),
            "vegetation": vegetation_status(stats.mean),
        }
        factors = {
            "temperature": TEMPERATURE_FACTORS.get(statuses["temperature"]),
            "moisture": MOISTURE_FACTORS.get(statuses["moisture"]),
            "vegetation": VEGETATION_FACTORS.get(statuses["vegetation"]),
        }

        known = {key: value for key, value in factors.items() if value is not None}
        if not known:
            logger.warning("No soil or vegetation inputs available, assessment has no score")
            return {
                "Field_Summary": "No soil or vegetation data was available for this area.",
                "Recommendations": ["Retry the analysis once soil and NDVI data are available."],
            }

        total_weight = sum(COMPONENT_WEIGHTS[key] for key in known)
        score = 100 * sum(COMPONENT_WEIGHTS[key] * value for key, value in known.items()) / total_weight
        score = round(score, 1)
        level = level_from_score(score)

        logger.debug(f"Rule-based assessment: statuses={statuses}, score={score}")

        return {
            "Soil_Quality_Level": level.value,
            "Soil_Quality_Index": score,
            "Field_Summary": self._summary(statuses, level.value),
            "Predicted_Crops": self._crops(statuses),
            "Predicted_Yield": YIELD_BY_LEVEL[level],
            "Recommendations": self._recommendations(statuses),
        }

    def _summary(self, statuses: Dict[str, str], level: str) -> str:
        parts = []
        if statuses["moisture"] != "unknown":
            parts.append(f"soil moisture is {statuses['moisture']}")
        if statuses["temperature"] != "unknown":
            parts.append(f"temperature is {statuses['temperature']}")
        if statuses["vegetation"] != "unknown":
            parts.append(f"vegetation is {statuses['vegetation'].replace('_', ' ')}")
        else:
            parts.append("vegetation data is unavailable")
        return f"Overall soil quality is {level.lower()}: " + ", ".join(parts) + "."

    def _crops(self, statuses: Dict[str, str]) -> List[str]:
        if statuses["moisture"] == "low":
            return list(DRY_TOLERANT_CROPS)
        return list(CROPS_BY_TEMPERATURE.get(statuses["temperature"], []))

    def _recommendations(self, statuses: Dict[str, str]) -> List[str]:
        recommendations = [
            RECOMMENDATIONS[(component, status)]
            for component, status in statuses.items()
            if (component, status) in RECOMMENDATIONS
        ]
        for extra in MAINTENANCE_RECOMMENDATIONS:
            if len(recommendations) >= 3:
                break
            recommendations.append(extra)
        return recommendations[:4]
