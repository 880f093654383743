"""
Domain service: Soil quality scoring and result assembly.

Turns a normalized SoilSample and vegetation AggregateStats, together with
the judgement returned by a quality assessor, into a fixed-shape
AnalysisResult:
- Deterministic status labels for temperature, moisture and vegetation
- Data-completeness confidence and normalization of assessor confidence
- Numeric score fallback from a categorical level
"""
import math
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agroscore.domain.models import (
    AggregateStats,
    AnalysisResult,
    FieldConditions,
    MoistureCondition,
    QualityLevel,
    SoilSample,
    TemperatureCondition,
    VegetationCondition,
)

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
UNKNOWN_STATUS = "unknown"
NO_RECOMMENDATIONS = ["No recommendations available"]
NO_CROPS = ["No crop recommendations available"]
DEFAULT_SUMMARY = "Analysis complete"
UNKNOWN_YIELD = "Unknown"

LEVEL_SCORES = {
    QualityLevel.HIGH: 80.0,
    QualityLevel.MODERATE: 60.0,
    QualityLevel.LOW: 30.0,
}

# Weights of each available input in the completeness confidence
COMPLETENESS_WEIGHTS = {
    "surface_temp": 0.15,
    "depth10_temp": 0.15,
    "moisture": 0.25,
    "ndvi_mean": 0.25,
    "area": 0.20,
}


# ============================================================
# Status classification
# ============================================================

def temperature_status(surface_temp_c: Optional[float]) -> str:
    if surface_temp_c is None:
        return UNKNOWN_STATUS
    if surface_temp_c < 5:
        return "cold"
    if surface_temp_c > 25:
        return "warm"
    return "optimal"


def moisture_status(moisture_percent: Optional[float]) -> str:
    if moisture_percent is None:
        return UNKNOWN_STATUS
    if moisture_percent < 20:
        return "low"
    if moisture_percent > 70:
        return "excessive"
    if moisture_percent < 30:
        return "moderate"
    return "sufficient"


def vegetation_status(ndvi_mean: Optional[float]) -> str:
    if ndvi_mean is None:
        return UNKNOWN_STATUS
    if ndvi_mean < 0.1:
        return "very_poor"
    if ndvi_mean < 0.3:
        return "poor"
    if ndvi_mean < 0.5:
        return "moderate"
    if ndvi_mean < 0.7:
        return "good"
    return "excellent"


# ============================================================
# Confidence
# ============================================================

def data_completeness(
    sample: SoilSample,
    stats: AggregateStats,
    area_hectares: Optional[float] = None,
) -> float:
    """
    Confidence derived from which inputs are present.

    Returns:
        Value in [0, 1]; 1.0 when every input is known
    """
    present = {
        "surface_temp": sample.surface_temp_c is not None,
        "depth10_temp": sample.depth10_temp_c is not None,
        "moisture": sample.moisture_percent is not None,
        "ndvi_mean": stats.mean is not None,
        "area": area_hectares is not None and area_hectares > 0,
    }
    completeness = sum(COMPLETENESS_WEIGHTS[key] for key, ok in present.items() if ok)
    return round(completeness, 2)


def normalize_confidence(raw: Any, fallback: float) -> float:
    """
    Normalize an assessor-supplied confidence to [0, 1].

    Accepts decimals (``0.9``), percentages (``90``) and percentage strings
    (``"90%"``). Anything unparsable, including NaN, yields the fallback.

    Args:
        raw: Confidence as returned by the assessor
        fallback: Value used when ``raw`` cannot be interpreted

    Returns:
        Confidence in [0, 1]
    """
    if raw is None or isinstance(raw, bool):
        return fallback

    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("%"):
            text = text[:-1].strip()
        try:
            value = float(text)
        except ValueError:
            logger.debug(f"Unparsable confidence {raw!r}, using completeness {fallback}")
            return fallback
    elif isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return fallback
    else:
        return fallback

    if not math.isfinite(value):
        return fallback
    if value > 1:
        value = value / 100
    return max(0.0, min(1.0, value))


# ============================================================
# Score and level
# ============================================================

def parse_level(raw: Any) -> Optional[QualityLevel]:
    """Case-insensitive match of a level label; None when unrecognized."""
    if isinstance(raw, QualityLevel):
        return raw
    if not isinstance(raw, str):
        return None
    normalized = raw.strip().lower()
    for level in QualityLevel:
        if level.value.lower() == normalized:
            return level
    return None


def score_from_level(level: QualityLevel) -> float:
    """Numeric score for a categorical level (High 80, Moderate 60, Low 30)."""
    return LEVEL_SCORES[level]


def level_from_score(score: float) -> QualityLevel:
    """Categorical level for a numeric score, split halfway between level scores."""
    if score >= 70:
        return QualityLevel.HIGH
    if score >= 45:
        return QualityLevel.MODERATE
    return QualityLevel.LOW


def _numeric_score(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(value):
        return None
    return max(0.0, min(100.0, value))


def resolve_score(assessment: Dict[str, Any]) -> tuple[float, QualityLevel]:
    """
    Numeric score and level from an assessor response.

    A numeric ``Soil_Quality_Index`` wins; otherwise the score is derived from
    ``Soil_Quality_Level``. With neither, the result is Low / 30.

    Returns:
        (score in [0, 100], level)
    """
    level = parse_level(
        assessment.get("Soil_Quality_Level") or assessment.get("Fertility_Level")
    )
    score = _numeric_score(assessment.get("Soil_Quality_Index"))

    if score is None:
        if level is None:
            logger.warning("Assessment has neither score nor level, defaulting to Low")
            level = QualityLevel.LOW
        score = score_from_level(level)
    elif level is None:
        level = level_from_score(score)

    return score, level


# ============================================================
# Result assembly
# ============================================================

def _fmt(value: Optional[float], pattern: str) -> str:
    if value is None or not math.isfinite(value):
        return NOT_AVAILABLE
    return pattern.format(value)


def build_conditions(sample: SoilSample, stats: AggregateStats) -> FieldConditions:
    """Formatted raw values and status labels for the current conditions."""
    return FieldConditions(
        temperature=TemperatureCondition(
            surface=_fmt(sample.surface_temp_c, "{:.2f}°C"),
            depth_10cm=_fmt(sample.depth10_temp_c, "{:.2f}°C"),
            status=temperature_status(sample.surface_temp_c),
        ),
        moisture=MoistureCondition(
            value=_fmt(sample.moisture_percent, "{:.1f}%"),
            status=moisture_status(sample.moisture_percent),
        ),
        vegetation=VegetationCondition(
            ndvi_mean=_fmt(stats.mean, "{:.4f}"),
            ndvi_median=_fmt(stats.median, "{:.4f}"),
            ndvi_min=_fmt(stats.min, "{:.4f}"),
            ndvi_max=_fmt(stats.max, "{:.4f}"),
            ndvi_std=_fmt(stats.std, "{:.4f}"),
            status=vegetation_status(stats.mean),
        ),
    )


def _string_list(raw: Any, default: List[str]) -> List[str]:
    if isinstance(raw, list):
        items = [str(item) for item in raw if item is not None and str(item).strip()]
        if items:
            return items
    return list(default)


def _iso_timestamp(timestamp_unix: Optional[int]) -> Optional[str]:
    if timestamp_unix is None:
        return None
    try:
        return datetime.fromtimestamp(timestamp_unix, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def build_analysis_result(
    sample: SoilSample,
    stats: AggregateStats,
    assessment: Optional[Dict[str, Any]],
    area_hectares: Optional[float] = None,
    polygon_id: Optional[str] = None,
    analysis_source: str = "unknown",
) -> AnalysisResult:
    """
    Assemble the fixed-shape analysis result.

    Args:
        sample: Normalized soil sample
        stats: Vegetation statistics (possibly all None)
        assessment: Assessor response (may be None or partial)
        area_hectares: Area of the ground area, when known
        polygon_id: Upstream identifier of the area
        analysis_source: Name of the assessor that produced ``assessment``

    Returns:
        AnalysisResult
    """
    assessment = assessment or {}

    completeness = data_completeness(sample, stats, area_hectares)
    confidence = normalize_confidence(assessment.get("Confidence"), completeness)
    score, level = resolve_score(assessment)

    summary = assessment.get("Field_Summary") or assessment.get("Summary") or DEFAULT_SUMMARY

    result = AnalysisResult(
        score=score,
        confidence=confidence,
        level=level,
        summary=str(summary),
        recommendations=_string_list(assessment.get("Recommendations"), NO_RECOMMENDATIONS),
        conditions=build_conditions(sample, stats),
        predicted_crops=_string_list(assessment.get("Predicted_Crops"), NO_CROPS),
        predicted_yield=str(
            assessment.get("Predicted_Yield") or assessment.get("Predicted_Yield_Quality") or UNKNOWN_YIELD
        ),
        polygon_id=polygon_id,
        area_hectares=area_hectares,
        data_timestamp=_iso_timestamp(sample.timestamp_unix),
        analysis_source=analysis_source,
    )

    logger.info(
        f"Analysis for polygon {polygon_id}: score={score:.1f} level={level.value} "
        f"confidence={confidence:.2f}"
    )
    return result
