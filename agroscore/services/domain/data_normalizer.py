"""
Domain service: Normalization of raw soil and vegetation payloads.

This module turns the loosely-shaped payloads returned by the monitoring API
into canonical domain models:
- Soil readings (Kelvin, volumetric fraction) -> SoilSample (°C, percent)
- NDVI histories in any of the tolerated shapes -> AggregateStats
- Look-back window retry when requesting NDVI history

Nothing in here raises on malformed input: every unreadable field degrades
to ``None``.
"""
import math
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence

import numpy as np

from agroscore.domain.collaborators import VegetationHistorySource
from agroscore.domain.models import AggregateStats, NDVIObservation, SoilSample
from agroscore.infrastructure.external_api_client import ExternalAPIError

logger = logging.getLogger(__name__)

KELVIN_OFFSET = 273.15
NDVI_MIN = -1.0
NDVI_MAX = 1.0

_DAY_SECONDS = 60 * 60 * 24


# ============================================================
# Scalar coercion
# ============================================================

def _to_float(value: Any) -> Optional[float]:
    """Coerce a JSON scalar to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except (ValueError, OverflowError):
        return None
    return value if math.isfinite(value) else None


def _to_ndvi(value: Any) -> Optional[float]:
    """Coerce a value to an NDVI reading, discarding anything outside [-1, 1]."""
    if isinstance(value, str):
        return None
    number = _to_float(value)
    if number is None or not (NDVI_MIN <= number <= NDVI_MAX):
        return None
    return number


def _to_timestamp(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


# ============================================================
# Soil conversion
# ============================================================

def kelvin_to_celsius(kelvin: Any) -> Optional[float]:
    """Convert a Kelvin reading to Celsius; unreadable input gives None."""
    value = _to_float(kelvin)
    if value is None:
        return None
    return value - KELVIN_OFFSET


def moisture_to_percent(raw: Any) -> Optional[float]:
    """
    Scale a moisture reading to a percentage.

    Values below 1 are taken as volumetric fractions and multiplied by 100;
    values of 1 or more are assumed to already be percentages. A genuine
    reading of e.g. 0.5% is therefore indistinguishable from a 50% fraction.
    """
    value = _to_float(raw)
    if value is None:
        return None
    return value * 100 if value < 1 else value


def normalize_soil(payload: Any) -> SoilSample:
    """
    Convert a raw soil payload into a SoilSample.

    Args:
        payload: ``{dt, t0, t10, moisture}`` as returned by the soil endpoint

    Returns:
        SoilSample with every unreadable field set to None
    """
    if not isinstance(payload, dict):
        logger.warning(f"Soil payload is not an object ({type(payload).__name__}), using empty sample")
        return SoilSample()

    sample = SoilSample(
        timestamp_unix=_to_timestamp(payload.get("dt")),
        surface_temp_c=kelvin_to_celsius(payload.get("t0")),
        depth10_temp_c=kelvin_to_celsius(payload.get("t10")),
        moisture_percent=moisture_to_percent(payload.get("moisture")),
    )
    logger.debug(
        f"Normalized soil: t0={sample.surface_temp_c}, t10={sample.depth10_temp_c}, "
        f"moisture={sample.moisture_percent}"
    )
    return sample


# ============================================================
# NDVI aggregation
# ============================================================

def aggregate_values(values: Iterable[Any], source: Optional[str] = None) -> Optional[AggregateStats]:
    """
    Compute mean, median, min, max and population std over NDVI values.

    Values outside [-1, 1] or not numeric are dropped first.

    Args:
        values: Raw values
        source: Name recorded on the resulting stats

    Returns:
        AggregateStats, or None if no value survives filtering
    """
    valid = [v for v in (_to_ndvi(value) for value in values) if v is not None]
    if not valid:
        return None

    array = np.asarray(valid, dtype=float)
    return AggregateStats(
        mean=float(np.mean(array)),
        median=float(np.median(array)),
        min=float(np.min(array)),
        max=float(np.max(array)),
        std=float(np.std(array)),
        observation_count=len(valid),
        source=source,
    )


def _as_entries(payload: Any) -> List[Any]:
    """Unwrap the container shapes the history endpoint has been seen to return."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if isinstance(payload.get("data"), list):
            return payload["data"]
        if payload:
            return [payload]
    return []


def _nested_data(entry: Any) -> Optional[dict]:
    if isinstance(entry, dict) and isinstance(entry.get("data"), dict):
        return entry["data"]
    return None


def parse_observations(payload: Any) -> List[NDVIObservation]:
    """
    Typed view of history entries carrying pre-aggregated ``data.mean``.

    Entries without a valid mean are skipped; other statistics outside their
    valid range are dropped individually.
    """
    observations = []
    for entry in _as_entries(payload):
        data = _nested_data(entry)
        if data is None:
            continue
        mean = _to_ndvi(data.get("mean"))
        if mean is None:
            continue
        std = _to_float(data.get("std"))
        observations.append(NDVIObservation(
            timestamp_unix=_to_timestamp(entry.get("dt")),
            mean=mean,
            median=_to_ndvi(data.get("median")),
            min=_to_ndvi(data.get("min")),
            max=_to_ndvi(data.get("max")),
            std=std if std is not None and std >= 0 else None,
        ))
    return observations


def extract_precomputed_stats(entries: List[Any]) -> Optional[AggregateStats]:
    """Entries shaped ``{dt, data: {mean, median, min, max, std}}``."""
    observations = parse_observations(entries)
    if not observations:
        return None

    if len(observations) > 1:
        return aggregate_values(
            (o.mean for o in observations), source="precomputed_multi"
        )

    only = observations[0]
    return AggregateStats(
        mean=only.mean,
        median=only.median,
        min=only.min,
        max=only.max,
        std=only.std,
        observation_count=1,
        source="precomputed_single",
    )


def extract_nested_values(entries: List[Any]) -> Optional[AggregateStats]:
    """Entries shaped ``{dt, data: {value}}``."""
    values = [data.get("value") for data in map(_nested_data, entries) if data is not None]
    return aggregate_values(values, source="nested_values")


def extract_flat_values(entries: List[Any]) -> Optional[AggregateStats]:
    """Entries shaped ``{dt, value}``."""
    values = [entry.get("value") for entry in entries if isinstance(entry, dict)]
    return aggregate_values(values, source="flat_values")


NDVIExtractor = Callable[[List[Any]], Optional[AggregateStats]]

NDVI_EXTRACTORS: List[NDVIExtractor] = [
    extract_precomputed_stats,
    extract_nested_values,
    extract_flat_values,
]
"""Tried in order; the first extractor returning stats wins"""


def extract_vegetation_stats(payload: Any) -> AggregateStats:
    """
    Reduce an NDVI history payload to aggregate statistics.

    Args:
        payload: Raw history response (list, wrapped list or single object)

    Returns:
        AggregateStats; all fields None when vegetation data is unavailable
    """
    entries = _as_entries(payload)
    if not entries:
        logger.info("No NDVI entries to process, vegetation data unavailable")
        return AggregateStats()

    for extractor in NDVI_EXTRACTORS:
        stats = extractor(entries)
        if stats is not None and stats.is_available:
            logger.debug(
                f"NDVI stats from {stats.source} over {stats.observation_count} value(s): "
                f"mean={stats.mean}, median={stats.median}, min={stats.min}, "
                f"max={stats.max}, std={stats.std}"
            )
            return stats

    logger.warning(f"Unrecognized NDVI structure in {len(entries)} entries, vegetation data unavailable")
    return AggregateStats()


def has_usable_structure(payload: Any) -> bool:
    """True if the payload yields at least one NDVI statistic."""
    return extract_vegetation_stats(payload).is_available


# ============================================================
# Look-back window retry
# ============================================================

@dataclass(frozen=True)
class LookbackWindow:
    """A history window ending now."""
    name: str
    days: int

    def bounds(self, now: int) -> tuple[int, int]:
        return (now - self.days * _DAY_SECONDS, now)


LOOKBACK_WINDOWS: List[LookbackWindow] = [
    LookbackWindow("Last 1 year", 365),
    LookbackWindow("Last 6 months", 180),
    LookbackWindow("Last 3 months", 90),
    LookbackWindow("Last 30 days", 30),
    LookbackWindow("Last 7 days", 7),
    LookbackWindow("Last 1 day", 1),
]
"""Widest first; each narrower window is only tried after the previous one failed"""


async def fetch_vegetation_history(
    source: VegetationHistorySource,
    polygon_id: str,
    now: Optional[int] = None,
    windows: Sequence[LookbackWindow] = LOOKBACK_WINDOWS,
) -> Optional[Any]:
    """
    Request NDVI history over progressively narrower windows.

    Stops at the first window whose payload has usable structure. Upstream
    errors (404, quota, transport) are logged and the next window is tried.

    Args:
        source: Vegetation history provider
        polygon_id: Upstream area identifier
        now: Window end as unix seconds (defaults to the current time)
        windows: Windows to try, in order

    Returns:
        Raw payload of the first usable window, or None if none was usable
    """
    now = int(time.time()) if now is None else now

    for window in windows:
        start, end = window.bounds(now)
        try:
            payload = await source.get_ndvi_history(polygon_id, start, end)
        except ExternalAPIError as e:
            logger.warning(f"NDVI request for {window.name} failed ({e.status_code}): {e.message}")
            continue

        if has_usable_structure(payload):
            logger.info(f"NDVI history for polygon {polygon_id} found with {window.name} window")
            return payload

        logger.info(f"No usable NDVI entries for {window.name} window, trying next window")

    logger.warning(
        f"No NDVI history for polygon {polygon_id} in any window; "
        "continuing without vegetation data"
    )
    return None
