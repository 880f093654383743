"""
Spherical geodesy utilities for ground areas.

Provides utilities for:
- Great-circle distances (haversine)
- Rectangle and polygon areas on a sphere
- Uniform random sampling inside a radius with minimum separation
- Construction of fixed-size square rings
"""
import math
import logging
from typing import List, Optional, Sequence, Union

import numpy as np
from shapely.geometry import MultiPoint, Polygon

from agroscore.domain.models import BoundingArea, Coordinate, Ring

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
"""Mean Earth radius used for distances and sampling offsets"""

POLYGON_EARTH_RADIUS_M = 6378137.0
"""WGS84 equatorial radius used by the spherical-excess polygon area"""

KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180.0
"""Length of one degree of latitude (~111.2 km)"""

_MIN_COS_LATITUDE = 1e-12

RingLike = Union[Ring, Sequence[Coordinate]]


def close_ring(ring: RingLike) -> List[Coordinate]:
    """
    Return the ring's coordinates with the closing point present.

    Args:
        ring: Ring or raw sequence of coordinates

    Returns:
        List of coordinates whose first and last elements are equal
    """
    points = list(ring.points) if isinstance(ring, Ring) else list(ring)
    if points and points[0] != points[-1]:
        points.append(points[0])
    return points


def _open_vertices(ring: RingLike) -> List[Coordinate]:
    points = close_ring(ring)
    return points[:-1] if len(points) > 1 else points


def _clamped_coordinate(latitude: float, longitude: float) -> Coordinate:
    return Coordinate(
        latitude=max(-90.0, min(90.0, latitude)),
        longitude=max(-180.0, min(180.0, longitude)),
    )


def _longitude_scale(latitude: float) -> float:
    """Degrees of longitude per degree of latitude at the given latitude."""
    return 1.0 / max(abs(math.cos(math.radians(latitude))), _MIN_COS_LATITUDE)


def haversine_distance_km(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates.

    Args:
        a: First coordinate
        b: Second coordinate

    Returns:
        Distance in kilometres
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def rectangle_dimensions_m(ring: RingLike) -> tuple[float, float]:
    """
    Width and height of an axis-aligned rectangle given by its corners.

    Both sides are measured from the shared north-west corner of the
    bounding box.

    Args:
        ring: 4 corners, optionally with the closing point

    Returns:
        (width, height) in metres
    """
    points = _open_vertices(ring)
    if not points:
        return 0.0, 0.0

    north = max(p.latitude for p in points)
    south = min(p.latitude for p in points)
    west = min(p.longitude for p in points)
    east = max(p.longitude for p in points)

    corner = Coordinate(latitude=north, longitude=west)
    width_m = haversine_distance_km(corner, Coordinate(latitude=north, longitude=east)) * 1000
    height_m = haversine_distance_km(corner, Coordinate(latitude=south, longitude=west)) * 1000

    return width_m, height_m


def rectangle_area_m2(ring: RingLike) -> float:
    """Area of an axis-aligned rectangle in m², as width x height."""
    width_m, height_m = rectangle_dimensions_m(ring)
    return width_m * height_m


def _central_angle(p: Coordinate, q: Coordinate) -> float:
    """Arc between two points in radians (spherical law of cosines)."""
    lat1, lat2 = math.radians(p.latitude), math.radians(q.latitude)
    d_lon = math.radians(q.longitude - p.longitude)
    cos_angle = (
        math.sin(lat1) * math.sin(lat2)
        + math.cos(lat1) * math.cos(lat2) * math.cos(d_lon)
    )
    return math.acos(max(-1.0, min(1.0, cos_angle)))


def _spherical_excess(a: float, b: float, c: float) -> float:
    """Spherical excess of a triangle with sides a, b, c (L'Huilier)."""
    s = (a + b + c) / 2
    radicand = (
        math.tan(s / 2)
        * math.tan((s - a) / 2)
        * math.tan((s - b) / 2)
        * math.tan((s - c) / 2)
    )
    # Near-collinear triangles can produce a slightly negative product
    return 4 * math.atan(math.sqrt(max(0.0, radicand)))


def polygon_area_m2(ring: RingLike) -> float:
    """
    Area of a simple polygon on a sphere.

    Triangulates the polygon as a fan from the first vertex and sums the
    spherical excess of every triangle. Winding and simplicity are not
    validated; a self-intersecting ring yields a meaningless but finite value.

    Args:
        ring: Polygon boundary (closed or open)

    Returns:
        Area in m²; 0 for fewer than 3 distinct points
    """
    vertices = _open_vertices(ring)
    distinct = {(p.latitude, p.longitude) for p in vertices}
    if len(distinct) < 3:
        return 0.0

    origin = vertices[0]
    total_excess = 0.0

    for i in range(1, len(vertices) - 1):
        p1 = vertices[i]
        p2 = vertices[i + 1]
        a = _central_angle(p1, p2)
        b = _central_angle(p2, origin)
        c = _central_angle(origin, p1)
        total_excess += _spherical_excess(a, b, c)

    return abs(total_excess * POLYGON_EARTH_RADIUS_M ** 2)


def is_axis_aligned_rectangle(ring: RingLike, tolerance: float = 1e-9) -> bool:
    """
    Check whether a ring is a rectangle aligned with parallels and meridians.

    Args:
        ring: Ring to check
        tolerance: Degrees within which two coordinates count as equal

    Returns:
        True if the ring has 4 corners sitting on 2 latitudes and 2 longitudes
    """
    vertices = _open_vertices(ring)
    if len(vertices) != 4:
        return False

    def bucket(value: float) -> int:
        return round(value / tolerance)

    lats = {bucket(p.latitude) for p in vertices}
    lons = {bucket(p.longitude) for p in vertices}
    corners = {(bucket(p.latitude), bucket(p.longitude)) for p in vertices}

    return len(lats) == 2 and len(lons) == 2 and len(corners) == 4


def ring_area_m2(ring: RingLike) -> float:
    """
    Area of a drawn shape, choosing rectangle math for axis-aligned rectangles.

    Args:
        ring: Ring to measure

    Returns:
        Area in m²
    """
    if is_axis_aligned_rectangle(ring):
        return rectangle_area_m2(ring)
    return polygon_area_m2(ring)


def ring_center(ring: RingLike) -> Coordinate:
    """
    Centroid of a ring, computed in longitude/latitude degree space.

    Falls back to the mean of the distinct vertices when the ring has no area.

    Args:
        ring: Ring whose center is needed

    Returns:
        Center coordinate
    """
    vertices = _open_vertices(ring)
    if not vertices:
        raise ValueError("Cannot compute the center of an empty ring")

    xy = [(p.longitude, p.latitude) for p in vertices]
    centroid = Polygon(xy).centroid if len(xy) >= 3 else None

    if centroid is None or centroid.is_empty:
        centroid = MultiPoint(list(dict.fromkeys(xy))).centroid

    return _clamped_coordinate(centroid.y, centroid.x)


def sample_random_point(
    area: BoundingArea,
    rng: Optional[np.random.Generator] = None,
) -> Coordinate:
    """
    Draw a point uniformly over the disk described by a bounding area.

    Uses ``distance = radius * sqrt(U)`` and ``angle = 2π V`` so that points
    are uniform in area, then converts the polar offset to degrees with a
    ``1 / cos(latitude)`` longitude correction. Results are clamped into the
    valid coordinate ranges.

    Args:
        area: Sampling center and radius
        rng: Optional numpy random generator (for reproducibility)

    Returns:
        Sampled coordinate
    """
    rng = rng if rng is not None else np.random.default_rng()
    u, v = rng.random(2)

    distance_km = area.radius_km * math.sqrt(u)
    angle = 2 * math.pi * v

    lat_offset = distance_km * math.cos(angle) / KM_PER_DEGREE
    lon_offset = (
        distance_km * math.sin(angle) / KM_PER_DEGREE
        * _longitude_scale(area.center.latitude)
    )

    return _clamped_coordinate(
        area.center.latitude + lat_offset,
        area.center.longitude + lon_offset,
    )


def sample_non_overlapping_points(
    area: BoundingArea,
    count: int,
    min_separation_km: float,
    max_attempts_per_point: int,
    rng: Optional[np.random.Generator] = None,
) -> List[Coordinate]:
    """
    Sample points inside a bounding area, keeping them apart where possible.

    A candidate closer than ``min_separation_km`` to an accepted point is
    rejected. After ``max_attempts_per_point`` tries the last candidate is
    accepted anyway, so the call always terminates but separation is not
    guaranteed for crowded radius/count combinations.

    Args:
        area: Sampling center and radius
        count: Number of points to return
        min_separation_km: Desired minimum distance between points
        max_attempts_per_point: Tries per point before giving up
        rng: Optional numpy random generator

    Returns:
        List of exactly ``count`` coordinates
    """
    rng = rng if rng is not None else np.random.default_rng()
    attempts_limit = max(1, max_attempts_per_point)
    accepted: List[Coordinate] = []

    for index in range(count):
        candidate = sample_random_point(area, rng)
        attempts = 1
        while attempts < attempts_limit and any(
            haversine_distance_km(candidate, p) < min_separation_km for p in accepted
        ):
            candidate = sample_random_point(area, rng)
            attempts += 1

        if attempts >= attempts_limit and any(
            haversine_distance_km(candidate, p) < min_separation_km for p in accepted
        ):
            logger.warning(
                f"Point {index + 1}: no candidate {min_separation_km:.2f}km away from "
                f"the others after {attempts_limit} attempts, accepting last candidate"
            )

        accepted.append(candidate)
        logger.debug(
            f"Sampled point {index + 1}: ({candidate.latitude:.5f}, {candidate.longitude:.5f}) "
            f"{haversine_distance_km(area.center, candidate):.2f}km from center"
        )

    return accepted


def square_ring_around_center(center: Coordinate, area_m2: float) -> Ring:
    """
    Build a closed axis-aligned square of the requested area.

    Args:
        center: Center of the square
        area_m2: Target area in m²

    Returns:
        Closed ring (south-west corner first and last)
    """
    if area_m2 <= 0:
        raise ValueError(f"Square area must be positive, got {area_m2}")

    side_km = math.sqrt(area_m2) / 1000
    lat_half = side_km / 2 / KM_PER_DEGREE
    lon_half = lat_half * _longitude_scale(center.latitude)

    south = center.latitude - lat_half
    north = center.latitude + lat_half
    west = center.longitude - lon_half
    east = center.longitude + lon_half

    return Ring(points=(
        _clamped_coordinate(south, west),
        _clamped_coordinate(north, west),
        _clamped_coordinate(north, east),
        _clamped_coordinate(south, east),
        _clamped_coordinate(south, west),
    ))
