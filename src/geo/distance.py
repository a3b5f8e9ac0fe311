"""Great-circle geometry for road routes.

Coordinates are ``(lat, lon)`` tuples in degrees. Route lengths and vehicle
progress are measured in meters along the polyline; headings are the
initial bearing of the current segment.
"""

import math
from itertools import pairwise

Coordinate = tuple[float, float]

EARTH_RADIUS_M = 6_371_000


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    half_dphi = (phi2 - phi1) / 2
    half_dlambda = math.radians(lon2 - lon1) / 2

    h = math.sin(half_dphi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlambda) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return haversine_distance_m(lat1, lon1, lat2, lon2) / 1000.0


def calculate_heading(from_coords: Coordinate, to_coords: Coordinate) -> float:
    """Initial bearing in degrees, in [0, 360). Identical points give 0."""
    if from_coords == to_coords:
        return 0.0

    phi1, phi2 = math.radians(from_coords[0]), math.radians(to_coords[0])
    dlambda = math.radians(to_coords[1] - from_coords[1])

    y = math.sin(dlambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlambda)
    return math.degrees(math.atan2(y, x)) % 360


def precompute_cumulative_distances(polyline: list[Coordinate]) -> list[float]:
    """Running distance in meters from the first point to each later point.

    Entry ``i`` is the distance to ``polyline[i + 1]``, so the result has one
    element fewer than the polyline and is empty for fewer than two points.
    """
    cumulative: list[float] = []
    total = 0.0
    for (lat1, lon1), (lat2, lon2) in pairwise(polyline):
        total += haversine_distance_m(lat1, lon1, lat2, lon2)
        cumulative.append(total)
    return cumulative


def interpolate_segment(start: Coordinate, end: Coordinate, progress: float) -> Coordinate:
    """Point at ``progress`` of the way along a segment, clamped to its ends."""
    t = max(0.0, min(1.0, progress))
    return start[0] + (end[0] - start[0]) * t, start[1] + (end[1] - start[1]) * t
