"""Simulated vehicle movement along a shipment route.

A vehicle advances monotonically along an ordered waypoint list. Each tick
moves it by ``speed * elapsed`` meters, so progress follows

    new_progress = min(1, old_progress + step_distance / route_length)

Speeds are drawn per tick from zone-dependent ranges: slow inside city
bounding boxes and near both ends of the route, fast on the open corridor,
with extra slowdown when approaching a sharp turn. Acceleration limits keep
consecutive speeds plausible.

Once the final waypoint is reached the state is frozen: progress is exactly
1.0, the vehicle is inactive, and ``advance`` returns ``None`` on every later
tick, so the completion result is produced exactly once.
"""

import bisect
import math
import random
from dataclasses import dataclass, replace
from datetime import datetime

from core.exceptions import ValidationError
from geo.distance import calculate_heading, interpolate_segment, precompute_cumulative_distances
from geo.places import CITY_ZONES, CityZone, LatLng

URBAN_PROGRESS_START = 0.15
URBAN_PROGRESS_END = 0.85

CITY_SPEED_RANGE_KMH = (20.0, 50.0)
HIGHWAY_SPEED_RANGE_KMH = (60.0, 100.0)
ACCEL_KMH_PER_S = 8.0
DECEL_KMH_PER_S = 12.0
MIN_SPEED_KMH = 5.0
MAX_SPEED_KMH = 120.0
DEFAULT_INITIAL_SPEED_KMH = 40.0

# (interior angle upper bound in degrees, speed factor); 180 degrees is straight ahead
TURN_FACTORS = ((60.0, 0.5), (90.0, 0.7), (120.0, 0.85))
TURN_SLOWDOWN_DISTANCE_M = 2_000.0


@dataclass(frozen=True)
class Route:
    """Ordered waypoints with precomputed cumulative distances."""

    waypoints: tuple[LatLng, ...]
    cumulative_distances: tuple[float, ...]

    @classmethod
    def from_waypoints(cls, waypoints: list[LatLng] | list[list[float]]) -> "Route":
        points = tuple((float(lat), float(lng)) for lat, lng in waypoints)
        if len(points) < 2:
            raise ValidationError(
                "Route needs at least 2 waypoints", details={"waypoints": len(points)}
            )
        return cls(points, tuple(precompute_cumulative_distances(list(points))))

    @property
    def total_distance_m(self) -> float:
        return self.cumulative_distances[-1]

    @property
    def last_index(self) -> int:
        return len(self.waypoints) - 1

    def locate(self, distance_m: float) -> tuple[LatLng, int]:
        """Position at a traveled distance, with the index of the segment it lies on."""
        if distance_m <= 0.0:
            return self.waypoints[0], 0
        if distance_m >= self.total_distance_m:
            return self.waypoints[-1], self.last_index

        idx = bisect.bisect_left(self.cumulative_distances, distance_m)
        idx = min(idx, len(self.waypoints) - 2)

        prev_cumulative = self.cumulative_distances[idx - 1] if idx > 0 else 0.0
        segment_distance = self.cumulative_distances[idx] - prev_cumulative
        if segment_distance == 0.0:
            return self.waypoints[idx], idx

        segment_progress = (distance_m - prev_cumulative) / segment_distance
        position = interpolate_segment(self.waypoints[idx], self.waypoints[idx + 1], segment_progress)
        return position, idx

    def heading_at(self, segment_index: int) -> float:
        i = max(0, min(segment_index, len(self.waypoints) - 2))
        return calculate_heading(self.waypoints[i], self.waypoints[i + 1])

    def turn_angle_at(self, waypoint_index: int) -> float:
        """Interior angle at a waypoint; 180 means straight through, endpoints count as straight."""
        if waypoint_index <= 0 or waypoint_index >= self.last_index:
            return 180.0

        p0 = self.waypoints[waypoint_index - 1]
        p1 = self.waypoints[waypoint_index]
        p2 = self.waypoints[waypoint_index + 1]
        ax, ay = p0[1] - p1[1], p0[0] - p1[0]
        bx, by = p2[1] - p1[1], p2[0] - p1[0]

        mag_a = math.hypot(ax, ay)
        mag_b = math.hypot(bx, by)
        if mag_a == 0.0 or mag_b == 0.0:
            return 180.0

        cos_angle = max(-1.0, min(1.0, (ax * bx + ay * by) / (mag_a * mag_b)))
        return math.degrees(math.acos(cos_angle))


@dataclass(frozen=True)
class VehicleState:
    position: LatLng
    distance_completed_m: float
    progress: float
    speed_kmh: float
    heading: float
    route_index: int
    is_active: bool
    is_city_zone: bool
    last_update: datetime

    @property
    def progress_percent(self) -> float:
        return min(self.progress * 100.0, 100.0)


@dataclass(frozen=True)
class TickResult:
    state: VehicleState
    distance_moved_m: float
    is_completed: bool


def turn_factor(angle_deg: float) -> float:
    for max_angle, factor in TURN_FACTORS:
        if angle_deg < max_angle:
            return factor
    return 1.0


class SpeedModel:
    """Zone-aware speed heuristics."""

    def __init__(
        self,
        rng: random.Random | None = None,
        zones: tuple[CityZone, ...] = CITY_ZONES,
    ) -> None:
        self._rng = rng or random.Random()
        self._zones = zones

    def is_city_zone(self, lat: float, lng: float) -> bool:
        return any(zone.contains(lat, lng) for zone in self._zones)

    def is_urban(self, lat: float, lng: float, progress: float) -> bool:
        return (
            self.is_city_zone(lat, lng)
            or progress < URBAN_PROGRESS_START
            or progress > URBAN_PROGRESS_END
        )

    def target_speed(self, urban: bool, factor: float = 1.0) -> float:
        low, high = CITY_SPEED_RANGE_KMH if urban else HIGHWAY_SPEED_RANGE_KMH
        return self._rng.uniform(low, high) * factor

    def next_speed(self, current_kmh: float, target_kmh: float, elapsed_s: float) -> float:
        """Move toward the target speed within acceleration limits."""
        diff = target_kmh - current_kmh
        rate = ACCEL_KMH_PER_S if diff > 0 else DECEL_KMH_PER_S
        max_change = rate * elapsed_s
        change = math.copysign(min(abs(diff), max_change), diff)
        return max(MIN_SPEED_KMH, min(MAX_SPEED_KMH, current_kmh + change))


class PositionSimulator:
    """Advances vehicle states along routes."""

    def __init__(
        self,
        speed_model: SpeedModel | None = None,
        min_elapsed_seconds: float = 1.0,
    ) -> None:
        self._speed_model = speed_model or SpeedModel()
        self._min_elapsed_seconds = min_elapsed_seconds

    def start(
        self,
        route: Route,
        now: datetime,
        initial_speed_kmh: float = DEFAULT_INITIAL_SPEED_KMH,
    ) -> VehicleState:
        lat, lng = route.waypoints[0]
        return VehicleState(
            position=(lat, lng),
            distance_completed_m=0.0,
            progress=0.0,
            speed_kmh=initial_speed_kmh,
            heading=route.heading_at(0),
            route_index=0,
            is_active=True,
            is_city_zone=self._speed_model.is_city_zone(lat, lng),
            last_update=now,
        )

    def advance(self, route: Route, state: VehicleState, now: datetime) -> TickResult | None:
        """Move the vehicle by the distance covered since its last update.

        Returns None when nothing changes: the vehicle already finished, or
        too little time has passed since the previous tick.
        """
        if not state.is_active:
            return None

        elapsed = (now - state.last_update).total_seconds()
        if elapsed < self._min_elapsed_seconds:
            return None

        total = route.total_distance_m
        step = state.speed_kmh * elapsed * 1000.0 / 3600.0
        distance = min(total, state.distance_completed_m + step)
        moved = distance - state.distance_completed_m

        if distance >= total:
            final_lat, final_lng = route.waypoints[-1]
            completed = replace(
                state,
                position=(final_lat, final_lng),
                distance_completed_m=total,
                progress=1.0,
                speed_kmh=0.0,
                route_index=route.last_index,
                is_active=False,
                is_city_zone=self._speed_model.is_city_zone(final_lat, final_lng),
                last_update=now,
            )
            return TickResult(state=completed, distance_moved_m=moved, is_completed=True)

        progress = min(1.0, distance / total)
        (lat, lng), segment = route.locate(distance)

        factor = 1.0
        if route.cumulative_distances[segment] - distance <= TURN_SLOWDOWN_DISTANCE_M:
            factor = turn_factor(route.turn_angle_at(segment + 1))

        urban = self._speed_model.is_urban(lat, lng, progress)
        target = self._speed_model.target_speed(urban, factor)
        speed = self._speed_model.next_speed(state.speed_kmh, target, elapsed)

        advanced = replace(
            state,
            position=(lat, lng),
            distance_completed_m=distance,
            progress=progress,
            speed_kmh=speed,
            heading=route.heading_at(segment),
            route_index=segment,
            is_city_zone=self._speed_model.is_city_zone(lat, lng),
            last_update=now,
        )
        return TickResult(state=advanced, distance_moved_m=moved, is_completed=False)
