import random
from dataclasses import replace
from datetime import timedelta

import pytest

from core.exceptions import ValidationError
from vehicle.simulation import (
    ACCEL_KMH_PER_S,
    DECEL_KMH_PER_S,
    MAX_SPEED_KMH,
    MIN_SPEED_KMH,
    PositionSimulator,
    Route,
    SpeedModel,
    turn_factor,
)

pytestmark = pytest.mark.unit

# Dar es Salaam -> Morogoro, straight line through the countryside
SHORT_ROUTE = [(-6.8151812, 39.2864692), (-6.82, 38.5), (-6.824, 37.6618)]


@pytest.fixture
def sim() -> PositionSimulator:
    return PositionSimulator(SpeedModel(rng=random.Random(3)), min_elapsed_seconds=1.0)


@pytest.fixture
def route() -> Route:
    return Route.from_waypoints(SHORT_ROUTE)


class TestRoute:
    def test_needs_two_waypoints(self):
        with pytest.raises(ValidationError):
            Route.from_waypoints([(-6.8, 39.2)])
        with pytest.raises(ValidationError):
            Route.from_waypoints([])

    def test_accepts_json_style_lists(self):
        route = Route.from_waypoints([[-6.8, 39.2], [-6.9, 39.3]])
        assert route.waypoints == ((-6.8, 39.2), (-6.9, 39.3))

    def test_locate_endpoints(self, route):
        assert route.locate(0.0) == (route.waypoints[0], 0)
        assert route.locate(route.total_distance_m + 10) == (route.waypoints[-1], route.last_index)

    def test_locate_inside_second_segment(self, route):
        first_leg = route.cumulative_distances[0]
        position, segment = route.locate(first_leg + 100.0)
        assert segment == 1
        assert route.waypoints[2][1] < position[1] < route.waypoints[1][1]

    def test_turn_angle_straight_and_endpoints(self):
        straight = Route.from_waypoints([(0.0, 0.0), (0.0, 1.0), (0.0, 2.0)])
        assert straight.turn_angle_at(1) == pytest.approx(180.0)
        assert straight.turn_angle_at(0) == 180.0
        assert straight.turn_angle_at(2) == 180.0

    def test_turn_angle_right_angle(self):
        corner = Route.from_waypoints([(0.0, 0.0), (0.0, 1.0), (1.0, 1.0)])
        assert corner.turn_angle_at(1) == pytest.approx(90.0)


@pytest.mark.parametrize(
    "angle,factor",
    [(30.0, 0.5), (59.9, 0.5), (60.0, 0.7), (89.0, 0.7), (100.0, 0.85), (120.0, 1.0), (180.0, 1.0)],
)
def test_turn_factor(angle, factor):
    assert turn_factor(angle) == factor


class TestSpeedModel:
    def test_city_zone_detection(self):
        model = SpeedModel()
        assert model.is_city_zone(-6.8151812, 39.2864692)
        assert not model.is_city_zone(-6.82, 38.5)

    def test_route_ends_count_as_urban(self):
        model = SpeedModel()
        assert model.is_urban(-6.82, 38.5, progress=0.05)
        assert model.is_urban(-6.82, 38.5, progress=0.95)
        assert not model.is_urban(-6.82, 38.5, progress=0.5)

    def test_target_speed_ranges(self):
        model = SpeedModel(rng=random.Random(0))
        for _ in range(50):
            assert 20.0 <= model.target_speed(urban=True) <= 50.0
            assert 60.0 <= model.target_speed(urban=False) <= 100.0
        assert model.target_speed(urban=False, factor=0.5) <= 50.0

    def test_acceleration_and_deceleration_limits(self):
        model = SpeedModel()
        assert model.next_speed(40.0, 100.0, 2.0) == 40.0 + 2 * ACCEL_KMH_PER_S
        assert model.next_speed(80.0, 20.0, 2.0) == 80.0 - 2 * DECEL_KMH_PER_S
        assert model.next_speed(40.0, 45.0, 2.0) == 45.0

    def test_speed_clamped(self):
        model = SpeedModel()
        assert model.next_speed(6.0, 0.0, 10.0) == MIN_SPEED_KMH
        assert model.next_speed(118.0, 200.0, 10.0) == MAX_SPEED_KMH


class TestPositionSimulator:
    def test_start_at_first_waypoint(self, sim, route, clock):
        state = sim.start(route, clock())
        assert state.position == route.waypoints[0]
        assert state.progress == 0.0
        assert state.speed_kmh == 40.0
        assert state.is_active
        assert state.is_city_zone

    def test_skips_when_too_little_time_passed(self, sim, route, clock):
        state = sim.start(route, clock())
        assert sim.advance(route, state, clock.advance(0.5)) is None

    def test_moves_speed_times_elapsed(self, sim, route, clock):
        state = sim.start(route, clock())
        result = sim.advance(route, state, clock.advance(10))

        assert result is not None
        assert result.distance_moved_m == pytest.approx(40.0 * 10 * 1000 / 3600)
        assert result.state.progress == pytest.approx(
            result.distance_moved_m / route.total_distance_m
        )
        assert result.state.last_update == clock()
        assert not result.is_completed

    def test_progress_is_monotonic_until_completion(self, sim, route, clock):
        state = sim.start(route, clock())
        progresses = []
        completions = 0
        for _ in range(2000):
            result = sim.advance(route, state, clock.advance(60))
            if result is None:
                break
            state = result.state
            progresses.append(state.progress)
            completions += result.is_completed
            assert MIN_SPEED_KMH <= state.speed_kmh <= MAX_SPEED_KMH or result.is_completed

        assert progresses == sorted(progresses)
        assert completions == 1
        assert state.progress == 1.0
        assert state.position == route.waypoints[-1]
        assert state.speed_kmh == 0.0
        assert not state.is_active

    def test_completed_vehicle_never_moves_again(self, sim, route, clock):
        state = sim.start(route, clock())
        result = sim.advance(route, state, clock.advance(24 * 3600))

        assert result.is_completed
        assert result.state.progress_percent == 100.0
        assert sim.advance(route, result.state, clock.advance(60)) is None

    def test_zero_length_route_completes_on_first_tick(self, sim, clock):
        route = Route.from_waypoints([(-6.8, 39.2), (-6.8, 39.2)])
        state = sim.start(route, clock())

        result = sim.advance(route, state, clock.advance(5))

        assert result.is_completed
        assert result.state.progress == 1.0
        assert result.distance_moved_m == 0.0

    def test_slows_before_sharp_turn(self, clock):
        # Hairpin about 11 km out, vehicle 1.6 km short of it
        route = Route.from_waypoints([(-4.0, 34.0), (-4.0, 34.1), (-4.0, 34.0)])
        sim = PositionSimulator(SpeedModel(rng=random.Random(5)))
        state = sim.start(route, clock(), initial_speed_kmh=100.0)
        state = replace(state, distance_completed_m=9_500.0)

        result = sim.advance(route, state, clock.advance(1))

        # Highway target is at most 100 * 0.5; deceleration caps the drop at 12 km/h
        assert result.state.speed_kmh == pytest.approx(100.0 - DECEL_KMH_PER_S)

    def test_elapsed_uses_last_update(self, sim, route, clock):
        state = sim.start(route, clock())
        later = clock.advance(3600)
        result = sim.advance(route, state, later)
        assert result.state.last_update - state.last_update == timedelta(hours=1)
