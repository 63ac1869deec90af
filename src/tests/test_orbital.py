"""
===============================================================================
FLIGHT ENGINE - Orbital Model Test Suite
===============================================================================
Tests for circular-orbit positions: angle normalisation, stationary bodies,
parent-chain recursion, distance/lerp helpers, the once-per-tick world
refresh and co-moving frame selection.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.config import build_world, load_config
from core.constants import SECONDS_PER_DAY, TWO_PI
from core.data_structures import Body, OrbitalParams, World
from dynamics.orbital_mechanics import (
    angle_at,
    distance,
    distance_between_at,
    lerp,
    position_at,
    position_in_frame,
    refresh_world_positions,
    root_body,
    shared_frame,
    static_distance,
    to_system_frame,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def world():
    """World built from the default configuration."""
    return build_world(load_config())


@pytest.fixture
def small_world():
    """Star, one planet and a moon, all starting on the +x axis."""
    return World([
        Body("star", "Star", OrbitalParams(None, 0.0, 0.0)),
        Body("planet", "Planet", OrbitalParams("star", 1000.0, 400.0)),
        Body("moon", "Moon", OrbitalParams("planet", 10.0, 50.0)),
    ], reference_body_id="planet")


# =============================================================================
# Angle
# =============================================================================

class TestAngle:

    @pytest.mark.parametrize("period", [1.0, 5554.0, 18.5 * SECONDS_PER_DAY,
                                        365.25 * SECONDS_PER_DAY, 4.6 * 365 * SECONDS_PER_DAY])
    def test_full_period_returns_to_start(self, period):
        orbital = OrbitalParams(None, 1.0, period, initial_angle_rad=1.3)
        start = angle_at(orbital, 0.0)
        after = angle_at(orbital, period)
        diff = np.mod(after - start + np.pi, TWO_PI) - np.pi
        assert abs(diff) < 1e-5

    def test_stationary_angle_is_constant(self):
        orbital = OrbitalParams(None, 500.0, 0.0, initial_angle_rad=0.7)
        for t in (0.0, 1.0, 1e6, 1e12, -42.0):
            assert angle_at(orbital, t) == 0.7

    def test_angle_is_normalised(self):
        orbital = OrbitalParams(None, 1.0, 100.0)
        for t in (-250.0, 0.0, 99.0, 12345.6):
            angle = angle_at(orbital, t)
            assert 0.0 <= angle < TWO_PI

    def test_quarter_period(self):
        orbital = OrbitalParams(None, 1.0, 100.0)
        assert_allclose(angle_at(orbital, 25.0), np.pi / 2.0)

    def test_negative_period_rejected(self):
        with pytest.raises(ValueError):
            OrbitalParams(None, 1.0, -1.0)


# =============================================================================
# Positions
# =============================================================================

class TestPositions:

    def test_parent_chain_sums(self, small_world):
        # planet a quarter of the way round, moon on its starting point
        t = 100.0
        planet = position_at(small_world["planet"], t, small_world)
        moon = position_at(small_world["moon"], t, small_world)
        assert_allclose(planet, [0.0, 1000.0], atol=1e-9)
        assert_allclose(moon - planet, [10.0, 0.0], atol=1e-9)

    def test_position_is_pure(self, small_world):
        moon = small_world["moon"]
        first = position_at(moon, 123.4, small_world)
        moon.position = np.array([9e9, 9e9])
        second = position_at(moon, 123.4, small_world)
        assert_allclose(first, second, rtol=0, atol=0)

    def test_static_body_keeps_position(self, world):
        relay = world["deep_relay"]
        assert_allclose(position_at(relay, 1e7, world), [0.0, 2e6])

    def test_missing_parent_uses_system_origin(self):
        orphan = Body("orphan", "Orphan", OrbitalParams("nowhere", 5.0, 0.0))
        world = World([orphan])
        assert_allclose(position_at(orphan, 0.0, world), [5.0, 0.0])

    def test_station_radius_from_planet(self, world):
        for t in (0.0, 3600.0, 86400.0 * 17):
            d = distance_between_at(world["leo_station"], world["earth"], t, world)
            assert_allclose(d, 400.0, rtol=1e-6)

    def test_cyclic_parents_rejected(self):
        with pytest.raises(ValueError):
            World([
                Body("a", "A", OrbitalParams("b", 1.0, 10.0)),
                Body("b", "B", OrbitalParams("a", 1.0, 10.0)),
            ])


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:

    def test_distance_zero_and_symmetric(self):
        a = np.array([3.0, -7.5])
        b = np.array([-12.0, 40.25])
        assert distance(a, a) == 0.0
        assert distance(a, b) == distance(b, a)
        assert_allclose(distance(np.zeros(2), np.array([3.0, 4.0])), 5.0)

    def test_lerp_endpoints_and_midpoint(self):
        a = np.array([1.0, 2.0])
        b = np.array([11.0, -8.0])
        assert_allclose(lerp(a, b, 0.0), a)
        assert_allclose(lerp(a, b, 1.0), b)
        assert_allclose(lerp(a, b, 0.5), [6.0, -3.0])

    def test_lerp_is_unclamped(self):
        assert_allclose(lerp(np.zeros(2), np.ones(2), 2.0), [2.0, 2.0])

    def test_static_distance(self, world):
        assert static_distance(world["earth"], world["deep_relay"]) == 2e6


# =============================================================================
# World refresh
# =============================================================================

class TestRefresh:

    def test_refresh_writes_positions_and_reference_distance(self, world):
        t = 40 * SECONDS_PER_DAY
        refresh_world_positions(world, t)
        earth = world["earth"]
        assert_allclose(earth.position, position_at(earth, t, world))
        assert earth.distance_from_reference_km == 0.0
        assert_allclose(world["leo_station"].distance_from_reference_km, 400.0, rtol=1e-6)

    def test_refresh_leaves_static_bodies(self, world):
        refresh_world_positions(world, 1e6)
        relay = world["deep_relay"]
        assert_allclose(relay.position, [0.0, 2e6])
        assert relay.distance_from_reference_km == 2e6


# =============================================================================
# Co-moving frames
# =============================================================================

class TestFrames:

    def test_root_body(self, world):
        assert root_body(world["leo_station"], world) is world["earth"]
        assert root_body(world["mars"], world) is world["mars"]

    def test_station_and_planet_share_frame(self, world):
        assert shared_frame(world["leo_station"], world["earth"], world) is world["earth"]
        assert shared_frame(world["forge_station"], world["meo_depot"], world) is world["earth"]

    def test_interplanetary_has_no_frame(self, world):
        assert shared_frame(world["earth"], world["mars"], world) is None
        assert shared_frame(world["leo_station"], world["jupiter_station"], world) is None

    def test_static_body_has_no_frame(self, world):
        assert shared_frame(world["deep_relay"], world["earth"], world) is None

    def test_frame_round_trip(self, world):
        t = 2.5 * SECONDS_PER_DAY
        station = world["forge_station"]
        local = position_in_frame(station, world["earth"], t, world)
        assert_allclose(np.hypot(*local), 326000.0, rtol=1e-9)
        assert_allclose(to_system_frame(local, world["earth"], t, world),
                        position_at(station, t, world))
