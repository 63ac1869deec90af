"""
===============================================================================
FLIGHT ENGINE - Integration Test Suite
===============================================================================
End-to-end tests: configuration loading, the tick-driven simulation with
warm-up, fuel billing, arrival handling and telemetry, launch windows and
the command-line entry point.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose

import main
from core.catalogs import UnknownCatalogEntryError
from core.config import (
    build_engine_catalog,
    build_hull_catalog,
    build_world,
    load_config,
    simulation_settings,
)
from core.constants import SECONDS_PER_DAY, SECONDS_PER_TICK
from core.data_structures import (
    CrewMember,
    DriveState,
    EngineInstance,
    Vehicle,
    VehicleStatus,
)
from dynamics.orbital_mechanics import position_at
from dynamics.propulsion import fuel_flow_rate
from guidance.launch_window import classify_alignment, compute_launch_window
from simulation.sim_engine import FlightSimulation


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="module")
def config():
    return load_config()


@pytest.fixture
def world(config):
    return build_world(config)


def make_vehicle(vehicle_id="v1", hull_id="station_keeper", engine_id="chemical_bipropellant",
                 fuel_kg=8000.0, docked_at="leo_station"):
    pilot = CrewMember("pilot", "Pilot", "helm")
    return Vehicle(
        id=vehicle_id,
        hull_id=hull_id,
        engine=EngineInstance(engine_id),
        fuel_kg=fuel_kg,
        crew=[pilot],
        helm_crew_id="pilot",
        status=VehicleStatus.DOCKED,
        docked_at=docked_at,
    )


@pytest.fixture
def sim(config, world):
    return FlightSimulation(
        world,
        [make_vehicle("v1"), make_vehicle("v2", docked_at="earth")],
        build_engine_catalog(config),
        build_hull_catalog(config),
        config,
    )


# =============================================================================
# Configuration
# =============================================================================

class TestConfig:

    def test_catalogs_load(self, config):
        engines = build_engine_catalog(config)
        hulls = build_hull_catalog(config)
        assert len(engines) == 9
        assert len(hulls) == 5
        assert engines["ntr_mk1"].thrust == 4000.0
        assert hulls["wayfarer"].mass == 200000.0

    def test_unknown_catalog_id(self, config):
        with pytest.raises(UnknownCatalogEntryError):
            build_engine_catalog(config)["warp_core"]
        assert "dreadnought" in build_hull_catalog(config)
        assert "battlestar" not in build_hull_catalog(config)

    def test_world_periods_and_angles(self, world):
        earth = world["earth"].orbital
        assert_allclose(earth.orbital_period_sec, 365.25 * SECONDS_PER_DAY)
        assert world["leo_station"].orbital.orbital_period_sec == 5554.0
        assert_allclose(world["forge_station"].orbital.initial_angle_rad, np.pi / 2.0)
        assert world["sun"].orbital.is_stationary
        assert world["deep_relay"].orbital is None
        assert world.reference_body is world["earth"]

    def test_simulation_settings(self, config):
        settings = simulation_settings(config)
        assert settings["tick_seconds"] == SECONDS_PER_TICK
        assert settings["solver_iterations"] == 10
        assert simulation_settings({})["reference_body"] == "earth"


# =============================================================================
# Simulation
# =============================================================================

class TestSimulation:

    def test_world_refreshed_each_tick(self, sim, world):
        sim.step()
        assert sim.current_time == SECONDS_PER_TICK
        assert_allclose(world["mars"].position, position_at(world["mars"], SECONDS_PER_TICK, world))

    def test_unstaffed_flight_not_started(self, sim):
        sim.vehicles["v1"].helm_crew_id = None
        assert not sim.start_flight("v1", "leo_station", "earth")
        assert sim.vehicles["v1"].status == VehicleStatus.DOCKED

    def test_short_hop_flight(self, sim):
        assert sim.start_flight("v1", "leo_station", "earth")
        vehicle = sim.vehicles["v1"]
        plan = vehicle.active_flight_plan
        total_time = plan.total_time_s
        assert_allclose(plan.total_distance_m, 400000.0, rtol=1e-6)

        # warm-up ticks do not move the vehicle
        for _ in range(3):
            sim.step()
            assert vehicle.engine.state == DriveState.WARMING_UP
            assert plan.elapsed_time_s == 0.0
        sim.step()
        assert vehicle.engine.state == DriveState.ONLINE
        assert plan.elapsed_time_s == 0.0

        df = sim.run(1000)
        assert vehicle.status == VehicleStatus.ORBITING
        assert vehicle.orbiting_at == "earth"
        assert vehicle.active_flight_plan is None
        assert vehicle.engine.state == DriveState.OFF

        expected_ticks = 4 + int(np.ceil(total_time / SECONDS_PER_TICK))
        assert sim.tick_count == expected_ticks
        assert len(sim.arrivals) == 1
        assert sim.arrivals[0]["tick"] == expected_ticks

        # pro-rated billing over a brachistochrone burns for the whole flight
        burned = 8000.0 - vehicle.fuel_kg
        assert_allclose(burned, total_time * fuel_flow_rate(1500.0, 450.0), rtol=1e-9)

        assert isinstance(df, pd.DataFrame)
        assert len(df) == 2 * sim.tick_count
        assert df.index.name == 'time'
        assert {'vehicle_id', 'phase', 'fuel_kg', 'g_force', 'pos_x_km'} <= set(df.columns)
        v1 = df[df['vehicle_id'] == 'v1']
        assert_allclose(v1['fuel_burned_kg'].sum(), burned)
        assert (v1['g_force'] >= 0.0).all()

    def test_dock_on_arrival(self, sim):
        assert sim.start_flight("v2", "earth", "leo_station", dock_on_arrival=True)
        sim.run(1000)
        vehicle = sim.vehicles["v2"]
        assert vehicle.status == VehicleStatus.DOCKED
        assert vehicle.docked_at == "leo_station"
        assert vehicle.orbiting_at is None

    def test_fuel_billing_capped_at_fuel_on_board(self, sim):
        assert sim.start_flight("v1", "leo_station", "forge_station")
        vehicle = sim.vehicles["v1"]
        vehicle.fuel_kg = 1.0
        for _ in range(10):
            sim.step()
            assert vehicle.fuel_kg >= 0.0
        assert vehicle.fuel_kg == 0.0
        assert vehicle.status == VehicleStatus.IN_FLIGHT

    def test_redirect_mid_flight(self, sim):
        assert sim.start_flight("v1", "leo_station", "forge_station")
        for _ in range(30):
            sim.step()
        assert sim.redirect_flight("v1", "meo_depot", dock_on_arrival=True)
        sim.run(100000)
        vehicle = sim.vehicles["v1"]
        assert vehicle.status == VehicleStatus.DOCKED
        assert vehicle.docked_at == "meo_depot"

    def test_run_stops_when_idle(self, sim):
        sim.run(50)
        assert sim.tick_count == 0
        assert sim.get_telemetry().empty

    def test_summary_and_csv(self, sim, tmp_path):
        sim.start_flight("v1", "leo_station", "earth")
        sim.run(1000)
        summary = sim.summary()
        assert summary['arrivals'] == 1
        assert summary['in_flight'] == 0
        assert summary['fuel_consumed']['v1'] > 0.0
        assert summary['fuel_consumed']['v2'] == 0.0

        path = tmp_path / "telemetry.csv"
        sim.save_telemetry(str(path))
        loaded = pd.read_csv(path)
        assert len(loaded) == len(sim.telemetry)


# =============================================================================
# Launch windows
# =============================================================================

class TestLaunchWindow:

    @pytest.mark.parametrize("current,expected", [
        (0.0, "excellent"), (2.0, "excellent"), (3.0, "good"),
        (6.0, "moderate"), (9.0, "poor"),
    ])
    def test_classify(self, current, expected):
        assert classify_alignment(current, 0.0, 10.0) == expected

    def test_zero_range_is_excellent(self):
        assert classify_alignment(5.0, 5.0, 5.0) == "excellent"

    def test_static_body_has_no_window(self, world):
        assert compute_launch_window(world["earth"], world["deep_relay"], 0.0, world) is None

    def test_conjunction_is_excellent(self, world):
        window = compute_launch_window(world["earth"], world["mars"], 0.0, world)
        assert window.alignment == "excellent"
        assert_allclose(window.current_distance_km, 227939200.0 - 149597870.0)
        assert window.next_optimal_time is None

    def test_opposition_finds_next_window(self, world):
        synodic_days = 1.0 / abs(1.0 / 365.25 - 1.0 / 686.98)
        t0 = 0.5 * synodic_days * SECONDS_PER_DAY
        window = compute_launch_window(world["earth"], world["mars"], t0, world)
        assert window.alignment == "poor"
        assert window.min_distance_km < window.current_distance_km
        assert_allclose(window.next_optimal_in_days, 0.5 * synodic_days, rtol=0.02)

    def test_explicit_look_ahead(self, world):
        window = compute_launch_window(world["leo_station"], world["forge_station"], 0.0, world,
                                       look_ahead_days=30.0)
        assert 325000.0 < window.max_distance_km <= 326400.0 + 1e-6
        assert window.min_distance_km >= 325600.0 - 1e-6


# =============================================================================
# Command line
# =============================================================================

class TestMain:

    def test_short_hop(self, capsys):
        code = main.main(["--origin", "leo_station", "--destination", "earth", "--dock"])
        assert code == 0
        out = capsys.readouterr().out
        assert "Arrived at earth" in out
        assert "docked" in out

    def test_unknown_engine(self):
        code = main.main(["--origin", "leo_station", "--destination", "earth",
                          "--engine", "warp_core"])
        assert code == 2

    def test_runtime_key_error_is_not_reported_as_config(self, monkeypatch):
        def failing_run(self, max_ticks, stop_when_idle=True):
            raise KeyError("telemetry column")

        monkeypatch.setattr(FlightSimulation, "run", failing_run)
        with pytest.raises(KeyError):
            main.main(["--origin", "leo_station", "--destination", "earth"])

    def test_unknown_destination(self):
        code = main.main(["--origin", "leo_station", "--destination", "atlantis"])
        assert code == 2
