"""
===============================================================================
FLIGHT ENGINE - Simulation Engine
===============================================================================
Tick driver for a set of vehicles flying through one world.  Logs
telemetry to a pandas DataFrame for post-run analysis.

Every tick runs the same pipeline:

    1. WORLD      -- Advance the clock and refresh every body's cached
                     position exactly once.
    2. WARM-UP    -- Vehicles whose drive is not online advance warm-up
                     and do not move.
    3. FLIGHT     -- Vehicles with an online drive advance their plan by
                     one tick and are billed fuel for the burn seconds
                     inside it.
    4. ARRIVAL    -- Completed plans dock the vehicle or leave it in orbit
                     of the destination; the plan is discarded.
    5. LOGGING    -- One telemetry record per vehicle.

All vehicles in a tick see the same world snapshot.
===============================================================================
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from core.catalogs import Catalog
from core.config import simulation_settings
from core.constants import KM_TO_M
from core.data_structures import DriveState, Vehicle, VehicleStatus, World
from dynamics.orbital_mechanics import refresh_world_positions
from dynamics.propulsion import fuel_flow_rate, specific_impulse
from guidance.flight_planner import FlightPlanner, absolute_ship_position
from guidance.intercept_solver import InterceptSolver
from simulation.flight_integrator import advance, burn_seconds_in_tick, g_force

logger = logging.getLogger(__name__)


class FlightSimulation:
    """
    Fixed-tick simulation of vehicles flying between bodies.

    Parameters
    ----------
    world : World
        Body registry.  Cached body positions are owned by this engine.
    vehicles : iterable of Vehicle
        Vehicles to simulate, keyed internally by id.
    engines, hulls : Catalog
        Read-only engine and hull catalogs.
    config : dict, optional
        Full configuration; only the ``simulation`` section is read.
    start_time : float
        Simulated time of the first snapshot (s).

    Attributes
    ----------
    current_time : float
        Simulated time (s).
    tick_count : int
        Ticks run so far.
    telemetry : list of dict
        One record per vehicle per tick.
    arrivals : list of dict
        One record per completed flight.
    """

    def __init__(
        self,
        world: World,
        vehicles: Iterable[Vehicle],
        engines: Catalog,
        hulls: Catalog,
        config: Optional[Dict[str, Any]] = None,
        start_time: float = 0.0,
    ) -> None:
        settings = simulation_settings(config or {})
        self.world = world
        self.vehicles: Dict[str, Vehicle] = {v.id: v for v in vehicles}
        self.tick_seconds = settings["tick_seconds"]
        self.planner = FlightPlanner(
            engines,
            hulls,
            solver=InterceptSolver(
                settings["solver_iterations"],
                settings["solver_divergence_tolerance"],
            ),
            tick_seconds=self.tick_seconds,
        )
        self.propulsion = self.planner.propulsion

        self.current_time = float(start_time)
        self.tick_count = 0
        self.telemetry: List[Dict[str, Any]] = []
        self.arrivals: List[Dict[str, Any]] = []
        self._initial_fuel = {v.id: v.fuel_kg for v in self.vehicles.values()}

        refresh_world_positions(self.world, self.current_time)
        logger.info(
            "FlightSimulation created.  %d vehicles, %d bodies, tick=%.0f s",
            len(self.vehicles), len(self.world), self.tick_seconds,
        )

    # =========================================================================
    # FLIGHT COMMANDS
    # =========================================================================

    def start_flight(
        self,
        vehicle_id: str,
        origin_id: str,
        destination_id: str,
        dock_on_arrival: bool = False,
        burn_fraction: float = 1.0,
    ) -> bool:
        """Start a flight at the current simulated time."""
        return self.planner.start_ship_flight(
            self.vehicles[vehicle_id],
            self.world[origin_id],
            self.world[destination_id],
            dock_on_arrival=dock_on_arrival,
            burn_fraction=burn_fraction,
            game_time=self.current_time,
            world=self.world,
        )

    def redirect_flight(
        self,
        vehicle_id: str,
        destination_id: str,
        dock_on_arrival: bool = False,
        burn_fraction: float = 1.0,
    ) -> bool:
        """Redirect an in-flight vehicle at the current simulated time."""
        return self.planner.redirect_ship_flight(
            self.vehicles[vehicle_id],
            self.world[destination_id],
            dock_on_arrival=dock_on_arrival,
            burn_fraction=burn_fraction,
            game_time=self.current_time,
            world=self.world,
        )

    # =========================================================================
    # TICK
    # =========================================================================

    def step(self) -> None:
        """Advance the simulation by one tick."""
        self.current_time += self.tick_seconds
        self.tick_count += 1
        refresh_world_positions(self.world, self.current_time)

        for vehicle in self.vehicles.values():
            fuel_burned = 0.0
            plan = vehicle.active_flight_plan
            if plan is not None and vehicle.status == VehicleStatus.IN_FLIGHT:
                if vehicle.engine.state != DriveState.ONLINE:
                    self.propulsion.advance_warmup(vehicle)
                else:
                    done = advance(plan, self.tick_seconds)
                    fuel_burned = self._bill_fuel(vehicle)
                    if done:
                        self._complete_flight(vehicle)
            self._log_telemetry(vehicle, fuel_burned)

    def _bill_fuel(self, vehicle: Vehicle) -> float:
        engine = self.propulsion.engine_of(vehicle)
        burn = burn_seconds_in_tick(vehicle.active_flight_plan, self.tick_seconds)
        if burn <= 0.0:
            return 0.0
        flow = fuel_flow_rate(engine.thrust, specific_impulse(engine))
        burned = min(max(0.0, vehicle.fuel_kg), burn * flow)
        vehicle.fuel_kg -= burned
        return burned

    def _complete_flight(self, vehicle: Vehicle) -> None:
        plan = vehicle.active_flight_plan
        destination = plan.destination_id
        if plan.dock_on_arrival:
            vehicle.status = VehicleStatus.DOCKED
            vehicle.docked_at = destination
            vehicle.orbiting_at = None
        else:
            vehicle.status = VehicleStatus.ORBITING
            vehicle.orbiting_at = destination
            vehicle.docked_at = None
        vehicle.active_flight_plan = None
        vehicle.engine.state = DriveState.OFF
        vehicle.engine.warmup_progress = 0.0

        self.arrivals.append({
            'vehicle_id': vehicle.id,
            'origin': plan.origin_id,
            'destination': destination,
            'time': self.current_time,
            'tick': self.tick_count,
            'distance_km': plan.total_distance_m / KM_TO_M,
            'status': vehicle.status.value,
        })
        logger.info(
            "%s arrived at %s (t=%.0f s, tick %d, %s)",
            vehicle.id, destination, self.current_time, self.tick_count,
            vehicle.status.value,
        )

    # =========================================================================
    # FULL RUN
    # =========================================================================

    def in_flight(self) -> List[Vehicle]:
        return [v for v in self.vehicles.values() if v.status == VehicleStatus.IN_FLIGHT]

    def run(self, max_ticks: int, stop_when_idle: bool = True) -> pd.DataFrame:
        """
        Run up to ``max_ticks`` ticks.

        Parameters
        ----------
        max_ticks : int
            Tick limit.
        stop_when_idle : bool
            Stop early once no vehicle is in flight.

        Returns
        -------
        pd.DataFrame
            Telemetry recorded so far.
        """
        logger.info("Simulation run started.  Max ticks: %d", max_ticks)
        for _ in range(max_ticks):
            if stop_when_idle and not self.in_flight():
                break
            self.step()
            if self.tick_count % 10000 == 0:
                logger.info("Tick %d  t=%.0f s  in flight=%d",
                            self.tick_count, self.current_time, len(self.in_flight()))
        else:
            if self.in_flight():
                logger.warning("Tick limit reached with %d vehicles in flight", len(self.in_flight()))

        logger.info("Simulation stopped.  %d ticks, t=%.0f s", self.tick_count, self.current_time)
        return self.get_telemetry()

    # =========================================================================
    # TELEMETRY
    # =========================================================================

    def _log_telemetry(self, vehicle: Vehicle, fuel_burned: float) -> None:
        plan = vehicle.active_flight_plan
        pos = None
        if plan is not None:
            pos = absolute_ship_position(plan, self.world, self.current_time)

        record = {
            'time': self.current_time,
            'tick': self.tick_count,
            'vehicle_id': vehicle.id,
            'status': vehicle.status.value,
            'engine_state': vehicle.engine.state.value,
            'warmup_progress': vehicle.engine.warmup_progress,
            'destination': plan.destination_id if plan is not None else None,
            'phase': plan.phase.value if plan is not None else None,
            'distance_covered_km': plan.distance_covered_m / KM_TO_M if plan is not None else np.nan,
            'total_distance_km': plan.total_distance_m / KM_TO_M if plan is not None else np.nan,
            'progress': plan.progress if plan is not None else np.nan,
            'velocity_m_s': plan.current_velocity_m_s if plan is not None else 0.0,
            'g_force': g_force(plan) if plan is not None else 0.0,
            'fuel_kg': vehicle.fuel_kg,
            'fuel_burned_kg': fuel_burned,
            'pos_x_km': pos[0] if pos is not None else np.nan,
            'pos_y_km': pos[1] if pos is not None else np.nan,
        }
        self.telemetry.append(record)

    def get_telemetry(self) -> pd.DataFrame:
        """
        Convert the telemetry record list to a pandas DataFrame indexed by
        simulated time.
        """
        if not self.telemetry:
            logger.warning("No telemetry recorded.")
            return pd.DataFrame()

        df = pd.DataFrame(self.telemetry)
        df.set_index('time', inplace=True)
        return df

    def save_telemetry(self, filepath: str) -> None:
        """Save the telemetry DataFrame to a CSV file."""
        df = self.get_telemetry()
        df.to_csv(filepath)
        logger.info("Telemetry saved to %s  (%d records)", filepath, len(df))

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def summary(self) -> Dict[str, Any]:
        """
        Summary of the run so far.

        Returns
        -------
        dict
            ticks          : int   -- Ticks run
            sim_time       : float -- Simulated time (s)
            arrivals       : int   -- Completed flights
            in_flight      : int   -- Vehicles still flying
            fuel_consumed  : dict  -- Fuel burned per vehicle (kg)
        """
        fuel_consumed = {
            vid: self._initial_fuel.get(vid, v.fuel_kg) - v.fuel_kg
            for vid, v in self.vehicles.items()
        }
        summary = {
            'ticks': self.tick_count,
            'sim_time': self.current_time,
            'arrivals': len(self.arrivals),
            'in_flight': len(self.in_flight()),
            'fuel_consumed': fuel_consumed,
        }

        logger.info("Flight Summary:")
        for key, value in summary.items():
            if isinstance(value, float):
                logger.info("  %-15s: %.4f", key, value)
            else:
                logger.info("  %-15s: %s", key, value)
        return summary

    def __repr__(self) -> str:
        return (
            f"FlightSimulation(t={self.current_time:.0f}s, "
            f"vehicles={len(self.vehicles)}, records={len(self.telemetry)})"
        )
