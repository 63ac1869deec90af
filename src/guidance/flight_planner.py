"""
===============================================================================
FLIGHT ENGINE - Flight Planner
===============================================================================
Builds burn/coast/burn flight plans from a vehicle's current propulsion
state.

Budget
------
    available_dv = Isp * g0 * ln(m_current / m_dry)
    budget       = min(0.5 * available_dv, 0.5 * rated_dv) * burn_fraction
    a            = thrust / m_current
    v_cruise     = budget / 2

Timing
------
    dv_threshold = 2 * sqrt(d * a)

    no coast   (dv_threshold <= budget):
        t_total = 2 * sqrt(d / a),  t_burn = t_total / 2

    with coast (dv_threshold > budget):
        t_burn  = v_cruise / a
        d_coast = d - a * t_burn^2
        t_coast = d_coast / v_cruise
        t_total = 2 * t_burn + t_coast

Zero acceleration, zero budget or zero distance give a one-tick plan.

Distance
--------
With an :class:`OrbitalContext` the distance and arrival time come from
the intercept solver; the travel-time closure wraps the timing above plus
the engine warm-up delay.  Without one the planner falls back to the
static catalog distance between the bodies' reference distances.

Every plan passes through :func:`core.data_structures.sanitize_or_complete`
before it is returned, so no non-finite value ever leaves the planner.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from core.catalogs import Catalog
from core.constants import KM_TO_M, SECONDS_PER_TICK
from core.data_structures import (
    Body,
    DriveState,
    FlightPhase,
    FlightPlan,
    Vehicle,
    VehicleStatus,
    World,
    as_position,
    clamp_burn_fraction,
    sanitize_or_complete,
)
from dynamics.orbital_mechanics import (
    lerp,
    position_at,
    root_body,
    shared_frame,
    static_distance,
    to_system_frame,
)
from dynamics.propulsion import PropulsionModel, warmup_delay_sec
from guidance.intercept_solver import InterceptSolver

logger = logging.getLogger(__name__)


@dataclass
class OrbitalContext:
    """
    Orbital data for a 2D intercept plan.

    Attributes
    ----------
    game_time : float
        Simulated departure time (s).
    world : World
        Body registry.
    origin_pos : np.ndarray, optional
        Overrides the origin position (mid-flight redirects).
    origin_frame_id : str, optional
        Frame ``origin_pos`` is expressed in; None for the system frame.
    """
    game_time: float
    world: World
    origin_pos: Optional[np.ndarray] = None
    origin_frame_id: Optional[str] = None


@dataclass(frozen=True)
class FlightTiming:
    burn_time_s: float
    coast_time_s: float
    total_time_s: float

    @property
    def is_unpowered(self) -> bool:
        """True for the one-tick plan: no burn, no coast."""
        return self.burn_time_s <= 0.0 and self.coast_time_s <= 0.0


def compute_flight_timing(
    distance_m: float,
    acceleration: float,
    allocated_delta_v: float,
    tick_seconds: float = SECONDS_PER_TICK,
) -> FlightTiming:
    """Burn/coast timing for a distance, acceleration and delta-v budget."""
    if not (acceleration > 0.0 and allocated_delta_v > 0.0 and distance_m > 0.0):
        return FlightTiming(0.0, 0.0, float(tick_seconds))

    v_cruise = allocated_delta_v / 2.0
    dv_threshold = 2.0 * np.sqrt(distance_m * acceleration)

    if dv_threshold <= allocated_delta_v:
        total_time = 2.0 * np.sqrt(distance_m / acceleration)
        return FlightTiming(float(total_time / 2.0), 0.0, float(total_time))

    burn_time = v_cruise / acceleration
    burn_distance = 0.5 * acceleration * burn_time * burn_time
    coast_distance = max(0.0, distance_m - 2.0 * burn_distance)
    coast_time = coast_distance / v_cruise
    return FlightTiming(float(burn_time), float(coast_time), float(2.0 * burn_time + coast_time))


class FlightPlanner:
    """
    Creates, starts and redirects vehicle flights.

    Parameters
    ----------
    engines, hulls : Catalog
        Read-only engine and hull catalogs.
    solver : InterceptSolver, optional
        Intercept solver for orbital plans.  A default solver is built when
        omitted.
    tick_seconds : float
        Simulation quantum, used for degenerate one-tick plans and the
        warm-up delay.
    """

    def __init__(
        self,
        engines: Catalog,
        hulls: Catalog,
        solver: Optional[InterceptSolver] = None,
        tick_seconds: float = SECONDS_PER_TICK,
    ) -> None:
        self.propulsion = PropulsionModel(engines, hulls)
        self.solver = solver if solver is not None else InterceptSolver()
        self.tick_seconds = float(tick_seconds)

    # =========================================================================
    # PLAN CONSTRUCTION
    # =========================================================================

    def initialize_flight(
        self,
        vehicle: Vehicle,
        origin: Body,
        destination: Body,
        dock_on_arrival: bool = False,
        burn_fraction: float = 1.0,
        orbital_context: Optional[OrbitalContext] = None,
        engine_online: bool = False,
    ) -> FlightPlan:
        """
        Build a flight plan from ``origin`` to ``destination``.

        Parameters
        ----------
        vehicle : Vehicle
            Vehicle whose current mass, fuel and engine drive the plan.
        origin, destination : Body
            Flight endpoints.
        dock_on_arrival : bool
            Stored on the plan for the caller's arrival handling.
        burn_fraction : float
            Share of the per-leg delta-v budget to use, clamped to
            [0.1, 1.0].  Lower values coast more and burn less fuel.
        orbital_context : OrbitalContext, optional
            Enables the 2D intercept path.
        engine_online : bool
            Skip the warm-up delay in the arrival estimate.

        Returns
        -------
        FlightPlan

        Raises
        ------
        UnknownCatalogEntryError
            If the vehicle's hull or engine id is not in the catalogs.
        """
        fraction = clamp_burn_fraction(burn_fraction)
        state = self.propulsion.propulsion_state(vehicle)
        engine = self.propulsion.engine_of(vehicle)
        budget = state.leg_delta_v_budget(fraction)
        acceleration = state.acceleration

        origin_pos = intercept_pos = None
        frame_id = None
        eta = departure = None

        if orbital_context is not None:
            warmup = 0.0 if engine_online else warmup_delay_sec(engine, self.tick_seconds)

            def travel_time(distance_km: float) -> float:
                timing = compute_flight_timing(
                    distance_km * KM_TO_M, acceleration, budget, self.tick_seconds
                )
                return warmup + timing.total_time_s

            frame, solve_origin = self._resolve_origin(origin, destination, orbital_context)
            solution = self.solver.solve(
                solve_origin,
                destination,
                travel_time,
                orbital_context.game_time,
                orbital_context.world,
                frame=frame,
            )
            distance_km = solution.travel_distance_km
            origin_pos = solution.origin_position
            intercept_pos = solution.intercept_position
            frame_id = solution.frame_body_id
            eta = solution.arrival_time
            departure = float(orbital_context.game_time)
        else:
            distance_km = static_distance(origin, destination)

        distance_m = distance_km * KM_TO_M
        timing = compute_flight_timing(distance_m, acceleration, budget, self.tick_seconds)
        if timing.is_unpowered:
            acceleration = 0.0

        plan = FlightPlan(
            origin_id=origin.id,
            destination_id=destination.id,
            total_distance_m=float(distance_m),
            total_time_s=timing.total_time_s,
            burn_time_s=timing.burn_time_s,
            coast_time_s=timing.coast_time_s,
            acceleration_m_s2=float(acceleration),
            phase=FlightPhase.ACCELERATING,
            burn_fraction=fraction,
            dock_on_arrival=bool(dock_on_arrival),
            origin_km=float(origin.distance_from_reference_km),
            destination_km=float(destination.distance_from_reference_km),
            origin_pos=origin_pos,
            intercept_pos=intercept_pos,
            ship_pos=None if origin_pos is None else origin_pos.copy(),
            frame_body_id=frame_id,
            estimated_arrival_time=eta,
            departure_time=departure,
        )
        sanitize_or_complete(plan, self.tick_seconds)

        logger.debug(
            "Planned %s -> %s for %s: %.1f km, a=%.4f m/s^2, budget=%.1f m/s, "
            "burn=%.0f s, coast=%.0f s, total=%.0f s",
            origin.id, destination.id, vehicle.id, plan.total_distance_m / KM_TO_M,
            plan.acceleration_m_s2, budget, plan.burn_time_s, plan.coast_time_s,
            plan.total_time_s,
        )
        return plan

    def _resolve_origin(
        self,
        origin: Body,
        destination: Body,
        context: OrbitalContext,
    ) -> Tuple[Optional[Body], Union[Body, np.ndarray]]:
        """Pick the solve frame and the origin (body or fixed point) in it."""
        world = context.world
        if context.origin_pos is None:
            return shared_frame(origin, destination, world), origin

        point = as_position(context.origin_pos)
        origin_frame = world.get(context.origin_frame_id)
        if origin_frame is None:
            return None, point
        if destination.orbital is not None and root_body(destination, world) is origin_frame:
            return origin_frame, point
        return None, to_system_frame(point, origin_frame, context.game_time, world)

    # =========================================================================
    # FLIGHT GATES
    # =========================================================================

    def start_ship_flight(
        self,
        vehicle: Vehicle,
        origin: Body,
        destination: Body,
        dock_on_arrival: bool = False,
        burn_fraction: float = 1.0,
        game_time: Optional[float] = None,
        world: Optional[World] = None,
    ) -> bool:
        """
        Commit a new flight and start the engine warm-up.

        Every path that puts a vehicle in flight goes through here.  Returns
        False, leaving the vehicle untouched, when the control station is
        not staffed.  The 2D intercept path is used when both ``game_time``
        and ``world`` are given.
        """
        if not vehicle.is_helm_staffed():
            logger.warning("Flight %s -> %s refused for %s: helm unstaffed",
                           origin.id, destination.id, vehicle.id)
            return False

        context = OrbitalContext(game_time, world) if game_time is not None and world is not None else None
        plan = self.initialize_flight(
            vehicle, origin, destination, dock_on_arrival, burn_fraction, context
        )

        vehicle.status = VehicleStatus.IN_FLIGHT
        vehicle.docked_at = None
        vehicle.orbiting_at = None
        vehicle.active_flight_plan = plan
        vehicle.engine.state = DriveState.WARMING_UP
        vehicle.engine.warmup_progress = 0.0

        logger.info(
            "%s departing %s for %s: %.0f km, %.1f h",
            vehicle.id, origin.id, destination.id,
            plan.total_distance_m / KM_TO_M, plan.total_time_s / 3600.0,
        )
        return True

    def redirect_ship_flight(
        self,
        vehicle: Vehicle,
        destination: Body,
        dock_on_arrival: bool = False,
        burn_fraction: float = 1.0,
        game_time: Optional[float] = None,
        world: Optional[World] = None,
    ) -> bool:
        """
        Replace an in-flight vehicle's plan with one to a new destination.

        The new plan starts from the vehicle's current interpolated
        position and the engine stays online (no warm-up).  Returns False
        when the control station is unstaffed or the vehicle has no
        active plan.
        """
        current = vehicle.active_flight_plan
        if not vehicle.is_helm_staffed():
            logger.warning("Redirect of %s to %s refused: helm unstaffed", vehicle.id, destination.id)
            return False
        if current is None:
            logger.warning("Redirect of %s to %s refused: no active flight", vehicle.id, destination.id)
            return False

        current_km = current.current_reference_km()
        context = None
        origin_position = np.zeros(2)
        if game_time is not None and world is not None:
            if current.ship_pos is not None:
                context = OrbitalContext(
                    game_time, world,
                    origin_pos=current.ship_pos.copy(),
                    origin_frame_id=current.frame_body_id,
                )
            else:
                origin_position = self._legacy_position(current, game_time, world)
                context = OrbitalContext(game_time, world, origin_pos=origin_position)

        # Synthetic origin at the vehicle's current position
        origin = Body(
            id=current.origin_id,
            name="in transit",
            position=origin_position,
            distance_from_reference_km=current_km,
        )
        plan = self.initialize_flight(
            vehicle, origin, destination, dock_on_arrival, burn_fraction,
            context, engine_online=True,
        )
        plan.origin_km = current_km

        vehicle.active_flight_plan = plan
        vehicle.status = VehicleStatus.IN_FLIGHT
        if vehicle.engine.state != DriveState.ONLINE:
            vehicle.engine.state = DriveState.ONLINE
            vehicle.engine.warmup_progress = 100.0

        logger.info(
            "%s redirected to %s: %.0f km, %.1f h",
            vehicle.id, destination.id,
            plan.total_distance_m / KM_TO_M, plan.total_time_s / 3600.0,
        )
        return True

    @staticmethod
    def _legacy_position(plan: FlightPlan, game_time: float, world: World) -> np.ndarray:
        """Estimate a 2D position for a plan that was made without one."""
        start = world.get(plan.origin_id)
        end = world.get(plan.destination_id)
        if start is None or end is None:
            return np.zeros(2)
        return lerp(position_at(start, game_time, world), position_at(end, game_time, world), plan.progress)


def absolute_ship_position(plan: FlightPlan, world: World, t: float) -> Optional[np.ndarray]:
    """
    System-frame position of the vehicle flying ``plan`` at time t.

    Plan positions are stored in the co-moving frame of
    ``plan.frame_body_id``; this adds the frame origin back.  Returns None
    for plans without 2D positions.
    """
    if plan.ship_pos is None:
        return None
    frame = world.get(plan.frame_body_id)
    return to_system_frame(plan.ship_pos, frame, t, world)
