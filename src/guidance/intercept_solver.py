"""
===============================================================================
FLIGHT ENGINE - Intercept Solver
===============================================================================
Aims a vehicle at where a moving destination will be when it arrives.

The destination's position depends on the arrival time, the arrival time
on the travel distance, and the travel distance on the destination's
position.  The solver resolves this with a fixed-point iteration started
from the departure time:

    P_i     = position(destination, T_i)
    d_i     = |P_i - origin(T_i)|
    T_{i+1} = t_departure + travel_time(d_i)

The iteration runs a fixed number of passes (10 by default) with no early
exit, so its cost per vehicle per tick is constant.  The map contracts as
long as the vehicle's attainable speed is well above the destination's
orbital speed, which holds for short hops and fast drives but not for
slow interplanetary cruises.  After the loop the last two distances are
compared: when they still differ by more than the divergence tolerance
the solution is flagged as not converged and the solver falls back to the
departure-time snapshot of the destination.

Frames
------
When a frame body is given, all positions are taken relative to it at
every iterate.  An origin passed as a :class:`Body` is then re-evaluated
at each T_i as well, so a station flying to its own planet sees the
~400 km separation rather than the planet's heliocentric displacement.
Without a frame the origin is frozen at its departure position.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

import numpy as np

from core.constants import SOLVER_DIVERGENCE_TOLERANCE, SOLVER_ITERATIONS
from core.data_structures import Body, World, as_position
from dynamics.orbital_mechanics import distance, position_in_frame

logger = logging.getLogger(__name__)

TravelTimeFn = Callable[[float], float]
Origin = Union[Body, np.ndarray]


@dataclass(frozen=True)
class InterceptSolution:
    """
    Result of an intercept solve.

    Attributes
    ----------
    travel_distance_km : float
        Distance from the origin to the intercept point (km).
    intercept_position : np.ndarray
        Destination position at arrival, in the solve frame (km).
    origin_position : np.ndarray
        Origin position at departure, in the solve frame (km).
    arrival_time : float
        Simulated arrival time (s).
    frame_body_id : str or None
        Frame the positions are expressed in; None for the system frame.
    converged : bool
        False when the divergence check fired and the departure snapshot
        was used instead.
    distance_history : tuple of float
        d_i for every pass, in order.
    """
    travel_distance_km: float
    intercept_position: np.ndarray
    origin_position: np.ndarray
    arrival_time: float
    frame_body_id: Optional[str] = None
    converged: bool = True
    distance_history: Tuple[float, ...] = ()


class InterceptSolver:
    """
    Fixed-point intercept solver.

    Parameters
    ----------
    iterations : int
        Number of passes, always run in full.
    divergence_tolerance : float
        Maximum relative change between the last two distances for the
        solution to count as converged.
    """

    def __init__(
        self,
        iterations: int = SOLVER_ITERATIONS,
        divergence_tolerance: float = SOLVER_DIVERGENCE_TOLERANCE,
    ) -> None:
        if iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}")
        self.iterations = int(iterations)
        self.divergence_tolerance = float(divergence_tolerance)

    def solve(
        self,
        origin: Origin,
        destination: Body,
        travel_time_fn: TravelTimeFn,
        departure_time: float,
        world: World,
        frame: Optional[Body] = None,
    ) -> InterceptSolution:
        """
        Solve for the arrival time and intercept point.

        Parameters
        ----------
        origin : Body or array-like
            Departure body, or a fixed point in the solve frame (km).
        destination : Body
            Body to intercept.
        travel_time_fn : callable
            Maps a distance in km to a travel time in seconds.
        departure_time : float
            Simulated departure time (s).
        world : World
            Body registry used to resolve parent chains.
        frame : Body, optional
            Co-moving frame to solve in.

        Returns
        -------
        InterceptSolution
        """
        origin_at = self._origin_track(origin, departure_time, world, frame)

        def destination_at(t: float) -> np.ndarray:
            return position_in_frame(destination, frame, t, world)

        arrival = float(departure_time)
        history = []
        intercept = destination_at(arrival)
        travel_distance = 0.0
        for _ in range(self.iterations):
            intercept = destination_at(arrival)
            travel_distance = distance(origin_at(arrival), intercept)
            history.append(travel_distance)
            arrival = float(departure_time) + float(travel_time_fn(travel_distance))

        converged = self._converged(history)
        frame_id = frame.id if frame is not None else None
        origin_position = origin_at(float(departure_time))

        if not converged:
            logger.warning(
                "Intercept of %s did not settle after %d passes (last distances %.1f, %.1f km); "
                "using departure-time position",
                destination.id, self.iterations,
                history[-2] if len(history) > 1 else history[-1], history[-1],
            )
            travel_distance = history[0]
            intercept = destination_at(float(departure_time))
            arrival = float(departure_time) + float(travel_time_fn(travel_distance))

        logger.debug(
            "Intercept %s: %.1f km, arrival t=%.0f s (frame=%s, converged=%s)",
            destination.id, travel_distance, arrival, frame_id, converged,
        )
        return InterceptSolution(
            travel_distance_km=float(travel_distance),
            intercept_position=intercept,
            origin_position=origin_position,
            arrival_time=arrival,
            frame_body_id=frame_id,
            converged=converged,
            distance_history=tuple(history),
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _origin_track(
        origin: Origin,
        departure_time: float,
        world: World,
        frame: Optional[Body],
    ) -> Callable[[float], np.ndarray]:
        if isinstance(origin, Body):
            if frame is not None:
                return lambda t: position_in_frame(origin, frame, t, world)
            fixed = position_in_frame(origin, None, departure_time, world)
        else:
            fixed = as_position(origin)
        return lambda t: fixed.copy()

    def _converged(self, history) -> bool:
        if len(history) < 2:
            return bool(np.isfinite(history[-1]))
        previous, last = history[-2], history[-1]
        change = abs(last - previous) / max(previous, 1.0)
        return bool(np.isfinite(change) and change <= self.divergence_tolerance)
