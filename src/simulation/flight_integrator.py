"""
===============================================================================
FLIGHT ENGINE - Flight Integrator
===============================================================================
Advances a flight plan by one fixed tick.

The state is evaluated in closed form from the elapsed time, so it does
not drift with the tick size.  With t the elapsed time, a the burn
acceleration, t_b the burn time and t_c the coast time:

    no coast (t_h = t_total / 2):
        t <= t_h : v = a t,               d = a t^2 / 2
        t >  t_h : v = a t_h - a u,       d = a t_h^2 / 2 + a t_h u - a u^2 / 2
                   (u = t - t_h)

    with coast (v_max = a t_b, d_b = a t_b^2 / 2):
        t <= t_b         : accelerating, v = a t,   d = a t^2 / 2
        t <= t_b + t_c   : coasting,     v = v_max, d = d_b + v_max (t - t_b)
        otherwise        : decelerating, u = t - t_b - t_c
                           v = v_max - a u
                           d = d_b + v_max t_c + v_max u - a u^2 / 2

The vehicle's 2D position is a straight chord between the plan's frozen
origin and intercept points, interpolated on the distance covered.
===============================================================================
"""

import logging
from typing import Tuple

from core.constants import G0, SECONDS_PER_TICK
from core.data_structures import FlightPhase, FlightPlan, sanitize_or_complete
from dynamics.orbital_mechanics import lerp

logger = logging.getLogger(__name__)


def advance(plan: FlightPlan, tick_seconds: float = SECONDS_PER_TICK) -> bool:
    """
    Advance a flight plan by one tick.

    Parameters
    ----------
    plan : FlightPlan
        Plan to update in place.
    tick_seconds : float
        Tick length (s).

    Returns
    -------
    bool
        True when the flight is complete.  Completed plans stay complete on
        later calls.
    """
    if sanitize_or_complete(plan, tick_seconds):
        return True
    if plan.is_arrived:
        _snap_to_arrival(plan)
        return True

    plan.elapsed_time_s += tick_seconds
    if plan.elapsed_time_s >= plan.total_time_s:
        _snap_to_arrival(plan)
        logger.debug("Flight %s -> %s arrived", plan.origin_id, plan.destination_id)
        return True

    phase, velocity, covered = kinematic_state(plan, plan.elapsed_time_s)
    plan.phase = phase
    plan.current_velocity_m_s = velocity
    plan.distance_covered_m = max(0.0, min(covered, plan.total_distance_m))

    if plan.origin_pos is not None and plan.intercept_pos is not None:
        plan.ship_pos = lerp(plan.origin_pos, plan.intercept_pos, plan.progress)
    return False


def kinematic_state(plan: FlightPlan, t: float) -> Tuple[FlightPhase, float, float]:
    """Phase, velocity (m/s) and distance covered (m) at elapsed time t."""
    a = plan.acceleration_m_s2

    if not plan.has_coast_phase:
        half = plan.total_time_s / 2.0
        if t <= half:
            return FlightPhase.ACCELERATING, a * t, 0.5 * a * t * t
        u = t - half
        v_max = a * half
        covered = 0.5 * a * half * half + v_max * u - 0.5 * a * u * u
        return FlightPhase.DECELERATING, max(0.0, v_max - a * u), covered

    burn = plan.burn_time_s
    coast = plan.coast_time_s
    v_max = a * burn
    burn_distance = 0.5 * a * burn * burn

    if t <= burn:
        return FlightPhase.ACCELERATING, a * t, 0.5 * a * t * t
    if t <= burn + coast:
        return FlightPhase.COASTING, v_max, burn_distance + v_max * (t - burn)
    u = t - burn - coast
    covered = burn_distance + v_max * coast + v_max * u - 0.5 * a * u * u
    return FlightPhase.DECELERATING, max(0.0, v_max - a * u), covered


def _snap_to_arrival(plan: FlightPlan) -> None:
    plan.distance_covered_m = plan.total_distance_m
    plan.current_velocity_m_s = 0.0
    plan.phase = FlightPhase.DECELERATING
    if plan.intercept_pos is not None:
        plan.ship_pos = plan.intercept_pos.copy()


# =============================================================================
# QUERY HELPERS
# =============================================================================

def is_engine_burning(plan: FlightPlan) -> bool:
    """True while the plan is in a powered segment."""
    return (
        not plan.is_arrived
        and plan.acceleration_m_s2 > 0.0
        and plan.phase != FlightPhase.COASTING
    )


def g_force(plan: FlightPlan) -> float:
    """Instantaneous acceleration felt on board, in g."""
    if not is_engine_burning(plan):
        return 0.0
    return plan.acceleration_m_s2 / G0


def burn_seconds_in_tick(plan: FlightPlan, tick_seconds: float = SECONDS_PER_TICK) -> float:
    """
    Seconds of powered flight inside the tick that ended at the plan's
    current elapsed time.  Used to pro-rate fuel billing after
    :func:`advance`.
    """
    if not plan.acceleration_m_s2 > 0.0:
        return 0.0

    end = min(plan.elapsed_time_s, plan.total_time_s)
    start = max(0.0, plan.elapsed_time_s - tick_seconds)
    if end <= start:
        return 0.0

    if plan.has_coast_phase:
        decel_start = plan.burn_time_s + plan.coast_time_s
        intervals = ((0.0, plan.burn_time_s), (decel_start, plan.total_time_s))
    else:
        intervals = ((0.0, plan.total_time_s),)

    return sum(max(0.0, min(end, hi) - max(start, lo)) for lo, hi in intervals)
