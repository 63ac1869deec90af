"""
===============================================================================
FLIGHT ENGINE - Launch Windows
===============================================================================
Samples the distance between two orbiting bodies over a look-ahead span
to rate the current alignment and find the next close approach.

The default span is twice the synodic period of the two top-level orbits,

    T_syn = 1 / |1/T_a - 1/T_b|

capped at ten years.  One sample is taken per simulated day, with at
least 100 and at most 1000 samples.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from core.constants import DAYS_PER_YEAR, SECONDS_PER_DAY
from core.data_structures import Body, World
from dynamics.orbital_mechanics import distance_between_at, root_body

logger = logging.getLogger(__name__)

MIN_SAMPLES = 100
MAX_SAMPLES = 1000
MAX_LOOK_AHEAD_DAYS = 10.0 * DAYS_PER_YEAR
OPTIMAL_DISTANCE_RATIO = 0.95   # a window must beat the current distance by 5 %

# Upper bound of the normalised position in [min, max] for each rating
ALIGNMENT_THRESHOLDS = (
    (0.2, "excellent"),
    (0.45, "good"),
    (0.7, "moderate"),
)


@dataclass(frozen=True)
class LaunchWindow:
    """
    Alignment of two bodies over the look-ahead span.

    Attributes
    ----------
    current_distance_km, min_distance_km, max_distance_km : float
        Sampled distances (km).
    alignment : str
        One of ``excellent``, ``good``, ``moderate``, ``poor``.
    next_optimal_time : float or None
        Simulated time of the next close approach, if any.
    next_optimal_in_days : float or None
        Days from now until ``next_optimal_time``.
    """
    current_distance_km: float
    min_distance_km: float
    max_distance_km: float
    alignment: str
    next_optimal_time: Optional[float] = None
    next_optimal_in_days: Optional[float] = None


def classify_alignment(current_km: float, min_km: float, max_km: float) -> str:
    """Rate the current distance by where it sits between min and max."""
    span = max_km - min_km
    if span <= 0.0:
        return "excellent"
    position = (current_km - min_km) / span
    for threshold, label in ALIGNMENT_THRESHOLDS:
        if position <= threshold:
            return label
    return "poor"


def synodic_period_sec(a: Body, b: Body, world: World) -> Optional[float]:
    """
    Synodic period (s) of the top-level orbits of two bodies.

    Returns None when neither has a moving top-level orbit.  Bodies sharing
    a top-level orbit (or with identical periods) fall back to the longer
    of their own periods.
    """
    periods = []
    for body in (a, b):
        top = root_body(body, world)
        period = top.orbital.orbital_period_sec if top.orbital is not None else 0.0
        periods.append(period)

    p_a, p_b = periods
    if p_a > 0.0 and p_b > 0.0 and p_a != p_b:
        return 1.0 / abs(1.0 / p_a - 1.0 / p_b)

    own = [
        body.orbital.orbital_period_sec
        for body in (a, b)
        if body.orbital is not None and body.orbital.orbital_period_sec > 0.0
    ]
    candidates = [p for p in periods if p > 0.0] + own
    return max(candidates) if candidates else None


def compute_launch_window(
    origin: Body,
    destination: Body,
    game_time: float,
    world: World,
    look_ahead_days: Optional[float] = None,
) -> Optional[LaunchWindow]:
    """
    Rate the current alignment and find the next close approach.

    Parameters
    ----------
    origin, destination : Body
        Bodies to compare; both need orbital parameters.
    game_time : float
        Simulated time to start sampling from (s).
    world : World
        Body registry.
    look_ahead_days : float, optional
        Sampling span.  Defaults to twice the synodic period, capped at ten
        years.

    Returns
    -------
    LaunchWindow or None
        None when either body has no orbital parameters.
    """
    if origin.orbital is None or destination.orbital is None:
        return None

    if look_ahead_days is None:
        synodic = synodic_period_sec(origin, destination, world)
        if synodic is None:
            look_ahead_days = DAYS_PER_YEAR
        else:
            look_ahead_days = min(2.0 * synodic / SECONDS_PER_DAY, MAX_LOOK_AHEAD_DAYS)

    samples = int(np.clip(int(look_ahead_days), MIN_SAMPLES, MAX_SAMPLES))
    times = game_time + np.linspace(0.0, look_ahead_days * SECONDS_PER_DAY, samples + 1)
    distances = np.array([
        distance_between_at(origin, destination, t, world) for t in times
    ])

    current = float(distances[0])
    min_km = float(distances.min())
    max_km = float(distances.max())

    next_time = None
    for i in range(1, len(distances) - 1):
        d = distances[i]
        if d <= distances[i - 1] and d < distances[i + 1] and d < OPTIMAL_DISTANCE_RATIO * current:
            next_time = float(times[i])
            break

    window = LaunchWindow(
        current_distance_km=current,
        min_distance_km=min_km,
        max_distance_km=max_km,
        alignment=classify_alignment(current, min_km, max_km),
        next_optimal_time=next_time,
        next_optimal_in_days=None if next_time is None else (next_time - game_time) / SECONDS_PER_DAY,
    )
    logger.debug(
        "Launch window %s -> %s: %s (%.3g km now, %.3g-%.3g km)",
        origin.id, destination.id, window.alignment, current, min_km, max_km,
    )
    return window
