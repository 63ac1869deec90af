"""
===============================================================================
FLIGHT ENGINE - Orbital Model
===============================================================================
Closed-form positions of bodies on circular, single-parent orbits.

Every body either orbits the fixed system origin or a parent body; its
position at simulated time t is

    angle(t)    = initial_angle + 2*pi * t / period      (mod 2*pi)
    position(t) = position_of_parent(t) + r * (cos(angle), sin(angle))

A period of zero marks a stationary body: its angle never changes.

The functions here are pure: given the same body, time and world they
return the same result and never read the cached ``Body.position``
fields.  The only writer of those caches is
:func:`refresh_world_positions`, called once per tick before any
per-vehicle flight work.

Co-moving frames
----------------
Two bodies that hang off the same top-level body (a station and its
planet, two stations of one planet) share that body's heliocentric
motion.  :func:`shared_frame` finds that body and
:func:`position_in_frame` expresses positions relative to it, which lets
the intercept solver cancel the shared motion.
===============================================================================
"""

import logging
from typing import Optional

import numpy as np

from core.constants import TWO_PI
from core.data_structures import Body, OrbitalParams, World

logger = logging.getLogger(__name__)


# =============================================================================
# CORE POSITION FUNCTIONS
# =============================================================================

def angle_at(orbital: OrbitalParams, t: float) -> float:
    """
    Orbital angle (rad) at simulated time t, normalised to [0, 2*pi).

    Stationary orbits (period 0) return ``initial_angle_rad`` unchanged.
    """
    if orbital.orbital_period_sec <= 0.0:
        return orbital.initial_angle_rad
    angle = orbital.initial_angle_rad + TWO_PI * t / orbital.orbital_period_sec
    return float(np.mod(angle, TWO_PI))


def position_at(body: Body, t: float, world: World) -> np.ndarray:
    """
    2D position (km, system frame) of a body at simulated time t.

    The parent chain is resolved recursively.  A body without orbital
    parameters returns a copy of its static position; a body whose parent
    is missing from the world is treated as orbiting the system origin.
    """
    orbital = body.orbital
    if orbital is None:
        return body.position.copy()

    angle = angle_at(orbital, t)
    local = orbital.orbital_radius_km * np.array([np.cos(angle), np.sin(angle)])

    if orbital.parent_id is None:
        return local

    parent = world.get(orbital.parent_id)
    if parent is None:
        logger.debug("Parent %r of %r not found; using system origin", orbital.parent_id, body.id)
        return local

    return position_at(parent, t, world) + local


def distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two positions."""
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def lerp(a: np.ndarray, b: np.ndarray, frac: float) -> np.ndarray:
    """
    Linear interpolation between two positions.

    ``frac`` is not clamped; callers clamp to [0, 1] themselves.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return a + (b - a) * frac


def distance_between_at(a: Body, b: Body, t: float, world: World) -> float:
    """Distance (km) between two bodies at simulated time t."""
    return distance(position_at(a, t, world), position_at(b, t, world))


def static_distance(a: Body, b: Body) -> float:
    """
    Catalog distance (km) between two bodies from their cached reference
    distances.  Used when no orbital context is available.
    """
    return abs(a.distance_from_reference_km - b.distance_from_reference_km)


# =============================================================================
# WORLD REFRESH
# =============================================================================

def refresh_world_positions(world: World, t: float) -> None:
    """
    Recompute cached positions and reference distances for every orbiting
    body.  Called once per tick, before any vehicle is advanced, so every
    vehicle in a tick sees the same snapshot.
    """
    reference = world.reference_body
    if reference is not None and reference.orbital is not None:
        reference_pos = position_at(reference, t, world)
    elif reference is not None:
        reference_pos = reference.position.copy()
    else:
        reference_pos = np.zeros(2)

    for body in world:
        if body.orbital is None:
            continue
        pos = position_at(body, t, world)
        body.position = pos
        if body is reference:
            body.distance_from_reference_km = 0.0
        else:
            body.distance_from_reference_km = distance(pos, reference_pos)


# =============================================================================
# CO-MOVING FRAMES
# =============================================================================

def root_body(body: Body, world: World) -> Body:
    """Top-level ancestor of a body (the body itself when it has no parent)."""
    current = body
    while current.parent_id is not None:
        parent = world.get(current.parent_id)
        if parent is None:
            break
        current = parent
    return current


def shared_frame(a: Body, b: Body, world: World) -> Optional[Body]:
    """
    Top-level body whose frame both bodies co-move with, or None.

    Both bodies need orbital parameters and a common top-level ancestor.
    A top-level body at the system origin (radius 0) is not a useful frame
    and yields None.
    """
    if a.orbital is None or b.orbital is None:
        return None
    root_a = root_body(a, world)
    if root_a is not root_body(b, world):
        return None
    if root_a.orbital is None or root_a.orbital.orbital_radius_km == 0.0:
        return None
    return root_a


def frame_origin_at(frame: Optional[Body], t: float, world: World) -> np.ndarray:
    """Position of a frame's origin at time t (zero for the system frame)."""
    if frame is None:
        return np.zeros(2)
    return position_at(frame, t, world)


def position_in_frame(body: Body, frame: Optional[Body], t: float, world: World) -> np.ndarray:
    """Position of a body at time t relative to a frame body (or the system)."""
    return position_at(body, t, world) - frame_origin_at(frame, t, world)


def to_system_frame(local: np.ndarray, frame: Optional[Body], t: float, world: World) -> np.ndarray:
    """Convert a frame-relative position at time t back to system coordinates."""
    return np.asarray(local, dtype=np.float64) + frame_origin_at(frame, t, world)
