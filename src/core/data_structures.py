"""
Data structures for the orbital flight engine.

This module holds the plain records that flow between the orbital model,
the propulsion model, the planner and the integrator, plus the single
routine that repairs numerically corrupted flight plans.

Structures
----------
OrbitalParams   -- Circular, single-parent, time-parameterised orbit.
Body            -- A world body with cached position / reference distance.
World           -- Registry of bodies keyed by id.
EngineInstance  -- A vehicle's installed drive and its warm-up state.
Vehicle         -- Everything the mass model and the flight gate need.
FlightPlan      -- Burn/coast/burn plan, mutated every tick in flight.

sanitize_or_complete -- Shared "detect non-finite, force safe terminal
                        state" routine used by planner and integrator.

Positions are 2-element ``float64`` NumPy arrays in kilometres; flight
distances are in metres.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

import numpy as np

from core.constants import (
    BURN_FRACTION_MAX,
    BURN_FRACTION_MIN,
    DEFAULT_REFERENCE_BODY_ID,
    SECONDS_PER_TICK,
)

logger = logging.getLogger(__name__)


def as_position(value: Any) -> np.ndarray:
    """Coerce a pair of numbers into a 2-element float64 position array."""
    pos = np.asarray(value, dtype=np.float64).reshape(-1)
    if pos.shape != (2,):
        raise ValueError(f"Expected a 2D position, got shape {pos.shape}")
    return pos


# ---------------------------------------------------------------------------
# 1. Orbits and bodies
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OrbitalParams:
    """Parameters of a circular orbit.

    Attributes
    ----------
    parent_id : str or None
        Body this orbit is centred on.  ``None`` orbits the system origin.
    orbital_radius_km : float
        Orbit radius (km).
    orbital_period_sec : float
        Sidereal period (s).  Zero means the body is stationary at
        ``initial_angle_rad``.
    initial_angle_rad : float
        Angle at simulated time zero (rad).
    """
    parent_id: Optional[str]
    orbital_radius_km: float
    orbital_period_sec: float
    initial_angle_rad: float = 0.0

    def __post_init__(self) -> None:
        if not self.orbital_period_sec >= 0.0:
            raise ValueError(
                f"orbital_period_sec must be >= 0, got {self.orbital_period_sec}"
            )
        if not self.orbital_radius_km >= 0.0:
            raise ValueError(
                f"orbital_radius_km must be >= 0, got {self.orbital_radius_km}"
            )

    @property
    def is_stationary(self) -> bool:
        return self.orbital_period_sec == 0.0


@dataclass(eq=False)
class Body:
    """A body in the world registry.

    ``position`` and ``distance_from_reference_km`` are caches written only
    by :func:`dynamics.orbital_mechanics.refresh_world_positions`.  Bodies
    without orbital parameters keep whatever static position they were
    created with.
    """
    id: str
    name: str = ""
    orbital: Optional[OrbitalParams] = None
    body_type: str = ""
    position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    distance_from_reference_km: float = 0.0

    def __post_init__(self) -> None:
        self.position = as_position(self.position)
        if not self.name:
            self.name = self.id

    @property
    def parent_id(self) -> Optional[str]:
        return self.orbital.parent_id if self.orbital is not None else None

    def __repr__(self) -> str:
        return (
            f"Body({self.id!r}, pos=[{self.position[0]:.1f}, "
            f"{self.position[1]:.1f}] km)"
        )


class World:
    """Registry of bodies keyed by id.

    Parameters
    ----------
    bodies : iterable of Body
        Body roster.  Ids must be unique and parent chains acyclic.
    reference_body_id : str
        Body whose position is used for the cached
        ``distance_from_reference_km`` of every body.
    """

    def __init__(
        self,
        bodies: Iterable[Body],
        reference_body_id: str = DEFAULT_REFERENCE_BODY_ID,
    ) -> None:
        self.bodies: Dict[str, Body] = {}
        for body in bodies:
            if body.id in self.bodies:
                raise ValueError(f"Duplicate body id: {body.id}")
            self.bodies[body.id] = body
        self.reference_body_id = reference_body_id
        self._check_parent_chains()

    def _check_parent_chains(self) -> None:
        for body in self.bodies.values():
            seen = {body.id}
            parent_id = body.parent_id
            while parent_id is not None and parent_id in self.bodies:
                if parent_id in seen:
                    raise ValueError(f"Cyclic parent chain through body {body.id!r}")
                seen.add(parent_id)
                parent_id = self.bodies[parent_id].parent_id

    def get(self, body_id: Optional[str]) -> Optional[Body]:
        if body_id is None:
            return None
        return self.bodies.get(body_id)

    @property
    def reference_body(self) -> Optional[Body]:
        return self.bodies.get(self.reference_body_id)

    def __getitem__(self, body_id: str) -> Body:
        return self.bodies[body_id]

    def __contains__(self, body_id: object) -> bool:
        return body_id in self.bodies

    def __iter__(self) -> Iterator[Body]:
        return iter(self.bodies.values())

    def __len__(self) -> int:
        return len(self.bodies)

    def __repr__(self) -> str:
        return f"World({len(self)} bodies, reference={self.reference_body_id!r})"


# ---------------------------------------------------------------------------
# 2. Vehicles
# ---------------------------------------------------------------------------

class DriveState(str, Enum):
    OFF = "off"
    WARMING_UP = "warming_up"
    ONLINE = "online"


class VehicleStatus(str, Enum):
    DOCKED = "docked"
    ORBITING = "orbiting"
    IN_FLIGHT = "in_flight"


@dataclass
class EngineInstance:
    """The drive installed on a vehicle."""
    definition_id: str
    state: DriveState = DriveState.OFF
    warmup_progress: float = 0.0       # percent, 0-100


@dataclass
class CrewMember:
    id: str
    name: str = ""
    role: str = ""


@dataclass
class CargoItem:
    name: str
    mass_kg: Optional[float] = None    # None -> catalog default per item


@dataclass(eq=False)
class Vehicle:
    """A vehicle record as seen by the flight engine.

    Only the fields that feed the mass model, the control-station gate and
    the flight state live here; crew skills, contracts and the like belong
    to the surrounding game.
    """
    id: str
    hull_id: str
    engine: EngineInstance
    name: str = ""
    fuel_kg: float = 0.0
    crew: List[CrewMember] = field(default_factory=list)
    cargo: List[CargoItem] = field(default_factory=list)
    provisions_kg: float = 0.0
    helm_crew_id: Optional[str] = None
    status: VehicleStatus = VehicleStatus.DOCKED
    docked_at: Optional[str] = None
    orbiting_at: Optional[str] = None
    active_flight_plan: Optional["FlightPlan"] = None

    def is_helm_staffed(self) -> bool:
        """True when the control station is assigned to a crew member on board."""
        if self.helm_crew_id is None:
            return False
        return any(member.id == self.helm_crew_id for member in self.crew)

    def __repr__(self) -> str:
        return (
            f"Vehicle({self.id!r}, hull={self.hull_id!r}, "
            f"status={self.status.value}, fuel={self.fuel_kg:.0f} kg)"
        )


# ---------------------------------------------------------------------------
# 3. FlightPlan
# ---------------------------------------------------------------------------

class FlightPhase(str, Enum):
    ACCELERATING = "accelerating"
    COASTING = "coasting"
    DECELERATING = "decelerating"


# Scalar fields that must stay finite for the plan to be advanced
_NUMERIC_FIELDS = (
    "total_distance_m",
    "distance_covered_m",
    "current_velocity_m_s",
    "burn_time_s",
    "coast_time_s",
    "elapsed_time_s",
    "total_time_s",
    "acceleration_m_s2",
    "burn_fraction",
    "origin_km",
    "destination_km",
)
_OPTIONAL_TIME_FIELDS = ("estimated_arrival_time", "departure_time")
_POSITION_FIELDS = ("origin_pos", "intercept_pos", "ship_pos")
_NON_NEGATIVE_FIELDS = (
    "total_distance_m",
    "burn_time_s",
    "coast_time_s",
    "elapsed_time_s",
    "acceleration_m_s2",
)


@dataclass(eq=False)
class FlightPlan:
    """A burn/coast/burn flight plan.

    Created by the flight planner, mutated once per tick by the flight
    integrator, discarded on docking, redirect or a new flight.

    Attributes
    ----------
    origin_id, destination_id : str
        Body ids of the endpoints.
    total_distance_m : float
        Distance to cover (m).
    distance_covered_m : float
        Distance covered so far, in ``[0, total_distance_m]``.
    current_velocity_m_s : float
        Instantaneous speed along the path (m/s).
    phase : FlightPhase
        Current segment of the profile.
    burn_time_s, coast_time_s, total_time_s : float
        Profile timing.  ``coast_time_s == 0`` marks a no-coast plan.
    elapsed_time_s : float
        Simulated time flown so far; grows one tick at a time.
    acceleration_m_s2 : float
        Constant acceleration during burns (m/s^2).
    burn_fraction : float
        Share of the per-leg delta-v budget in use, ``[0.1, 1.0]``.
    dock_on_arrival : bool
        Dock (rather than hold orbit) when the plan completes.
    origin_km, destination_km : float
        Endpoint distances from the reference body, for legacy redirects.
    origin_pos, intercept_pos, ship_pos : np.ndarray or None
        Frozen display endpoints and the interpolated vehicle position,
        expressed in the frame of ``frame_body_id``.
    frame_body_id : str or None
        Body whose co-moving frame the positions are expressed in;
        ``None`` for the inertial system frame.
    estimated_arrival_time, departure_time : float or None
        Simulated times from the intercept solution.
    """
    origin_id: str
    destination_id: str
    total_distance_m: float
    total_time_s: float
    burn_time_s: float = 0.0
    coast_time_s: float = 0.0
    acceleration_m_s2: float = 0.0
    distance_covered_m: float = 0.0
    current_velocity_m_s: float = 0.0
    elapsed_time_s: float = 0.0
    phase: FlightPhase = FlightPhase.ACCELERATING
    burn_fraction: float = 1.0
    dock_on_arrival: bool = False
    origin_km: float = 0.0
    destination_km: float = 0.0
    origin_pos: Optional[np.ndarray] = None
    intercept_pos: Optional[np.ndarray] = None
    ship_pos: Optional[np.ndarray] = None
    frame_body_id: Optional[str] = None
    estimated_arrival_time: Optional[float] = None
    departure_time: Optional[float] = None

    # -- state queries -----------------------------------------------------

    @property
    def is_arrived(self) -> bool:
        return self.elapsed_time_s >= self.total_time_s

    @property
    def has_coast_phase(self) -> bool:
        return self.coast_time_s > 0.0

    @property
    def progress(self) -> float:
        """Fraction of the distance covered, clamped to ``[0, 1]``."""
        if not self.total_distance_m > 0.0:
            return 1.0 if self.is_arrived else 0.0
        return min(1.0, max(0.0, self.distance_covered_m / self.total_distance_m))

    def current_reference_km(self) -> float:
        """Interpolated distance from the reference body (legacy mode)."""
        return self.origin_km + (self.destination_km - self.origin_km) * self.progress

    def is_numerically_sound(self) -> bool:
        """True when every numeric field is finite and within its range."""
        for name in _NUMERIC_FIELDS:
            if not _is_finite_number(getattr(self, name)):
                return False
        for name in _OPTIONAL_TIME_FIELDS:
            value = getattr(self, name)
            if value is not None and not _is_finite_number(value):
                return False
        for name in _POSITION_FIELDS:
            pos = getattr(self, name)
            if pos is not None and not _is_valid_position(pos):
                return False
        for name in _NON_NEGATIVE_FIELDS:
            if getattr(self, name) < 0.0:
                return False
        if not BURN_FRACTION_MIN <= self.burn_fraction <= BURN_FRACTION_MAX:
            return False
        return self.total_time_s > 0.0

    # -- persistence -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return plain, JSON-compatible data.  Non-finite floats become None."""
        data: Dict[str, Any] = {
            "origin_id": self.origin_id,
            "destination_id": self.destination_id,
            "phase": self.phase.value,
            "dock_on_arrival": bool(self.dock_on_arrival),
            "frame_body_id": self.frame_body_id,
        }
        for name in _NUMERIC_FIELDS + _OPTIONAL_TIME_FIELDS:
            data[name] = _finite_or_none(getattr(self, name))
        for name in _POSITION_FIELDS:
            pos = getattr(self, name)
            data[name] = None if pos is None else [_finite_or_none(v) for v in pos]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlightPlan":
        """Rebuild a plan from :meth:`to_dict` output.

        Missing or ``None`` numeric values are restored as ``nan`` so the
        finiteness guards catch them on the next tick instead of the
        plan silently carrying a made-up value.  A position that is not a
        pair of numbers is restored as ``[nan, nan]`` for the same reason.
        """
        kwargs: Dict[str, Any] = {
            "origin_id": str(data.get("origin_id", "")),
            "destination_id": str(data.get("destination_id", "")),
            "dock_on_arrival": bool(data.get("dock_on_arrival", False)),
            "frame_body_id": data.get("frame_body_id"),
        }
        try:
            kwargs["phase"] = FlightPhase(data.get("phase", FlightPhase.ACCELERATING.value))
        except ValueError:
            kwargs["phase"] = FlightPhase.DECELERATING
        for name in _NUMERIC_FIELDS:
            kwargs[name] = _float_or_nan(data.get(name))
        for name in _OPTIONAL_TIME_FIELDS:
            value = data.get(name)
            kwargs[name] = None if value is None else _float_or_nan(value)
        for name in _POSITION_FIELDS:
            value = data.get(name)
            kwargs[name] = None if value is None else _position_or_nan(value)
        return cls(**kwargs)

    def __repr__(self) -> str:
        return (
            f"FlightPlan({self.origin_id!r} -> {self.destination_id!r}, "
            f"{self.distance_covered_m / 1e3:.0f}/{self.total_distance_m / 1e3:.0f} km, "
            f"t={self.elapsed_time_s:.0f}/{self.total_time_s:.0f} s, "
            f"phase={self.phase.value})"
        )


def clamp_burn_fraction(burn_fraction: float) -> float:
    """Clamp a burn fraction to ``[0.1, 1.0]``; non-finite input means full burn."""
    if not _is_finite_number(burn_fraction):
        return BURN_FRACTION_MAX
    return max(BURN_FRACTION_MIN, min(BURN_FRACTION_MAX, float(burn_fraction)))


def sanitize_or_complete(plan: FlightPlan, tick_seconds: float = SECONDS_PER_TICK) -> bool:
    """Collapse a numerically corrupted plan into a safe, arrived state.

    A single non-finite value (typically from a persistence round-trip, or
    from a degenerate mass/thrust combination at planning time) would
    otherwise propagate through every later tick and strand the vehicle.
    When the plan is sound this is a no-op.

    The collapsed plan has a one-tick duration that has already elapsed,
    zero acceleration, velocity and burn/coast times, and
    ``distance_covered_m == total_distance_m`` (the total distance is kept
    when finite, zeroed otherwise).

    Parameters
    ----------
    plan : FlightPlan
        Plan to check and, if necessary, repair in place.
    tick_seconds : float
        Duration of one simulation tick (s).

    Returns
    -------
    bool
        ``True`` when the plan was corrupt and has been forced to arrival.
    """
    if plan.is_numerically_sound():
        return False

    logger.warning(
        "Flight plan %s -> %s has non-finite or unusable values; forcing arrival.",
        plan.origin_id, plan.destination_id,
    )
    distance = plan.total_distance_m
    if not (_is_finite_number(distance) and distance >= 0.0):
        distance = 0.0

    plan.total_distance_m = float(distance)
    plan.distance_covered_m = float(distance)
    plan.current_velocity_m_s = 0.0
    plan.phase = FlightPhase.DECELERATING
    plan.burn_time_s = 0.0
    plan.coast_time_s = 0.0
    plan.acceleration_m_s2 = 0.0
    plan.total_time_s = float(tick_seconds)
    plan.elapsed_time_s = float(tick_seconds)
    plan.burn_fraction = clamp_burn_fraction(plan.burn_fraction)
    for name in ("origin_km", "destination_km"):
        if not _is_finite_number(getattr(plan, name)):
            setattr(plan, name, 0.0)
    for name in _OPTIONAL_TIME_FIELDS:
        value = getattr(plan, name)
        if value is not None and not _is_finite_number(value):
            setattr(plan, name, None)
    for name in _POSITION_FIELDS:
        pos = getattr(plan, name)
        if pos is not None and not _is_valid_position(pos):
            setattr(plan, name, None)
    if plan.intercept_pos is not None:
        plan.ship_pos = plan.intercept_pos.copy()
    return True


def _is_finite_number(value: Any) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def _finite_or_none(value: Any) -> Optional[float]:
    if value is None or not _is_finite_number(value):
        return None
    return float(value)


def _float_or_nan(value: Any) -> float:
    if value is None:
        return float("nan")
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


def _position_or_nan(value: Any) -> np.ndarray:
    try:
        pos = np.array([_float_or_nan(v) for v in value], dtype=np.float64)
    except TypeError:
        return np.full(2, np.nan)
    if pos.shape != (2,):
        return np.full(2, np.nan)
    return pos


def _is_valid_position(pos: Any) -> bool:
    return np.shape(pos) == (2,) and bool(np.all(np.isfinite(pos)))
