"""
===============================================================================
FLIGHT ENGINE - Propulsion Model
===============================================================================
Mass, delta-v, specific impulse and propellant arithmetic for vehicles
flying burn-coast-burn profiles.

The governing relation is the Tsiolkovsky rocket equation

    dv = Isp * g0 * ln(m_wet / m_dry)

and its inverse

    m_fuel = m_dry * (exp(dv / (Isp * g0)) - 1)

Vehicle masses are never cached: crew, cargo and fuel change between
calls, so :class:`PropulsionModel` derives a fresh :class:`PropulsionState`
from the vehicle and the engine / hull catalogs every time one is needed.

Sign conventions and units:
    - Masses in kg, thrust in N, velocities in m/s, distances in m unless
      the name says km.
    - Specific impulse (Isp) in seconds.
    - g0 = 9.81 m/s^2.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from core.catalogs import Catalog, EngineDefinition, HullClass
from core.constants import (
    CARGO_ITEM_MASS_KG,
    CONSUMABLE_FRACTION,
    CREW_MASS_KG,
    FALLBACK_MASS_RATIO,
    FUEL_CARGO_SPLIT,
    G0,
    KM_TO_M,
    LEG_DELTA_V_SHARE,
    PROVISIONS_KG_PER_CREW_PER_DAY,
    SECONDS_PER_DAY,
    SECONDS_PER_TICK,
)
from core.data_structures import DriveState, Vehicle, clamp_burn_fraction

logger = logging.getLogger(__name__)

# Canonical Isp (s) by propulsion family keyword, checked in order
FAMILY_SPECIFIC_IMPULSE: Tuple[Tuple[str, float], ...] = (
    ("Chemical", 450.0),          # LOX/LH2 bipropellant
    ("Fission", 900.0),           # nuclear thermal rocket
    ("Fusion (D-D)", 50000.0),
    ("Fusion (D-He3)", 100000.0),
    ("Military", 200000.0),
)


# =============================================================================
# ROCKET EQUATION
# =============================================================================

def delta_v(wet_mass: float, dry_mass: float, specific_impulse: float) -> float:
    """
    Tsiolkovsky rocket equation.

        dv = Isp * g0 * ln(m_wet / m_dry)

    Returns 0 when ``wet_mass <= dry_mass`` (no usable propellant) or the
    dry mass is not positive.
    """
    if wet_mass <= dry_mass or dry_mass <= 0.0:
        return 0.0
    return float(specific_impulse * G0 * np.log(wet_mass / dry_mass))


def fuel_mass_required(dry_mass: float, required_delta_v: float, specific_impulse: float) -> float:
    """
    Propellant mass (kg) needed to give ``dry_mass`` a velocity change of
    ``required_delta_v``.

        m_fuel = m_dry * (exp(dv / (Isp * g0)) - 1)

    Returns 0 for non-positive inputs.
    """
    if required_delta_v <= 0.0 or specific_impulse <= 0.0 or dry_mass <= 0.0:
        return 0.0
    mass_ratio = np.exp(required_delta_v / (specific_impulse * G0))
    return float(dry_mass * (mass_ratio - 1.0))


def specific_impulse(engine: EngineDefinition) -> float:
    """
    Isp (s) of an engine.

    Known propulsion families use their canonical value.  Anything else is
    derived from the rated delta-v assuming a 3:1 reaction-mass ratio
    (wet/dry = 4):

        Isp = max_dv / (g0 * ln 4)
    """
    for keyword, isp in FAMILY_SPECIFIC_IMPULSE:
        if keyword in engine.family:
            return isp
    return float(engine.max_delta_v / (G0 * np.log(FALLBACK_MASS_RATIO)))


def fuel_flow_rate(thrust: float, isp: float) -> float:
    """Propellant mass flow (kg/s) while burning: dm/dt = F / (Isp * g0)."""
    if isp <= 0.0:
        return 0.0
    return float(thrust / (isp * G0))


# =============================================================================
# HULL VOLUME AND ENDURANCE
# =============================================================================

def fuel_tank_capacity(cargo_capacity: float) -> float:
    """Fuel tankage (kg): fuel and cargo share the hull volume 70/30."""
    return cargo_capacity * FUEL_CARGO_SPLIT


def available_cargo_capacity(cargo_capacity: float) -> float:
    """Cargo (kg) left after the fuel allocation."""
    return cargo_capacity * (1.0 - FUEL_CARGO_SPLIT)


def mission_endurance_sec(hull: HullClass) -> float:
    """
    Endurance (s) from consumables: 30 % of cargo capacity eaten at
    15 kg per crew member per day by a full crew.
    """
    if hull.max_crew <= 0:
        return float("inf")
    consumables_kg = hull.cargo_capacity * CONSUMABLE_FRACTION
    endurance_days = consumables_kg / (hull.max_crew * PROVISIONS_KG_PER_CREW_PER_DAY)
    return endurance_days * SECONDS_PER_DAY


def max_range_km(hull: HullClass, engine: EngineDefinition) -> float:
    """
    Maximum one-way range (km) with a full tank, limited by endurance.

    Half of the full-tank delta-v is allocated to the leg, cruise speed is
    half of that allocation, and acceleration is taken at full load:

        burn-coast-burn:    R = a * t_b^2 + v_cruise * (E - 2 t_b)
        endurance-limited:  R = a * E^2 / 4        (when E <= 2 t_b)
    """
    dry = hull.mass
    wet = dry + fuel_tank_capacity(hull.cargo_capacity)
    if wet <= 0.0 or engine.thrust <= 0.0:
        return 0.0

    allocated = LEG_DELTA_V_SHARE * delta_v(wet, dry, specific_impulse(engine))
    v_cruise = allocated / 2.0
    acceleration = engine.thrust / wet
    burn_time = v_cruise / acceleration
    endurance = mission_endurance_sec(hull)

    if endurance <= 2.0 * burn_time:
        range_m = 0.25 * acceleration * endurance * endurance
    else:
        coast_time = endurance - 2.0 * burn_time
        range_m = acceleration * burn_time * burn_time + v_cruise * coast_time
    return range_m / KM_TO_M


def warmup_delay_sec(engine: EngineDefinition, tick_seconds: float = SECONDS_PER_TICK) -> float:
    """Time (s) an engine needs to come online from cold."""
    if engine.warmup_rate <= 0.0:
        return 0.0
    return float(np.ceil(100.0 / engine.warmup_rate)) * tick_seconds


# =============================================================================
# PROPULSION STATE
# =============================================================================

@dataclass(frozen=True)
class PropulsionState:
    """
    Snapshot of a vehicle's propulsion, derived on demand.

    Attributes
    ----------
    dry_mass : float
        Everything except fuel (kg).
    fuel_mass : float
        Propellant on board (kg).
    thrust : float
        Engine thrust (N).
    specific_impulse : float
        Engine Isp (s).
    max_delta_v : float
        Engine's rated delta-v (m/s).
    """
    dry_mass: float
    fuel_mass: float
    thrust: float
    specific_impulse: float
    max_delta_v: float

    @property
    def current_mass(self) -> float:
        return self.dry_mass + self.fuel_mass

    @property
    def available_delta_v(self) -> float:
        return delta_v(self.current_mass, self.dry_mass, self.specific_impulse)

    @property
    def acceleration(self) -> float:
        """Acceleration (m/s^2) at the current mass."""
        if self.current_mass <= 0.0:
            return 0.0
        return self.thrust / self.current_mass

    def leg_delta_v_budget(self, burn_fraction: float = 1.0) -> float:
        """
        Delta-v a single leg may spend.

            budget = min(0.5 * available_dv, 0.5 * rated_dv) * burn_fraction
        """
        cap = min(
            LEG_DELTA_V_SHARE * self.available_delta_v,
            LEG_DELTA_V_SHARE * self.max_delta_v,
        )
        return cap * clamp_burn_fraction(burn_fraction)


class PropulsionModel:
    """
    Vehicle-level propulsion queries backed by the engine and hull catalogs.

    The model holds no vehicle state; every method recomputes from the
    vehicle record it is given.  Unknown hull or engine ids raise
    :class:`core.catalogs.UnknownCatalogEntryError`.

    Typical usage:
        model = PropulsionModel(engines, hulls)
        state = model.propulsion_state(vehicle)
        fuel = model.one_leg_fuel_kg(vehicle, distance_km=384_400.0)
    """

    def __init__(self, engines: Catalog, hulls: Catalog) -> None:
        self.engines = engines
        self.hulls = hulls

    # -------------------------------------------------------------------------
    # Catalog access
    # -------------------------------------------------------------------------

    def hull_of(self, vehicle: Vehicle) -> HullClass:
        return self.hulls[vehicle.hull_id]

    def engine_of(self, vehicle: Vehicle) -> EngineDefinition:
        return self.engines[vehicle.engine.definition_id]

    # -------------------------------------------------------------------------
    # Mass
    # -------------------------------------------------------------------------

    def dry_mass(self, vehicle: Vehicle) -> float:
        """Hull + crew + cargo + provisions (kg).  Recomputed on every call."""
        hull = self.hull_of(vehicle)
        cargo_mass = sum(
            CARGO_ITEM_MASS_KG if item.mass_kg is None else item.mass_kg
            for item in vehicle.cargo
        )
        return (
            hull.mass
            + len(vehicle.crew) * CREW_MASS_KG
            + cargo_mass
            + (vehicle.provisions_kg or 0.0)
        )

    def current_mass(self, vehicle: Vehicle) -> float:
        return self.dry_mass(vehicle) + vehicle.fuel_kg

    def propulsion_state(self, vehicle: Vehicle) -> PropulsionState:
        engine = self.engine_of(vehicle)
        return PropulsionState(
            dry_mass=self.dry_mass(vehicle),
            fuel_mass=max(0.0, vehicle.fuel_kg),
            thrust=engine.thrust,
            specific_impulse=specific_impulse(engine),
            max_delta_v=engine.max_delta_v,
        )

    def available_cargo(self, vehicle: Vehicle) -> float:
        """Cargo capacity (kg) left for freight after fuel and provisions."""
        hull = self.hull_of(vehicle)
        return max(0.0, available_cargo_capacity(hull.cargo_capacity) - (vehicle.provisions_kg or 0.0))

    # -------------------------------------------------------------------------
    # Leg fuel estimate
    # -------------------------------------------------------------------------

    def one_leg_fuel_kg(self, vehicle: Vehicle, distance_km: float, burn_fraction: float = 1.0) -> float:
        """
        Fuel (kg) one leg of ``distance_km`` will consume.

        The no-coast (brachistochrone) delta-v for the distance at current
        mass, dv_b = 2 * sqrt(d * a), is compared with the per-leg budget;
        the smaller one is what a real flight spends, so this estimate
        matches the planner's profile exactly.
        """
        state = self.propulsion_state(vehicle)
        distance_m = max(0.0, distance_km) * KM_TO_M
        brachistochrone_dv = 2.0 * np.sqrt(distance_m * state.acceleration)
        leg_dv = min(brachistochrone_dv, state.leg_delta_v_budget(burn_fraction))
        fuel = fuel_mass_required(state.dry_mass, leg_dv, state.specific_impulse)
        logger.debug(
            "Leg fuel for %s over %.0f km: dv_b=%.1f, leg_dv=%.1f m/s -> %.1f kg",
            vehicle.id, distance_km, brachistochrone_dv, leg_dv, fuel,
        )
        return fuel

    def can_reach(self, vehicle: Vehicle, distance_km: float, burn_fraction: float = 1.0) -> bool:
        """True when the fuel on board covers one leg of ``distance_km``."""
        return self.one_leg_fuel_kg(vehicle, distance_km, burn_fraction) <= vehicle.fuel_kg

    # -------------------------------------------------------------------------
    # Engine warm-up
    # -------------------------------------------------------------------------

    def advance_warmup(self, vehicle: Vehicle) -> bool:
        """
        Advance the drive's warm-up by one tick.

        Returns True once the drive is online.
        """
        engine = vehicle.engine
        if engine.state == DriveState.ONLINE:
            return True
        if engine.state == DriveState.OFF:
            engine.state = DriveState.WARMING_UP
            engine.warmup_progress = 0.0
        rate = self.engine_of(vehicle).warmup_rate
        engine.warmup_progress = min(100.0, engine.warmup_progress + rate)
        if engine.warmup_progress >= 100.0:
            engine.state = DriveState.ONLINE
            logger.debug("Drive of %s online", vehicle.id)
            return True
        return False
