"""
===============================================================================
FLIGHT ENGINE - Physical and Simulation Constants
===============================================================================
Central repository for the constants shared by the orbital model, the
propulsion model, the flight planner and the flight integrator.

Units: positions and orbital radii in kilometres, flight distances in
metres, time in simulated seconds, masses in kilograms, angles in radians.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
KM_TO_M = 1000.0
M_TO_KM = 1.0 / KM_TO_M

# =============================================================================
# PROPULSION
# =============================================================================
G0 = 9.81                              # Standard gravity for Isp (m/s^2)

# Fallback Isp assumes a 3:1 reaction-mass ratio, i.e. wet/dry = 4
FALLBACK_MASS_RATIO = 4.0

# Share of the available delta-v a single leg may spend (the rest is kept
# for the return / deceleration margin)
LEG_DELTA_V_SHARE = 0.5

BURN_FRACTION_MIN = 0.1
BURN_FRACTION_MAX = 1.0

# =============================================================================
# VEHICLE MASS MODEL
# =============================================================================
CREW_MASS_KG = 80.0                    # per crew member
CARGO_ITEM_MASS_KG = 10.0              # per cargo item
FUEL_CARGO_SPLIT = 0.7                 # fuel share of the shared cargo volume
CONSUMABLE_FRACTION = 0.3              # cargo share reserved for consumables
PROVISIONS_KG_PER_CREW_PER_DAY = 15.0

# =============================================================================
# TIME
# =============================================================================
SECONDS_PER_TICK = 180.0               # one fixed simulation quantum
SECONDS_PER_DAY = 86400.0
DAYS_PER_YEAR = 365.0

# =============================================================================
# INTERCEPT SOLVER
# =============================================================================
SOLVER_ITERATIONS = 10
SOLVER_DIVERGENCE_TOLERANCE = 1e-3     # relative change between last passes

# =============================================================================
# WORLD
# =============================================================================
DEFAULT_REFERENCE_BODY_ID = "earth"
