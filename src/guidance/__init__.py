"""
===============================================================================
FLIGHT ENGINE - Guidance Package
===============================================================================
Where to aim and how long it takes to get there.

Modules:
    intercept_solver  : Fixed-point solve for a moving destination's arrival
                        time and intercept point
    flight_planner    : Burn/coast/burn plans, flight start and redirect gates
    launch_window     : Alignment rating and next close approach
===============================================================================
"""
