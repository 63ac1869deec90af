"""
===============================================================================
FLIGHT ENGINE - Simulation Package
===============================================================================
Fixed-tick flight propagation.

Modules:
    flight_integrator : Advances one flight plan by one tick, closed form
    sim_engine        : Multi-vehicle tick driver with pandas telemetry
===============================================================================
"""
