"""
===============================================================================
FLIGHT ENGINE - Dynamics Module
===============================================================================
Closed-form models of how bodies and vehicles move.

Submodules:
    orbital_mechanics -- Circular orbit positions, parent chains, co-moving frames
    propulsion        -- Mass model, rocket equation, Isp, fuel and range
===============================================================================
"""
