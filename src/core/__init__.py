"""
===============================================================================
FLIGHT ENGINE - Core
===============================================================================
Constants, configuration loading, catalogs and the shared data records.
===============================================================================
"""
