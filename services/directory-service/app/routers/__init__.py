"""
API routers for directory service endpoints.
"""

from . import health_router, records_router

__all__ = ["records_router", "health_router"]
