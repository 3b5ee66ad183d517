"""
Booking routers.
- /api/bookings/checkout - Cart to bookings plus payment initiation
- /api/bookings/* - The caller's bookings
"""

from .routes import router

__all__ = ["router"]
