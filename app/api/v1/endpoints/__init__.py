"""
API endpoints module
"""

from . import trips, bookings, admin, health

__all__ = [
    "trips",
    "bookings",
    "admin",
    "health"
]
