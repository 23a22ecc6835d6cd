"""Orders domain - Booking, status lifecycle and customer cancellation"""

from .router import router

__all__ = ["router"]
