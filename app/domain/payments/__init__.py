"""Payments domain - Razorpay webhook and order completion"""

from .router import router

__all__ = ["router"]
