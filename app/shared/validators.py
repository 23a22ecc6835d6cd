"""Shared validation utilities"""

import re
import uuid
from datetime import datetime, timedelta
from typing import Optional

from ..config import MAX_BOOKING_DAYS_AHEAD, SERVICE_HOURS_END, SERVICE_HOURS_START


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def validate_pincode(pincode: Optional[str]) -> str:
    """
    Validate an Indian postal pincode.

    Raises:
        ValueError: If pincode is not exactly 6 digits
    """
    pincode = (pincode or "").strip()
    if not re.fullmatch(r"\d{6}", pincode):
        raise ValueError("Pincode must be 6 digits")
    return pincode


def validate_booking_datetime(booking: datetime, now: Optional[datetime] = None) -> datetime:
    """
    Validate the requested service slot.

    Rules:
    - must be in the future
    - within service hours (08:00 to 20:00 by default)
    - no more than 30 days ahead

    Raises:
        ValueError: With a customer-facing message
    """
    now = now or datetime.now()

    if booking < now:
        if booking.date() == now.date():
            raise ValueError("Please select a future time for today's bookings")
        raise ValueError("Please select a future date")

    if booking.hour < SERVICE_HOURS_START or booking.hour >= SERVICE_HOURS_END:
        raise ValueError(
            f"Our service hours are between {SERVICE_HOURS_START}:00 and {SERVICE_HOURS_END}:00"
        )

    if booking > now + timedelta(days=MAX_BOOKING_DAYS_AHEAD):
        raise ValueError(f"Bookings can only be made up to {MAX_BOOKING_DAYS_AHEAD} days in advance")

    return booking
