"""
Customer cancellation policy

An order may be cancelled by its customer only while it is still PENDING,
no partner has accepted it, and it has waited at least the service's
threshold (hours). Pure functions, no database access.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...config import DEFAULT_THRESHOLD_HOURS
from ...utils.time_utils import calculate_order_age, format_time_remaining
from .lifecycle import OrderStatus

NOT_PENDING = "not_pending"
PARTNER_ASSIGNED = "partner_assigned"
WITHIN_THRESHOLD = "within_threshold"


@dataclass(frozen=True)
class CancellationCheck:
    is_cancellable: bool
    order_age_hours: float
    threshold_hours: float
    time_remaining_hours: float
    reason: Optional[str] = None

    @property
    def time_remaining_text(self) -> str:
        return format_time_remaining(self.time_remaining_hours)


def resolve_threshold(threshold_hours: Optional[float]) -> float:
    """Service threshold in hours; unset or non-positive falls back to the default"""
    if threshold_hours is None:
        return DEFAULT_THRESHOLD_HOURS
    value = float(threshold_hours)
    return value if value > 0 else DEFAULT_THRESHOLD_HOURS


def evaluate_cancellation(
    created_at: datetime,
    status: str,
    partner_id: Optional[int],
    threshold_hours: Optional[float],
    now: Optional[datetime] = None,
) -> CancellationCheck:
    """
    Decide whether a customer may cancel an order right now.

    Args:
        created_at: Order creation time (naive UTC)
        status: Current order status
        partner_id: Assigned partner, None while unassigned
        threshold_hours: Service threshold; None/0 means the default (2h)
        now: Evaluation time, defaults to utcnow()

    Returns:
        CancellationCheck; time_remaining_hours is rounded to 2 decimals
    """
    threshold = resolve_threshold(threshold_hours)
    order_age = calculate_order_age(created_at, now)
    time_remaining = round(max(0.0, threshold - order_age), 2)

    if status != OrderStatus.PENDING:
        reason = NOT_PENDING
    elif partner_id is not None:
        reason = PARTNER_ASSIGNED
    elif order_age < threshold:
        reason = WITHIN_THRESHOLD
    else:
        reason = None

    return CancellationCheck(
        is_cancellable=reason is None,
        order_age_hours=order_age,
        threshold_hours=threshold,
        time_remaining_hours=time_remaining,
        reason=reason,
    )
