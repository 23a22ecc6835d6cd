"""
Order status lifecycle

PENDING → ACCEPTED → IN_PROGRESS → SERVICE_COMPLETED → PAYMENT_REQUESTED → COMPLETED
Any non-terminal status may also move to CANCELLED.

COMPLETED and CANCELLED are terminal.
"""

from enum import Enum
from typing import Optional

from ...exceptions import InvalidTransition


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    SERVICE_COMPLETED = "SERVICE_COMPLETED"
    PAYMENT_REQUESTED = "PAYMENT_REQUESTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Statuses in which an order must have a partner assigned
ASSIGNED_STATUSES = frozenset(
    {
        OrderStatus.ACCEPTED,
        OrderStatus.IN_PROGRESS,
        OrderStatus.SERVICE_COMPLETED,
        OrderStatus.PAYMENT_REQUESTED,
        OrderStatus.COMPLETED,
    }
)

# Fulfilment steps a partner or admin walks through one at a time
FULFILMENT_SEQUENCE = (
    OrderStatus.ACCEPTED,
    OrderStatus.IN_PROGRESS,
    OrderStatus.SERVICE_COMPLETED,
    OrderStatus.PAYMENT_REQUESTED,
)

VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
    OrderStatus.IN_PROGRESS: {OrderStatus.SERVICE_COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.SERVICE_COMPLETED: {OrderStatus.PAYMENT_REQUESTED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_REQUESTED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

# Column stamped with the transition time when an order enters a status
TIMESTAMP_FIELDS = {
    OrderStatus.ACCEPTED: "accepted_at",
    OrderStatus.IN_PROGRESS: "started_at",
    OrderStatus.SERVICE_COMPLETED: "service_completed_at",
    OrderStatus.PAYMENT_REQUESTED: "payment_requested_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def parse_status(value: str) -> Optional[OrderStatus]:
    """Return the OrderStatus for a raw value, or None when it is unknown"""
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if an order status transition is allowed.

    Unlike contract statuses, a no-op transition is not allowed: every
    transition here has side effects (timestamps, wallet, referral bonus).
    """
    current = parse_status(current_status)
    target = parse_status(new_status)
    if current is None or target is None:
        return False
    return target in VALID_TRANSITIONS[current]


def ensure_transition(current_status: str, new_status: str, order_id: str = "") -> None:
    """Raise InvalidTransition unless current_status → new_status is legal"""
    if not can_transition(current_status, new_status):
        raise InvalidTransition(
            order_id,
            getattr(current_status, "value", current_status),
            getattr(new_status, "value", new_status),
        )


def next_status(current_status: str) -> Optional[OrderStatus]:
    """Next fulfilment step after current_status, None past PAYMENT_REQUESTED"""
    current = parse_status(current_status)
    if current not in FULFILMENT_SEQUENCE:
        return None
    index = FULFILMENT_SEQUENCE.index(current)
    if index + 1 >= len(FULFILMENT_SEQUENCE):
        return None
    return FULFILMENT_SEQUENCE[index + 1]


def timestamp_field(new_status: str) -> Optional[str]:
    status = parse_status(new_status)
    return TIMESTAMP_FIELDS.get(status) if status else None


def get_next_required_action(status: str) -> str:
    """Describe what has to happen next for an order in this status"""
    actions = {
        OrderStatus.PENDING: "Waiting for a partner to accept the order",
        OrderStatus.ACCEPTED: "Partner will start the service at the booked time",
        OrderStatus.IN_PROGRESS: "Service in progress",
        OrderStatus.SERVICE_COMPLETED: "Partner needs to request payment",
        OrderStatus.PAYMENT_REQUESTED: "Waiting for customer payment",
        OrderStatus.COMPLETED: "Service completed",
        OrderStatus.CANCELLED: "Order was cancelled",
    }
    parsed = parse_status(status)
    return actions.get(parsed, "Unknown status") if parsed else "Unknown status"
