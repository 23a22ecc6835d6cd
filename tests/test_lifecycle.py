import pytest

from app.domain.orders.lifecycle import (
    OrderStatus,
    can_transition,
    ensure_transition,
    get_next_required_action,
    is_terminal,
    next_status,
    timestamp_field,
)
from app.exceptions import InvalidTransition, PolicyViolation

NON_TERMINAL = [
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.IN_PROGRESS,
    OrderStatus.SERVICE_COMPLETED,
    OrderStatus.PAYMENT_REQUESTED,
]


@pytest.mark.parametrize(
    "current,target",
    [
        ("PENDING", "ACCEPTED"),
        ("ACCEPTED", "IN_PROGRESS"),
        ("IN_PROGRESS", "SERVICE_COMPLETED"),
        ("SERVICE_COMPLETED", "PAYMENT_REQUESTED"),
        ("PAYMENT_REQUESTED", "COMPLETED"),
    ],
)
def test_forward_transitions_are_allowed(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("PENDING", "IN_PROGRESS"),
        ("ACCEPTED", "SERVICE_COMPLETED"),
        ("IN_PROGRESS", "PAYMENT_REQUESTED"),
        ("SERVICE_COMPLETED", "COMPLETED"),
        ("ACCEPTED", "PENDING"),
        ("PENDING", "COMPLETED"),
    ],
)
def test_skipping_or_going_back_is_rejected(current, target):
    assert not can_transition(current, target)


@pytest.mark.parametrize("status", NON_TERMINAL)
def test_every_non_terminal_status_can_be_cancelled(status):
    assert can_transition(status, OrderStatus.CANCELLED)


@pytest.mark.parametrize("status", ["COMPLETED", "CANCELLED"])
def test_terminal_statuses_have_no_exits(status):
    assert is_terminal(status)
    for target in OrderStatus:
        assert not can_transition(status, target)


def test_same_status_and_unknown_values_are_rejected():
    assert not can_transition("PENDING", "PENDING")
    assert not can_transition("PENDING", "SHIPPED")
    assert not can_transition("PAYMENT_COMPLETED", "COMPLETED")


def test_ensure_transition_raises_policy_violation():
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition("COMPLETED", OrderStatus.CANCELLED, "o-1")

    assert isinstance(exc_info.value, PolicyViolation)
    assert exc_info.value.details == {
        "orderId": "o-1",
        "currentStatus": "COMPLETED",
        "targetStatus": "CANCELLED",
    }


def test_next_status_walks_the_fulfilment_sequence():
    assert next_status("PENDING") is None
    assert next_status("ACCEPTED") == OrderStatus.IN_PROGRESS
    assert next_status("IN_PROGRESS") == OrderStatus.SERVICE_COMPLETED
    assert next_status("SERVICE_COMPLETED") == OrderStatus.PAYMENT_REQUESTED
    assert next_status("PAYMENT_REQUESTED") is None
    assert next_status("COMPLETED") is None


def test_timestamp_fields():
    assert timestamp_field("ACCEPTED") == "accepted_at"
    assert timestamp_field("IN_PROGRESS") == "started_at"
    assert timestamp_field("CANCELLED") == "cancelled_at"
    assert timestamp_field("bogus") is None


def test_next_required_action():
    assert get_next_required_action("PAYMENT_REQUESTED") == "Waiting for customer payment"
    assert get_next_required_action("bogus") == "Unknown status"
