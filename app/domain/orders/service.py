"""Order service - Booking, status reads and customer cancellation"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import CURRENCY, PARTNER_WAIT_INTERVAL_SECONDS, PARTNER_WAIT_TIMEOUT_SECONDS
from ...exceptions import (
    Forbidden,
    Internal,
    InvalidTransition,
    NotFound,
    OrderNotFound,
    PolicyViolation,
    ValidationError,
)
from ...models import Order, User
from ...shared.validators import validate_booking_datetime, validate_pincode, validate_uuid
from ...utils.sanitization import validate_and_sanitize_input
from ...utils.time_utils import calculate_order_age, format_datetime, utcnow
from .cancellation import PARTNER_ASSIGNED, WITHIN_THRESHOLD, evaluate_cancellation
from .lifecycle import (
    OrderStatus,
    ensure_transition,
    get_next_required_action,
    next_status,
    parse_status,
    timestamp_field,
)
from .repository import OrderRepository
from .schemas import OrderCreate

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_order(order: Order) -> dict:
    """Flat order representation shared by every order endpoint"""
    return {
        "id": order.public_id,
        "status": order.status,
        "partnerId": order.partner_id,
        "serviceId": order.service_id,
        "amount": order.amount,
        "walletAmount": order.wallet_amount,
        "remainingAmount": order.remaining_amount,
        "currency": order.currency,
        "paymentOrderId": order.payment_order_id,
        "cancellationReason": order.cancellation_reason,
        "createdAt": _iso(order.created_at),
        "cancelledAt": _iso(order.cancelled_at),
    }


def commit_or_raise(db: Session, action: str) -> None:
    """Commit the current unit of work; roll back and hide internals on failure"""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to {action}: {e}")
        raise Internal(f"Failed to {action}") from e


class OrderService:
    """Service layer for customer-facing order operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_customer_order(self, order_id: str, user: User) -> Order:
        if not validate_uuid(order_id):
            raise ValidationError("Invalid order ID", details={"orderId": order_id})
        order = self.repo.get_order_for_user(self.db, order_id, user.id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def get_order_status(self, order_id: str, user: User) -> dict:
        """Full order view for the customer, the assigned partner, or an admin"""
        if not validate_uuid(order_id):
            raise ValidationError("Invalid order ID", details={"orderId": order_id})
        order = self.repo.get_order(self.db, order_id)
        if not order:
            raise OrderNotFound(order_id)

        is_customer = order.user_id == user.id
        is_partner = bool(order.partner and order.partner.email == user.email)
        if not (is_customer or is_partner or user.role == "admin"):
            raise Forbidden("Unauthorized to view this order")

        data = serialize_order(order)
        data.update(
            {
                "nextAction": get_next_required_action(order.status),
                "serviceDetails": {
                    "name": order.service.name,
                    "category": order.service.category,
                    "price": order.service.price,
                },
                "partnerDetails": (
                    {
                        "name": order.partner.name,
                        "phone": order.partner.phone,
                        "email": order.partner.email if is_partner else None,
                    }
                    if order.partner
                    else None
                ),
                "orderDetails": {
                    "date": order.booking_date.date().isoformat(),
                    "time": order.booking_time,
                    "address": order.address,
                    "pincode": order.pincode,
                    "remarks": order.remarks,
                },
                "timestamps": {
                    "created": _iso(order.created_at),
                    "updated": _iso(order.updated_at),
                    "accepted": _iso(order.accepted_at),
                    "started": _iso(order.started_at),
                    "serviceCompleted": _iso(order.service_completed_at),
                    "paymentRequested": _iso(order.payment_requested_at),
                    "completed": _iso(order.completed_at),
                    "cancelled": _iso(order.cancelled_at),
                    "paid": _iso(order.paid_at),
                },
            }
        )
        return data

    def list_orders(self, user: User) -> list[dict]:
        return [serialize_order(order) for order in self.repo.get_orders_for_user(self.db, user.id)]

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def create_order(self, data: OrderCreate, user: User) -> dict:
        """Create a PENDING order once booking details and partner coverage check out"""
        try:
            pincode = validate_pincode(data.pincode)
            hour, minute = (int(part) for part in data.time.split(":"))
            booking_at = datetime.combine(data.date, datetime.min.time()).replace(
                hour=hour, minute=minute
            )
            validate_booking_datetime(booking_at)
            address = validate_and_sanitize_input(data.address, max_length=500)
            remarks = validate_and_sanitize_input(data.remarks or "", max_length=1000)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        service = self.repo.get_service(self.db, data.serviceId)
        if not service:
            raise NotFound("Service not found", details={"serviceId": data.serviceId})

        eligible_partners = self.repo.get_eligible_partners(self.db, service.id, pincode)
        if not eligible_partners:
            raise PolicyViolation(
                "No service providers available",
                details={"pincode": pincode},
            )

        # Wallet is only earmarked here; it is debited when the order completes.
        # Shares already held by open orders are not available again.
        wallet = self.repo.get_wallet(self.db, user.id, for_update=True)
        earmarked = self.repo.get_earmarked_wallet_amount(self.db, user.id)
        wallet_balance = max((wallet.balance if wallet else 0) - earmarked, 0)
        wallet_use = min(wallet_balance, service.price)
        remaining = service.price - wallet_use

        order = self.repo.create_order(
            self.db,
            user,
            service_id=service.id,
            status=OrderStatus.PENDING.value,
            amount=service.price,
            wallet_amount=wallet_use,
            remaining_amount=remaining,
            currency=CURRENCY,
            booking_date=booking_at,
            booking_time=data.time,
            address=address,
            pincode=pincode,
            remarks=remarks,
        )
        self.repo.increment_service_orders(self.db, service.id)
        commit_or_raise(self.db, "create order")
        self.db.refresh(order)

        logger.info(
            f"📝 Order {order.public_id} created for user {user.id} "
            f"({len(eligible_partners)} eligible partners)"
        )

        return {
            "orderId": order.public_id,
            "status": order.status,
            "totalAmount": order.amount,
            "availableWalletBalance": wallet_balance,
            "potentialWalletUse": wallet_use,
            "remainingAmount": remaining,
            "currency": order.currency,
            "serviceDetails": {"name": service.name, "description": service.description or ""},
            "bookingDetails": {
                "date": data.date.isoformat(),
                "time": data.time,
                "address": address,
                "pincode": pincode,
            },
            "eligiblePartners": len(eligible_partners),
            "waitIntervalSeconds": PARTNER_WAIT_INTERVAL_SECONDS,
            "waitTimeoutSeconds": PARTNER_WAIT_TIMEOUT_SECONDS,
            "timestamp": format_datetime(utcnow()),
        }

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def check_cancellable(self, order_id: str, user: User) -> dict:
        """Read-only cancellation check"""
        order = self.get_customer_order(order_id, user)
        check = evaluate_cancellation(
            order.created_at, order.status, order.partner_id, order.service.threshold
        )
        return {
            "orderId": order.public_id,
            "serviceName": order.service.name,
            "isCancellable": check.is_cancellable,
            "timeRemaining": check.time_remaining_hours,
            "timeRemainingText": check.time_remaining_text,
            "thresholdHours": check.threshold_hours,
            "currentTime": format_datetime(utcnow()),
        }

    def cancel_order(self, order_id: str, user: User) -> dict:
        """
        Customer cancellation.

        The policy is evaluated again here (the check endpoint may be stale)
        and the UPDATE itself is guarded on PENDING + unassigned, so a partner
        accepting concurrently always wins over a late cancel.
        """
        order = self.get_customer_order(order_id, user)
        check = evaluate_cancellation(
            order.created_at, order.status, order.partner_id, order.service.threshold
        )

        if not check.is_cancellable:
            if check.reason == WITHIN_THRESHOLD:
                raise PolicyViolation(
                    "Order is still within threshold period",
                    details={"timeRemaining": check.time_remaining_hours},
                )
            logger.info(f"🚫 Cancel rejected for order {order_id}: {check.reason}")
            raise PolicyViolation(
                "Order cannot be cancelled",
                details={"reason": check.reason, "status": order.status},
            )

        now = utcnow()
        updated = self.repo.transition(
            self.db,
            order,
            [OrderStatus.PENDING],
            OrderStatus.CANCELLED,
            require_unassigned=True,
            cancelled_at=now,
            cancellation_reason="customer_request",
        )
        if not updated:
            self.db.rollback()
            raise PolicyViolation(
                "Order cannot be cancelled",
                details={"reason": PARTNER_ASSIGNED},
            )
        commit_or_raise(self.db, "cancel order")

        logger.info(f"✅ Order {order.public_id}: PENDING → CANCELLED (customer request)")
        return {"order": serialize_order(order), "timestamp": format_datetime(now)}

    def expire_order(self, order_id: str, user: User) -> dict:
        """
        System cancellation after the partner-wait window ran out with no
        acceptance. One polling interval of slack absorbs client clock drift.
        """
        order = self.get_customer_order(order_id, user)

        if order.status != OrderStatus.PENDING or order.partner_id is not None:
            raise PolicyViolation(
                "Order is no longer waiting for a partner",
                details={"status": order.status},
            )

        min_wait = timedelta(seconds=PARTNER_WAIT_TIMEOUT_SECONDS - PARTNER_WAIT_INTERVAL_SECONDS)
        waited_hours = calculate_order_age(order.created_at)
        if waited_hours * 3600 < min_wait.total_seconds():
            raise PolicyViolation(
                "Partner wait window has not elapsed",
                details={"waitedSeconds": round(waited_hours * 3600)},
            )

        now = utcnow()
        updated = self.repo.transition(
            self.db,
            order,
            [OrderStatus.PENDING],
            OrderStatus.CANCELLED,
            require_unassigned=True,
            cancelled_at=now,
            cancellation_reason="no_partner_available",
        )
        if not updated:
            self.db.rollback()
            raise PolicyViolation("Order is no longer waiting for a partner")
        commit_or_raise(self.db, "expire order")

        logger.info(f"⏱️ Order {order.public_id}: PENDING → CANCELLED (no partner accepted)")
        return {"order": serialize_order(order), "timestamp": format_datetime(now)}


# ----------------------------------------------------------------------
# Fulfilment (shared by partner and admin endpoints)
# ----------------------------------------------------------------------


def load_order(db: Session, order_id: str) -> Order:
    """Order by public id regardless of owner; callers check access"""
    if not validate_uuid(order_id):
        raise ValidationError("Invalid order ID", details={"orderId": order_id})
    order = OrderRepository.get_order(db, order_id)
    if not order:
        raise OrderNotFound(order_id)
    return order


def advance_order(
    db: Session,
    order: Order,
    target_status: str,
    payment_order_id: Optional[str] = None,
    actor: str = "partner",
) -> Order:
    """
    Move an accepted order one fulfilment step forward.

    Steps cannot be skipped: the target must be exactly the next status of
    ACCEPTED → IN_PROGRESS → SERVICE_COMPLETED → PAYMENT_REQUESTED. Entering
    PAYMENT_REQUESTED stores the gateway order reference when one is given.
    """
    target = parse_status(target_status)
    if target is None:
        raise ValidationError("Invalid status", details={"status": target_status})

    current = order.status
    if target != next_status(current):
        raise InvalidTransition(order.public_id, current, target.value)
    ensure_transition(current, target, order.public_id)

    fields = {timestamp_field(target): utcnow()}
    if target == OrderStatus.PAYMENT_REQUESTED and payment_order_id:
        fields["payment_order_id"] = payment_order_id

    try:
        updated = OrderRepository.transition(db, order, [current], target, **fields)
    except IntegrityError as e:
        db.rollback()
        raise ValidationError(
            "Payment order ID already in use",
            details={"paymentOrderId": payment_order_id},
        ) from e

    if not updated:
        db.rollback()
        raise PolicyViolation(
            "Order status changed, please refresh",
            details={"orderId": order.public_id},
        )
    commit_or_raise(db, "update order status")

    logger.info(f"✅ Order {order.public_id}: {current} → {target.value} ({actor})")
    return order
