"""Payment service - Order completion, webhook dispatch and checkout verification"""

import json
import logging
from typing import Optional

import pydantic
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import (
    Internal,
    NotFound,
    OrderNotFound,
    PolicyViolation,
    ServiceError,
    ValidationError,
)
from ...models import Order, User
from ...utils.time_utils import format_datetime, utcnow
from ...webhook_security import verify_payment_signature
from ..orders.lifecycle import OrderStatus, ensure_transition
from ..orders.repository import OrderRepository
from ..orders.service import serialize_order
from ..wallet.referral_service import credit_referral_bonus, get_referral_bonus_amount
from ..wallet.repository import WalletRepository
from .schemas import (
    PaymentCapturedEvent,
    PaymentEntity,
    PaymentFailedEvent,
    PaymentVerifyRequest,
    parse_webhook_event,
)

logger = logging.getLogger(__name__)


def _settle_wallet(db: Session, order: Order, strict: bool = True) -> float:
    """
    Debit the wallet share earmarked at booking. Returns the amount debited.

    With strict=False (a payment the gateway already captured) a short wallet
    never blocks completion: whatever is left is debited and the gap is logged.
    """
    if not order.wallet_amount or order.wallet_amount <= 0:
        return 0
    if WalletRepository.has_order_transaction(db, order.id, "DEBIT"):
        return 0

    wallet = WalletRepository.get_wallet(db, order.user_id)
    balance = wallet.balance if wallet else 0
    amount = order.wallet_amount
    if balance < amount:
        if strict:
            raise PolicyViolation(
                "Insufficient wallet balance",
                details={
                    "orderId": order.public_id,
                    "walletAmount": order.wallet_amount,
                    "balance": balance,
                },
            )
        logger.error(
            f"❌ Wallet short for order {order.public_id}: "
            f"needed {order.wallet_amount}, had {balance}"
        )
        amount = max(balance, 0)
        if not amount:
            return 0

    WalletRepository.adjust_balance(db, wallet, -amount)
    WalletRepository.add_transaction(
        db,
        wallet,
        amount,
        "DEBIT",
        f"Wallet payment for {order.service.name}",
        order_id=order.id,
    )
    return amount


def complete_order(
    db: Session,
    order: Order,
    payment_id: Optional[str] = None,
    source: str = "webhook",
    strict_wallet: bool = True,
) -> dict:
    """
    PAYMENT_REQUESTED → COMPLETED in one transaction.

    Debits the wallet share, stamps payment fields, and credits the referral
    bonus when this is the customer's first completed order. An order that is
    already COMPLETED is acknowledged without touching anything, so gateway
    retries never pay a second bonus.

    Pass strict_wallet=False for payments the gateway already captured; a
    short wallet is then logged instead of failing the completion.
    """
    if order.status == OrderStatus.COMPLETED:
        logger.info(f"🔁 Order {order.public_id} already completed, ignoring {source} retry")
        return {"order": serialize_order(order), "alreadyProcessed": True}

    ensure_transition(order.status, OrderStatus.COMPLETED, order.public_id)

    # Read once per unit of work and passed down explicitly
    bonus_amount = get_referral_bonus_amount(db)
    now = utcnow()

    try:
        # Serializes completions of the same customer's orders
        OrderRepository.lock_customer(db, order.user_id)
        updated = OrderRepository.transition(
            db,
            order,
            [OrderStatus.PAYMENT_REQUESTED],
            OrderStatus.COMPLETED,
            completed_at=now,
            paid_at=now,
            payment_id=payment_id or order.payment_id,
        )
        if not updated:
            raise PolicyViolation(
                "Order is not awaiting payment",
                details={"orderId": order.public_id},
            )

        wallet_debited = _settle_wallet(db, order, strict=strict_wallet)
        bonus = None
        # Counted after the transition, so this order is included
        if OrderRepository.count_completed_orders(db, order.user_id) == 1:
            bonus = credit_referral_bonus(db, order.user_id, bonus_amount, order_id=order.id)
        db.commit()
    except ServiceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to complete order {order.public_id}: {e}")
        raise Internal("Failed to complete order") from e

    db.refresh(order)
    logger.info(f"✅ Order {order.public_id}: PAYMENT_REQUESTED → COMPLETED ({source})")
    return {
        "order": serialize_order(order),
        "alreadyProcessed": False,
        "walletDebited": wallet_debited,
        "referralBonus": bonus.amount if bonus else 0,
        "timestamp": format_datetime(now),
    }


class PaymentService:
    """Service layer for payment gateway callbacks"""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository()

    def _find_order(self, payment: PaymentEntity) -> Order:
        order = None
        if payment.order_id:
            order = self.orders.get_order_by_payment_order_id(self.db, payment.order_id)
        if order is None and payment.notes.get("orderId"):
            order = self.orders.get_order(self.db, str(payment.notes["orderId"]))
        if order is None:
            logger.error(f"❌ No order for payment {payment.id} (gateway order {payment.order_id})")
            raise NotFound("Order not found", details={"paymentOrderId": payment.order_id})
        return order

    def handle_webhook(self, raw_body: bytes) -> dict:
        """Dispatch a verified webhook body"""
        try:
            data = json.loads(raw_body)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload") from e
        if not isinstance(data, dict):
            raise ValidationError("Invalid webhook payload")

        try:
            event = parse_webhook_event(data)
        except pydantic.ValidationError as e:
            logger.error(f"❌ Malformed {data.get('event')} webhook: {e}")
            raise ValidationError("Invalid webhook payload", details={"event": data.get("event")}) from e

        logger.info(f"📥 Payment webhook received: {event.event}")

        if isinstance(event, PaymentCapturedEvent):
            return self._handle_captured(event)

        if isinstance(event, PaymentFailedEvent):
            payment = event.payment
            logger.warning(
                f"⚠️ Payment {payment.id} failed for gateway order {payment.order_id}: "
                f"{payment.error_description}"
            )
            return {"event": event.event, "processed": False}

        logger.info(f"ℹ️ Webhook event {event.event} received but not processed")
        return {"event": event.event, "processed": False}

    def _handle_captured(self, event: PaymentCapturedEvent) -> dict:
        payment = event.payment
        order = self._find_order(payment)

        if payment.amount is not None and order.status != OrderStatus.COMPLETED:
            expected = round(order.remaining_amount * 100)
            if payment.amount != expected:
                logger.error(
                    f"❌ Captured amount {payment.amount} does not match order "
                    f"{order.public_id} ({expected})"
                )
                raise PolicyViolation(
                    "Payment amount does not match order",
                    details={"orderId": order.public_id},
                )

        result = complete_order(
            self.db, order, payment_id=payment.id, source="webhook", strict_wallet=False
        )
        return {"event": event.event, "processed": True, **result}

    def verify_checkout(self, data: PaymentVerifyRequest, user: User) -> dict:
        """
        Check the checkout callback signature and record the payment id.
        Completion itself happens when the payment.captured webhook arrives.
        """
        order = self.orders.get_order_for_user(self.db, data.orderId, user.id)
        if not order:
            raise OrderNotFound(data.orderId)
        if order.payment_order_id != data.razorpayOrderId:
            raise ValidationError("Payment does not belong to this order")

        if not verify_payment_signature(
            data.razorpayOrderId, data.razorpayPaymentId, data.razorpaySignature
        ):
            logger.warning(f"🚫 Invalid checkout signature for order {order.public_id}")
            raise ValidationError("Invalid signature")

        if order.status != OrderStatus.COMPLETED:
            order.payment_id = data.razorpayPaymentId
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"❌ Failed to record payment for order {order.public_id}: {e}")
                raise Internal("Failed to verify payment") from e

        logger.info(f"✅ Checkout payment verified for order {order.public_id}")
        return {
            "orderId": order.public_id,
            "paymentId": data.razorpayPaymentId,
            "status": order.status,
            "serviceName": order.service.name,
            "timestamp": format_datetime(utcnow()),
        }
