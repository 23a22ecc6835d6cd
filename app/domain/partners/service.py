"""Partner service - Order acceptance, fulfilment updates and partner removal"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import Forbidden, Internal, NotFound, PolicyViolation
from ...models import Order, Partner
from ...utils.time_utils import format_datetime, utcnow
from ..orders.lifecycle import OrderStatus
from ..orders.repository import OrderRepository
from ..orders.service import advance_order, commit_or_raise, load_order, serialize_order
from .repository import PartnerRepository
from .schemas import PartnerStatusUpdate

logger = logging.getLogger(__name__)


def serialize_partner_order(order: Order) -> dict:
    """Order as shown on the partner dashboard"""
    data = serialize_order(order)
    data.update(
        {
            "serviceName": order.service.name if order.service else None,
            "bookingDate": order.booking_date.date().isoformat(),
            "bookingTime": order.booking_time,
            "address": order.address,
            "pincode": order.pincode,
            "remarks": order.remarks,
        }
    )
    return data


class PartnerService:
    """Service layer for partner-side order operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PartnerRepository()
        self.orders = OrderRepository()

    def list_pending_orders(self, partner: Partner) -> list[dict]:
        orders = self.orders.get_pending_orders_for_partner(self.db, partner)
        return [serialize_partner_order(order) for order in orders]

    def list_orders(self, partner: Partner) -> list[dict]:
        orders = self.orders.get_orders_for_partner(self.db, partner.id)
        return [serialize_partner_order(order) for order in orders]

    def accept_order(self, order_id: str, partner: Partner) -> dict:
        """
        Claim a PENDING order. The UPDATE is guarded on partner_id IS NULL,
        so when several partners accept at once exactly one wins.
        """
        order = load_order(self.db, order_id)

        if not self.repo.covers_order(self.db, partner.id, order):
            raise Forbidden("Order is outside your service area")

        if order.status != OrderStatus.PENDING or order.partner_id is not None:
            raise PolicyViolation(
                "Order is no longer available",
                details={"status": order.status},
            )

        now = utcnow()
        updated = self.orders.transition(
            self.db,
            order,
            [OrderStatus.PENDING],
            OrderStatus.ACCEPTED,
            require_unassigned=True,
            partner_id=partner.id,
            accepted_at=now,
        )
        if not updated:
            self.db.rollback()
            logger.info(f"🚫 Partner {partner.id} lost the race for order {order_id}")
            raise PolicyViolation("Order is no longer available")
        commit_or_raise(self.db, "accept order")

        logger.info(f"✅ Order {order.public_id}: PENDING → ACCEPTED (partner {partner.id})")
        return {"order": serialize_order(order), "timestamp": format_datetime(now)}

    def update_status(self, data: PartnerStatusUpdate, partner: Partner) -> dict:
        order = load_order(self.db, data.orderId)
        if order.partner_id != partner.id:
            raise Forbidden("Order is not assigned to you")

        advance_order(self.db, order, data.status, data.paymentOrderId, actor=f"partner {partner.id}")
        return {"order": serialize_order(order), "timestamp": format_datetime(utcnow())}

    def remove_partner(self, partner_id: int) -> dict:
        """
        Delete a partner in one transaction: open orders are cancelled and
        unassigned, finished orders keep their history without the partner
        link, and the partner's service and pincode links go with it.
        """
        partner = self.repo.get_partner(self.db, partner_id)
        if not partner:
            raise NotFound("Partner not found", details={"partnerId": partner_id})

        now = utcnow()
        try:
            cancelled = self.repo.cancel_open_orders(self.db, partner.id, now)
            detached = self.repo.detach_orders(self.db, partner.id)
            self.repo.delete_partner(self.db, partner)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to delete partner {partner_id}: {e}")
            raise Internal("Failed to delete partner") from e
        commit_or_raise(self.db, "delete partner")

        logger.info(
            f"🗑️ Partner {partner_id} deleted: {cancelled} orders cancelled, "
            f"{detached} completed orders detached"
        )
        return {
            "partnerId": partner_id,
            "cancelledOrders": cancelled,
            "detachedOrders": detached,
            "timestamp": format_datetime(now),
        }
