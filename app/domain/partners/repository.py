"""Partner repository - Database operations for partners and their orders"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Order, Partner, PartnerPincode, PartnerService
from ..orders.lifecycle import OrderStatus, TERMINAL_STATUSES


class PartnerRepository:
    """Repository for partner database operations"""

    @staticmethod
    def get_partner(db: Session, partner_id: int) -> Optional[Partner]:
        return db.query(Partner).filter(Partner.id == partner_id).first()

    @staticmethod
    def covers_order(db: Session, partner_id: int, order: Order) -> bool:
        """True if the partner offers the order's service in the order's pincode"""
        offers_service = (
            db.query(PartnerService.id)
            .filter(
                PartnerService.partner_id == partner_id,
                PartnerService.service_id == order.service_id,
                PartnerService.is_active.is_(True),
            )
            .first()
        )
        serves_pincode = (
            db.query(PartnerPincode.id)
            .filter(
                PartnerPincode.partner_id == partner_id,
                PartnerPincode.pincode == order.pincode,
                PartnerPincode.is_active.is_(True),
            )
            .first()
        )
        return offers_service is not None and serves_pincode is not None

    @staticmethod
    def cancel_open_orders(db: Session, partner_id: int, cancelled_at: datetime) -> int:
        """Cancel every non-terminal order assigned to the partner and unassign it"""
        return (
            db.query(Order)
            .filter(
                Order.partner_id == partner_id,
                Order.status.notin_([s.value for s in TERMINAL_STATUSES]),
            )
            .update(
                {
                    Order.status: OrderStatus.CANCELLED.value,
                    Order.partner_id: None,
                    Order.cancelled_at: cancelled_at,
                    Order.cancellation_reason: "partner_removed",
                },
                synchronize_session=False,
            )
        )

    @staticmethod
    def detach_orders(db: Session, partner_id: int) -> int:
        """Unset partner_id on the remaining (terminal) orders, keeping their history"""
        return (
            db.query(Order)
            .filter(Order.partner_id == partner_id)
            .update({Order.partner_id: None}, synchronize_session=False)
        )

    @staticmethod
    def delete_partner(db: Session, partner: Partner) -> None:
        db.query(PartnerService).filter(PartnerService.partner_id == partner.id).delete(
            synchronize_session=False
        )
        db.query(PartnerPincode).filter(PartnerPincode.partner_id == partner.id).delete(
            synchronize_session=False
        )
        # Collections may still hold rows removed above
        db.expire(partner)
        db.delete(partner)
        db.flush()
