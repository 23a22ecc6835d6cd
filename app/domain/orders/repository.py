"""Order repository - Database operations for orders"""

from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Order, Partner, PartnerPincode, PartnerService, Service, User, Wallet
from .lifecycle import TERMINAL_STATUSES, OrderStatus


def _status_value(status) -> str:
    return status.value if isinstance(status, OrderStatus) else str(status)


class OrderRepository:
    """Repository for order database operations.

    Methods that take part in a larger unit of work (transition,
    increment_service_orders) only flush; the service commits.
    """

    @staticmethod
    def get_order(db: Session, public_id: str) -> Optional[Order]:
        """Get an order by its public id"""
        return (
            db.query(Order)
            .options(joinedload(Order.service), joinedload(Order.partner))
            .filter(Order.public_id == public_id)
            .first()
        )

    @staticmethod
    def get_order_for_user(db: Session, public_id: str, user_id: int) -> Optional[Order]:
        """Get an order only if it belongs to this customer"""
        return (
            db.query(Order)
            .options(joinedload(Order.service))
            .filter(Order.public_id == public_id, Order.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_order_by_payment_order_id(db: Session, payment_order_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.payment_order_id == payment_order_id).first()

    @staticmethod
    def get_orders_for_user(db: Session, user_id: int) -> list[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.service))
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_service_threshold(db: Session, service_id: int) -> Optional[float]:
        """Threshold hours configured on the service (None when unset)"""
        row = db.query(Service.threshold).filter(Service.id == service_id).first()
        return row[0] if row else None

    @staticmethod
    def get_wallet(db: Session, user_id: int, for_update: bool = False) -> Optional[Wallet]:
        query = db.query(Wallet).filter(Wallet.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_earmarked_wallet_amount(db: Session, user_id: int) -> float:
        """Wallet share held by the customer's open orders (debited only on completion)"""
        total = (
            db.query(func.coalesce(func.sum(Order.wallet_amount), 0))
            .filter(
                Order.user_id == user_id,
                Order.status.notin_([s.value for s in TERMINAL_STATUSES]),
            )
            .scalar()
        )
        return float(total or 0)

    @staticmethod
    def get_eligible_partners(db: Session, service_id: int, pincode: str) -> list[Partner]:
        """Approved, active partners offering this service in this pincode"""
        return (
            db.query(Partner)
            .join(PartnerService, PartnerService.partner_id == Partner.id)
            .join(PartnerPincode, PartnerPincode.partner_id == Partner.id)
            .filter(
                Partner.approved.is_(True),
                Partner.is_active.is_(True),
                PartnerService.service_id == service_id,
                PartnerService.is_active.is_(True),
                PartnerPincode.pincode == pincode,
                PartnerPincode.is_active.is_(True),
            )
            .distinct()
            .all()
        )

    @staticmethod
    def create_order(db: Session, user: User, **order_data) -> Order:
        order = Order(user_id=user.id, **order_data)
        db.add(order)
        db.flush()
        return order

    @staticmethod
    def increment_service_orders(db: Session, service_id: int) -> None:
        db.query(Service).filter(Service.id == service_id).update(
            {Service.number_of_orders: Service.number_of_orders + 1},
            synchronize_session=False,
        )

    @staticmethod
    def transition(
        db: Session,
        order: Order,
        from_statuses: Iterable[str],
        to_status: str,
        require_unassigned: bool = False,
        **fields,
    ) -> bool:
        """
        Conditionally move an order to a new status.

        Issues a single UPDATE guarded on the current status (and on
        partner_id IS NULL when require_unassigned), so two writers racing
        on the same order cannot both succeed.

        Returns:
            True if the row was updated, False if its state changed underneath us
        """
        query = db.query(Order).filter(
            Order.id == order.id,
            Order.status.in_([_status_value(s) for s in from_statuses]),
        )
        if require_unassigned:
            query = query.filter(Order.partner_id.is_(None))

        values = {"status": _status_value(to_status), **fields}
        updated = query.update(values, synchronize_session=False)
        db.flush()
        if updated:
            db.refresh(order)
        return bool(updated)

    @staticmethod
    def get_pending_orders_for_partner(db: Session, partner: Partner) -> list[Order]:
        """Unassigned PENDING orders for services and pincodes the partner covers"""
        service_ids = (
            db.query(PartnerService.service_id)
            .filter(PartnerService.partner_id == partner.id, PartnerService.is_active.is_(True))
            .subquery()
        )
        pincodes = (
            db.query(PartnerPincode.pincode)
            .filter(PartnerPincode.partner_id == partner.id, PartnerPincode.is_active.is_(True))
            .subquery()
        )
        return (
            db.query(Order)
            .options(joinedload(Order.service))
            .filter(
                Order.status == "PENDING",
                Order.partner_id.is_(None),
                Order.service_id.in_(service_ids.select()),
                Order.pincode.in_(pincodes.select()),
            )
            .order_by(Order.created_at.asc(), Order.id.asc())
            .all()
        )

    @staticmethod
    def get_orders_for_partner(db: Session, partner_id: int) -> list[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.service))
            .filter(Order.partner_id == partner_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    @staticmethod
    def lock_customer(db: Session, user_id: int) -> Optional[User]:
        """Row-lock the customer until the current transaction ends"""
        return db.query(User).filter(User.id == user_id).with_for_update().first()

    @staticmethod
    def count_completed_orders(db: Session, user_id: int) -> int:
        return (
            db.query(Order)
            .filter(Order.user_id == user_id, Order.status == OrderStatus.COMPLETED.value)
            .count()
        )
