import secrets
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .utils.time_utils import utcnow


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def generate_referral_code():
    """Short, URL-safe code a customer shares with friends"""
    return secrets.token_hex(4).upper()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), default="customer", nullable=False)  # customer, partner, admin
    referral_code = Column(
        String(16), unique=True, index=True, default=generate_referral_code, nullable=False
    )
    referred_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    referrer = relationship("User", remote_side=[id])
    wallet = relationship("Wallet", back_populates="user", uselist=False)
    orders = relationship("Order", back_populates="user")


class Partner(Base):
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    approved = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    services = relationship("PartnerService", back_populates="partner")
    pincodes = relationship("PartnerPincode", back_populates="partner")
    orders = relationship("Order", back_populates="partner")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Float, nullable=False)
    # Hours an unaccepted order must wait before the customer may cancel it
    threshold = Column(Numeric(6, 2, asdecimal=False), nullable=True)
    number_of_orders = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class PartnerService(Base):
    __tablename__ = "partner_services"

    id = Column(Integer, primary_key=True, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    partner = relationship("Partner", back_populates="services")


class PartnerPincode(Base):
    __tablename__ = "partner_pincodes"

    id = Column(Integer, primary_key=True, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False, index=True)
    pincode = Column(String(6), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    partner = relationship("Partner", back_populates="pincodes")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, index=True, default=generate_public_id, nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=True, index=True)
    status = Column(String(30), default="PENDING", nullable=False, index=True)

    # Money
    amount = Column(Float, nullable=False)
    wallet_amount = Column(Float, default=0, nullable=False)  # settled from wallet at completion
    remaining_amount = Column(Float, nullable=False)  # collected through the payment gateway
    currency = Column(String(3), default="INR", nullable=False)

    # Booking details
    booking_date = Column(DateTime, nullable=False)
    booking_time = Column(String(10), nullable=False)
    address = Column(Text, nullable=False)
    pincode = Column(String(6), nullable=False)
    remarks = Column(Text, nullable=True)

    # Payment gateway references
    payment_order_id = Column(String(255), unique=True, nullable=True)
    payment_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # Lifecycle timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    accepted_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    service_completed_at = Column(DateTime, nullable=True)
    payment_requested_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(50), nullable=True)

    user = relationship("User", back_populates="orders")
    service = relationship("Service")
    partner = relationship("Partner", back_populates="orders")


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    balance = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="wallet")
    transactions = relationship(
        "Transaction", back_populates="wallet", order_by="Transaction.created_at.desc()"
    )


class Transaction(Base):
    """Append-only wallet ledger entry"""

    __tablename__ = "transactions"
    # One bonus and one wallet debit per order at most
    __table_args__ = (UniqueConstraint("order_id", "type", name="uq_transactions_order_type"),)

    id = Column(Integer, primary_key=True, index=True)
    amount = Column(Float, nullable=False)
    type = Column(String(20), nullable=False, index=True)  # CREDIT, DEBIT, REFERRAL_BONUS
    description = Column(String(500), nullable=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    wallet = relationship("Wallet", back_populates="transactions")


class SystemConfig(Base):
    __tablename__ = "system_config"

    variable_name = Column(String(100), primary_key=True)
    variable_value = Column(Float, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
