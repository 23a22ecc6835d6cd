"""
Pytest configuration and fixtures for tests.

Every test gets a fresh in-memory SQLite database shared with the app through
dependency overrides, and a fakeredis backend for the rate limiter.
"""

import os

# Must be set before app.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FIREBASE_PROJECT_ID", "homeserve-test")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test_webhook_secret")
os.environ.setdefault("PAYMENT_WEBHOOK_VERIFY", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime, timedelta

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import rate_limiter
from app.auth import get_current_user
from app.database import Base, get_db
from app.main import app
from app.models import (
    Order,
    Partner,
    PartnerPincode,
    PartnerService,
    Service,
    SystemConfig,
    User,
    Wallet,
)
from app.utils.time_utils import utcnow

PINCODE = "560001"


# ============================================================================
# Database Fixtures
# ============================================================================

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Back the rate limiter with fakeredis and start every test with empty counters"""
    client = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(rate_limiter, "redis_client", client)
    monkeypatch.setattr(rate_limiter, "last_cleanup_time", 0)
    rate_limiter.memory_cache.clear()
    yield client
    rate_limiter.memory_cache.clear()


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Make subsequent requests run as the given user"""

    def _login(user: User):
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login


# ============================================================================
# Model Factories
# ============================================================================


def _make_user(db, email, role="customer", referred_by=None, name=None):
    user = User(
        firebase_uid=f"uid-{email}",
        email=email,
        name=name or email.split("@")[0].title(),
        role=role,
        referred_by_id=referred_by.id if referred_by else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def referrer(db):
    return _make_user(db, "riya@example.com")


@pytest.fixture
def customer(db):
    return _make_user(db, "arjun@example.com")


@pytest.fixture
def referred_customer(db, referrer):
    return _make_user(db, "kabir@example.com", referred_by=referrer)


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@example.com", role="admin")


@pytest.fixture
def service(db):
    svc = Service(name="Deep Cleaning", category="cleaning", price=1200.0, threshold=2)
    db.add(svc)
    db.commit()
    db.refresh(svc)
    return svc


def _make_partner(db, email, service, pincode=PINCODE, approved=True):
    partner = Partner(email=email, name=email.split("@")[0].title(), phone="9800000000", approved=approved)
    db.add(partner)
    db.flush()
    db.add(PartnerService(partner_id=partner.id, service_id=service.id))
    db.add(PartnerPincode(partner_id=partner.id, pincode=pincode))
    db.commit()
    db.refresh(partner)
    return partner


@pytest.fixture
def partner_user(db):
    return _make_user(db, "meera.partner@example.com", role="partner")


@pytest.fixture
def partner(db, service, partner_user):
    return _make_partner(db, partner_user.email, service)


@pytest.fixture
def other_partner_user(db):
    return _make_user(db, "vikram.partner@example.com", role="partner")


@pytest.fixture
def other_partner(db, service, other_partner_user):
    return _make_partner(db, other_partner_user.email, service)


@pytest.fixture
def make_order(db):
    """Insert an order directly, backdated by `age`"""

    def _make_order(
        user,
        service,
        age=timedelta(0),
        status="PENDING",
        partner=None,
        wallet_amount=0.0,
        payment_order_id=None,
    ):
        created_at = utcnow() - age
        order = Order(
            user_id=user.id,
            service_id=service.id,
            partner_id=partner.id if partner else None,
            status=status,
            amount=service.price,
            wallet_amount=wallet_amount,
            remaining_amount=service.price - wallet_amount,
            booking_date=datetime.now() + timedelta(days=1),
            booking_time="10:00",
            address="12 MG Road",
            pincode=PINCODE,
            payment_order_id=payment_order_id,
            created_at=created_at,
            cancelled_at=created_at if status == "CANCELLED" else None,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make_order


@pytest.fixture
def make_wallet(db):
    def _make_wallet(user, balance):
        wallet = Wallet(user_id=user.id, balance=balance)
        db.add(wallet)
        db.commit()
        db.refresh(wallet)
        return wallet

    return _make_wallet


@pytest.fixture
def set_referral_bonus(db):
    def _set(value):
        db.merge(SystemConfig(variable_name="referral", variable_value=value))
        db.commit()

    return _set
