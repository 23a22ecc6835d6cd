"""Order router - FastAPI endpoints for customer order operations"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import OrderCreate, OrderIdRequest
from .service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])

rate_limit_create = create_rate_limiter(limit=10, window_seconds=60, key_prefix="order_create")
rate_limit_cancel = create_rate_limiter(limit=10, window_seconds=60, key_prefix="order_cancel")
rate_limit_expire = create_rate_limiter(limit=10, window_seconds=60, key_prefix="order_expire")


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


# ============================================================================
# BOOKING
# ============================================================================


@router.post("")
async def create_order(
    data: OrderCreate,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
    _: None = Depends(rate_limit_create),
):
    """Book a service. The order starts PENDING until a partner accepts it."""
    return {"success": True, "data": service.create_order(data, current_user)}


@router.get("")
async def list_orders(
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return {"success": True, "data": service.list_orders(current_user)}


@router.get("/{order_id}/status")
async def get_order_status(
    order_id: str,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Current status of an order; polled by the partner-wait loop"""
    return {"success": True, "data": service.get_order_status(order_id, current_user)}


# ============================================================================
# CANCELLATION
# ============================================================================


@router.post("/check-cancellable")
async def check_cancellable(
    data: OrderIdRequest,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return {"success": True, "data": service.check_cancellable(data.orderId, current_user)}


@router.post("/cancel")
async def cancel_order(
    data: OrderIdRequest,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
    _: None = Depends(rate_limit_cancel),
):
    logger.info(f"📥 Cancel requested for order {data.orderId} by user {current_user.id}")
    return {"success": True, "data": service.cancel_order(data.orderId, current_user)}


@router.post("/{order_id}/expire")
async def expire_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
    _: None = Depends(rate_limit_expire),
):
    """Cancel an order nobody accepted within the partner-wait window"""
    return {"success": True, "data": service.expire_order(order_id, current_user)}
