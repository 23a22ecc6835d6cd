"""Payment router - Razorpay webhook and checkout verification"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...webhook_security import verify_razorpay_webhook
from .schemas import PaymentVerifyRequest
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

rate_limit_webhook = create_rate_limiter(limit=120, window_seconds=60, key_prefix="payment_webhook")


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(rate_limit_webhook),
):
    """
    Razorpay webhook. The body is verified against X-Razorpay-Signature
    before it is parsed; payment.captured completes the order.
    """
    raw_body = await verify_razorpay_webhook(request)
    return {"success": True, "data": service.handle_webhook(raw_body)}


@router.post("/verify")
async def verify_payment(
    data: PaymentVerifyRequest,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return {"success": True, "data": service.verify_checkout(data, current_user)}
