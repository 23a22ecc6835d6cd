"""Partner router - Endpoints for approved service partners"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_partner
from ...database import get_db
from ...models import Partner
from ...rate_limiter import create_rate_limiter
from .schemas import AcceptOrderRequest, PartnerStatusUpdate
from .service import PartnerService

router = APIRouter(prefix="/partner", tags=["Partner"])

rate_limit_accept = create_rate_limiter(limit=30, window_seconds=60, key_prefix="partner_accept")


def get_partner_service(db: Session = Depends(get_db)) -> PartnerService:
    """Dependency injection for PartnerService"""
    return PartnerService(db)


@router.get("/pending-orders")
async def get_pending_orders(
    partner: Partner = Depends(get_current_partner),
    service: PartnerService = Depends(get_partner_service),
):
    """Unassigned orders in the partner's services and pincodes"""
    return {"success": True, "data": service.list_pending_orders(partner)}


@router.post("/accept-order")
async def accept_order(
    data: AcceptOrderRequest,
    partner: Partner = Depends(get_current_partner),
    service: PartnerService = Depends(get_partner_service),
    _: None = Depends(rate_limit_accept),
):
    return {"success": True, "data": service.accept_order(data.orderId, partner)}


@router.post("/orders/update-status")
async def update_order_status(
    data: PartnerStatusUpdate,
    partner: Partner = Depends(get_current_partner),
    service: PartnerService = Depends(get_partner_service),
):
    return {"success": True, "data": service.update_status(data, partner)}


@router.get("/orders")
async def get_partner_orders(
    partner: Partner = Depends(get_current_partner),
    service: PartnerService = Depends(get_partner_service),
):
    return {"success": True, "data": service.list_orders(partner)}
