"""
Admin Routes - Partner removal, manual order progression, referral config
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..domain.orders.service import advance_order, load_order, serialize_order
from ..domain.partners.service import PartnerService
from ..domain.payments.service import complete_order
from ..domain.wallet.schemas import ReferralConfigUpdate
from ..domain.wallet.service import WalletService
from ..models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


class AdminStatusUpdate(BaseModel):
    status: str
    paymentOrderId: Optional[str] = None


class AdminCompleteRequest(BaseModel):
    paymentId: Optional[str] = None  # cash / offline reference


# ============================================================================
# PARTNERS
# ============================================================================


@router.delete("/partners/{partner_id}")
async def delete_partner(
    partner_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Remove a partner, cancelling and unassigning their open orders"""
    logger.info(f"🗑️ Admin {admin.id} deleting partner {partner_id}")
    return {"success": True, "data": PartnerService(db).remove_partner(partner_id)}


# ============================================================================
# ORDERS
# ============================================================================


@router.post("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    data: AdminStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    order = load_order(db, order_id)
    advance_order(db, order, data.status, data.paymentOrderId, actor=f"admin {admin.id}")
    return {"success": True, "data": {"order": serialize_order(order)}}


@router.post("/orders/{order_id}/complete")
async def complete_order_manually(
    order_id: str,
    data: Optional[AdminCompleteRequest] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Settle a PAYMENT_REQUESTED order paid outside the gateway (cash or wallet only)"""
    order = load_order(db, order_id)
    payment_id = data.paymentId if data else None
    result = complete_order(db, order, payment_id=payment_id, source=f"admin {admin.id}")
    return {"success": True, "data": result}


# ============================================================================
# REFERRAL PROGRAM
# ============================================================================


@router.get("/systemconfig/referral")
async def get_referral_config(
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": WalletService(db).get_referral_config()}


@router.patch("/systemconfig/referral")
async def update_referral_config(
    data: ReferralConfigUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    value = WalletService(db).update_referral_config(data.variable_value)
    logger.info(f"⚙️ Admin {admin.id} updated referral bonus")
    return {"success": True, "data": value}


@router.get("/wallet/referrals")
async def list_referral_bonuses(
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": WalletService(db).list_referral_bonuses()}
