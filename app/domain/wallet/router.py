"""Wallet router - Balance, transaction history and referral code endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import ReferralLinkRequest, TransactionQuery
from .service import WalletService

router = APIRouter(tags=["Wallet"])


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    """Dependency injection for WalletService"""
    return WalletService(db)


@router.get("/wallet")
async def get_wallet(
    current_user: User = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    return {"success": True, "data": service.get_wallet_summary(current_user)}


@router.post("/wallet/transactions")
async def list_transactions(
    query: TransactionQuery,
    current_user: User = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    """Ledger history filtered by type and date range"""
    return {"success": True, "data": service.list_transactions(current_user, query)}


@router.post("/referrals")
async def apply_referral_code(
    data: ReferralLinkRequest,
    current_user: User = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    return {"success": True, "data": service.link_referrer(current_user, data.referralCode)}
