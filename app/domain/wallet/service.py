"""Wallet service - Balance, ledger history, referrals and referral config"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import REFERRAL_BONUS_MAX, REFERRAL_BONUS_MIN, REFERRAL_CONFIG_KEY
from ...exceptions import NotFound, PolicyViolation, ValidationError
from ...models import Transaction, User
from ...utils.time_utils import format_datetime, utcnow
from ..orders.service import commit_or_raise
from .referral_service import get_referral_bonus_amount
from .repository import WalletRepository
from .schemas import TransactionQuery

logger = logging.getLogger(__name__)


def serialize_transaction(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "amount": transaction.amount,
        "type": transaction.type,
        "description": transaction.description,
        "createdAt": transaction.created_at.isoformat() if transaction.created_at else None,
    }


def _as_datetime(value) -> Optional[datetime]:
    return datetime.combine(value, datetime.min.time()) if value else None


class WalletService:
    """Service layer for wallet and referral operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepository()

    # ------------------------------------------------------------------
    # Customer wallet
    # ------------------------------------------------------------------

    def get_wallet_summary(self, user: User) -> dict:
        """Balance plus the 10 latest ledger entries"""
        wallet = self.repo.get_wallet(self.db, user.id)
        if not wallet:
            return {
                "balance": 0,
                "referralCode": user.referral_code,
                "transactions": [],
            }
        transactions = self.repo.get_recent_transactions(self.db, wallet.id, limit=10)
        return {
            "balance": wallet.balance,
            "referralCode": user.referral_code,
            "transactions": [serialize_transaction(t) for t in transactions],
        }

    def list_transactions(self, user: User, query: TransactionQuery) -> dict:
        start = _as_datetime(query.startDate)
        # endDate is inclusive
        end = _as_datetime(query.endDate) + timedelta(days=1) if query.endDate else None
        if start and end and start >= end:
            raise ValidationError("startDate must not be after endDate")

        rows, total = self.repo.query_transactions(
            self.db,
            user.id,
            tx_type=query.type,
            start=start,
            end=end,
            offset=(query.page - 1) * query.limit,
            limit=query.limit,
        )
        return {
            "transactions": [serialize_transaction(t) for t in rows],
            "pagination": {
                "page": query.page,
                "limit": query.limit,
                "total": total,
                "totalPages": math.ceil(total / query.limit) if total else 0,
            },
        }

    def link_referrer(self, user: User, referral_code: str) -> dict:
        """Record who referred this user. The bonus is paid on their first completed order."""
        if user.referred_by_id:
            raise PolicyViolation("Referral code already applied")

        referrer = self.repo.get_user_by_referral_code(self.db, referral_code)
        if not referrer:
            raise NotFound("Invalid referral code", details={"referralCode": referral_code})
        if referrer.id == user.id:
            raise ValidationError("You cannot use your own referral code")

        user.referred_by_id = referrer.id
        self.repo.get_or_create_wallet(self.db, user.id)
        commit_or_raise(self.db, "apply referral code")

        logger.info(f"🤝 User {user.id} linked to referrer {referrer.id}")
        return {
            "referredBy": referrer.name or referrer.email,
            "referralCode": referral_code,
            "timestamp": format_datetime(utcnow()),
        }

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def get_referral_config(self) -> float:
        return get_referral_bonus_amount(self.db)

    def update_referral_config(self, value: Optional[float]) -> float:
        if value is None or not math.isfinite(value):
            raise ValidationError("variable_value must be a number")
        if not REFERRAL_BONUS_MIN <= value <= REFERRAL_BONUS_MAX:
            raise ValidationError(
                f"variable_value must be between {REFERRAL_BONUS_MIN} and {REFERRAL_BONUS_MAX}",
                details={"variable_value": value},
            )

        self.repo.set_config_value(self.db, REFERRAL_CONFIG_KEY, value)
        commit_or_raise(self.db, "update referral config")
        logger.info(f"⚙️ Referral bonus set to {value}")
        return value

    def list_referral_bonuses(self) -> list[dict]:
        result = []
        for transaction, referrer, order in self.repo.get_referral_transactions(self.db):
            entry = serialize_transaction(transaction)
            entry.update(
                {
                    "referrer": {
                        "id": referrer.id,
                        "name": referrer.name,
                        "email": referrer.email,
                    },
                    "orderId": order.public_id if order else None,
                }
            )
            result.append(entry)
        return result
