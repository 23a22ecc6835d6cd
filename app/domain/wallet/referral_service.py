"""
Referral bonus crediting

When a referred customer completes an order, the referrer's wallet is
credited with the configured bonus and one REFERRAL_BONUS ledger row is
appended. Both writes join the caller's transaction; nothing here commits.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import (
    DEFAULT_REFERRAL_BONUS,
    REFERRAL_BONUS_MAX,
    REFERRAL_BONUS_MIN,
    REFERRAL_CONFIG_KEY,
)
from ...exceptions import ValidationError
from ...models import Transaction
from .repository import WalletRepository

logger = logging.getLogger(__name__)

REFERRAL_BONUS = "REFERRAL_BONUS"


def get_referral_bonus_amount(db: Session) -> float:
    """Bonus currently configured in system_config (default when unset)"""
    value = WalletRepository.get_config_value(db, REFERRAL_CONFIG_KEY)
    return DEFAULT_REFERRAL_BONUS if value is None else float(value)


def credit_referral_bonus(
    db: Session,
    purchaser_user_id: int,
    bonus_amount: float,
    order_id: Optional[int] = None,
) -> Optional[Transaction]:
    """
    Credit the purchaser's referrer with bonus_amount.

    Args:
        db: Session whose transaction the credit joins
        purchaser_user_id: Customer whose order triggered the bonus
        bonus_amount: Amount read by the caller from system config
        order_id: Triggering order; at most one bonus is ever paid per order

    Returns:
        The new ledger row, or None when nothing was credited
    """
    if not REFERRAL_BONUS_MIN <= bonus_amount <= REFERRAL_BONUS_MAX:
        raise ValidationError(
            f"Referral bonus must be between {REFERRAL_BONUS_MIN} and {REFERRAL_BONUS_MAX}",
            details={"bonusAmount": bonus_amount},
        )

    purchaser = WalletRepository.get_user(db, purchaser_user_id)
    if not purchaser or not purchaser.referred_by_id:
        return None

    if bonus_amount == 0:
        logger.info(f"ℹ️ Referral bonus is 0, skipping credit for user {purchaser_user_id}")
        return None

    if order_id is not None and WalletRepository.has_order_transaction(db, order_id, REFERRAL_BONUS):
        logger.info(f"ℹ️ Referral bonus already paid for order {order_id}")
        return None

    wallet = WalletRepository.get_or_create_wallet(db, purchaser.referred_by_id)
    WalletRepository.adjust_balance(db, wallet, bonus_amount)
    transaction = WalletRepository.add_transaction(
        db,
        wallet,
        bonus_amount,
        REFERRAL_BONUS,
        f"Referral bonus for {purchaser.name or purchaser.email}'s order",
        order_id=order_id,
    )

    logger.info(
        f"🎁 Credited referral bonus {bonus_amount} to user {purchaser.referred_by_id} "
        f"(referred user {purchaser_user_id}, order {order_id})"
    )
    return transaction
