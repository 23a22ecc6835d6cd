"""Wallet repository - Database operations for wallets, ledger and system config"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Order, SystemConfig, Transaction, User, Wallet


class WalletRepository:
    """Repository for wallet database operations.

    Writes only flush; the caller owns the transaction.
    """

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_referral_code(db: Session, referral_code: str) -> Optional[User]:
        return db.query(User).filter(User.referral_code == referral_code).first()

    @staticmethod
    def get_wallet(db: Session, user_id: int) -> Optional[Wallet]:
        return db.query(Wallet).filter(Wallet.user_id == user_id).first()

    @staticmethod
    def get_or_create_wallet(db: Session, user_id: int) -> Wallet:
        wallet = db.query(Wallet).filter(Wallet.user_id == user_id).first()
        if wallet:
            return wallet
        wallet = Wallet(user_id=user_id, balance=0)
        db.add(wallet)
        db.flush()
        return wallet

    @staticmethod
    def adjust_balance(db: Session, wallet: Wallet, delta: float) -> Wallet:
        """Atomically add delta (may be negative) to the wallet balance"""
        db.query(Wallet).filter(Wallet.id == wallet.id).update(
            {Wallet.balance: Wallet.balance + delta},
            synchronize_session=False,
        )
        db.flush()
        db.refresh(wallet)
        return wallet

    @staticmethod
    def add_transaction(
        db: Session,
        wallet: Wallet,
        amount: float,
        tx_type: str,
        description: str,
        order_id: Optional[int] = None,
    ) -> Transaction:
        transaction = Transaction(
            amount=amount,
            type=tx_type,
            description=description,
            wallet_id=wallet.id,
            user_id=wallet.user_id,
            order_id=order_id,
        )
        db.add(transaction)
        db.flush()
        return transaction

    @staticmethod
    def has_order_transaction(db: Session, order_id: int, tx_type: str) -> bool:
        """True if a ledger row of this type already exists for the order"""
        return (
            db.query(Transaction.id)
            .filter(Transaction.order_id == order_id, Transaction.type == tx_type)
            .first()
            is not None
        )

    @staticmethod
    def get_recent_transactions(db: Session, wallet_id: int, limit: int = 10) -> list[Transaction]:
        return (
            db.query(Transaction)
            .filter(Transaction.wallet_id == wallet_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def query_transactions(
        db: Session,
        user_id: int,
        tx_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Transaction], int]:
        """Filtered, paginated ledger for one user. Returns (rows, total)"""
        query = db.query(Transaction).filter(Transaction.user_id == user_id)
        if tx_type:
            query = query.filter(Transaction.type == tx_type)
        if start:
            query = query.filter(Transaction.created_at >= start)
        if end:
            query = query.filter(Transaction.created_at < end)

        total = query.count()
        rows = (
            query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def get_referral_transactions(db: Session) -> list[tuple[Transaction, User, Optional[Order]]]:
        """Every REFERRAL_BONUS ledger entry with its referrer and triggering order"""
        return (
            db.query(Transaction, User, Order)
            .join(User, User.id == Transaction.user_id)
            .outerjoin(Order, Order.id == Transaction.order_id)
            .filter(Transaction.type == "REFERRAL_BONUS")
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .all()
        )

    @staticmethod
    def get_config_value(db: Session, variable_name: str) -> Optional[float]:
        row = (
            db.query(SystemConfig.variable_value)
            .filter(SystemConfig.variable_name == variable_name)
            .first()
        )
        return row[0] if row else None

    @staticmethod
    def set_config_value(db: Session, variable_name: str, value: float) -> SystemConfig:
        config = (
            db.query(SystemConfig).filter(SystemConfig.variable_name == variable_name).first()
        )
        if config:
            config.variable_value = value
        else:
            config = SystemConfig(variable_name=variable_name, variable_value=value)
            db.add(config)
        db.flush()
        return config
