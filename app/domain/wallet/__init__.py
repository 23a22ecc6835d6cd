"""Wallet domain - Balances, ledger and referral bonuses"""

from .router import router

__all__ = ["router"]
