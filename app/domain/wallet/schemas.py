"""Wallet domain schemas - Pydantic models for validation"""

import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

TransactionType = Literal["CREDIT", "DEBIT", "REFERRAL_BONUS"]


class TransactionQuery(BaseModel):
    """Filters for the transaction history"""

    type: Optional[TransactionType] = None
    startDate: Optional[dt.date] = None
    endDate: Optional[dt.date] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class ReferralLinkRequest(BaseModel):
    referralCode: str = Field(..., min_length=1, max_length=16)

    @field_validator("referralCode")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class ReferralConfigUpdate(BaseModel):
    """PATCH /admin/systemconfig/referral"""

    variable_value: Optional[float] = None
