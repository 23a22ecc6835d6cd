"""Order domain schemas - Pydantic models for validation"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class OrderCreate(BaseModel):
    """Schema for booking a service"""

    serviceId: int
    date: dt.date
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    address: str = Field(..., min_length=1, max_length=500)
    pincode: str
    remarks: Optional[str] = Field(None, max_length=1000)

    @field_validator("pincode")
    @classmethod
    def strip_pincode(cls, value: str) -> str:
        return value.strip()


class OrderIdRequest(BaseModel):
    """Body of POST /orders/cancel and /orders/check-cancellable"""

    orderId: str = Field(..., min_length=1)

