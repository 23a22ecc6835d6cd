"""Partner domain schemas"""

from typing import Optional

from pydantic import BaseModel, Field


class AcceptOrderRequest(BaseModel):
    orderId: str = Field(..., min_length=1)


class PartnerStatusUpdate(BaseModel):
    """Partner moves one of their orders to the next fulfilment step"""

    orderId: str = Field(..., min_length=1)
    status: str
    paymentOrderId: Optional[str] = Field(None, max_length=255)
