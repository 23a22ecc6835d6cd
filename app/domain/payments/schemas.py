"""
Payment domain schemas

Razorpay webhook events are parsed into a tagged union keyed on "event".
Kinds we act on get strict models; anything else becomes UnknownWebhookEvent
and is acknowledged without a transition.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class PaymentEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    order_id: Optional[str] = None
    amount: Optional[int] = None  # smallest currency unit (paise)
    currency: Optional[str] = None
    status: Optional[str] = None
    error_description: Optional[str] = None
    notes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("notes", mode="before")
    @classmethod
    def empty_notes(cls, value):
        # Razorpay sends [] instead of {} when no notes are attached
        return value or {}


class PaymentWrapper(BaseModel):
    entity: PaymentEntity


class PaymentPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment: PaymentWrapper


class PaymentCapturedEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: Literal["payment.captured"]
    payload: PaymentPayload

    @property
    def payment(self) -> PaymentEntity:
        return self.payload.payment.entity


class PaymentFailedEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: Literal["payment.failed"]
    payload: PaymentPayload

    @property
    def payment(self) -> PaymentEntity:
        return self.payload.payment.entity


class UnknownWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: str = "unknown"


KnownWebhookEvent = Annotated[
    Union[PaymentCapturedEvent, PaymentFailedEvent],
    Field(discriminator="event"),
]
WebhookEvent = Union[PaymentCapturedEvent, PaymentFailedEvent, UnknownWebhookEvent]

KNOWN_EVENTS = frozenset({"payment.captured", "payment.failed"})

_known_event_adapter = TypeAdapter(KnownWebhookEvent)


def parse_webhook_event(data: Any) -> WebhookEvent:
    """
    Validate a decoded webhook body.

    Raises:
        pydantic.ValidationError: a known event kind with a malformed payload
    """
    if isinstance(data, dict) and data.get("event") in KNOWN_EVENTS:
        return _known_event_adapter.validate_python(data)
    if isinstance(data, dict) and isinstance(data.get("event"), str):
        return UnknownWebhookEvent.model_validate(data)
    return UnknownWebhookEvent()


class PaymentVerifyRequest(BaseModel):
    """Checkout callback the client forwards after a successful payment"""

    orderId: str = Field(..., min_length=1)
    razorpayOrderId: str = Field(..., min_length=1)
    razorpayPaymentId: str = Field(..., min_length=1)
    razorpaySignature: str = Field(..., min_length=1)
