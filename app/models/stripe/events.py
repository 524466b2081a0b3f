from enum import Enum
from typing import Any, Dict, Literal, Optional, Type, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class EventType(str, Enum):
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    CHECKOUT_SESSION_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
    CHECKOUT_SESSION_ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"
    CHECKOUT_SESSION_EXPIRED = "checkout.session.expired"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"
    CHARGE_REFUNDED = "charge.refunded"

    def __str__(self):
        return self.value


class CustomerDetails(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class CheckoutSession(BaseModel):
    object: Literal["checkout.session"] = "checkout.session"
    id: str
    client_reference_id: Optional[str] = None
    metadata: Dict[str, str] = {}
    payment_intent: Optional[str] = None
    payment_status: Optional[str] = None
    status: Optional[str] = None
    customer_details: Optional[CustomerDetails] = None
    url: Optional[str] = None

    @property
    def purchase_id(self) -> Optional[int]:
        raw = self.client_reference_id or self.metadata.get("purchaseId")
        try:
            return int(raw) if raw else None
        except ValueError:
            return None

    @property
    def is_paid(self) -> bool:
        return self.payment_status in ("paid", "no_payment_required")


class PaymentError(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None


class PaymentIntent(BaseModel):
    object: Literal["payment_intent"] = "payment_intent"
    id: str
    status: Optional[str] = None
    metadata: Dict[str, str] = {}
    last_payment_error: Optional[PaymentError] = None

    @property
    def failure_message(self) -> str:
        if self.last_payment_error and self.last_payment_error.message:
            return self.last_payment_error.message
        return "Payment failed"


class Charge(BaseModel):
    object: Literal["charge"] = "charge"
    id: str
    payment_intent: Optional[str] = None
    refunded: bool = False
    amount_refunded: int = 0


class EventData(BaseModel):
    object: Dict[str, Any]


class StripeEvent(BaseModel):
    """Envelope of a verified webhook delivery. The data object is parsed per event type."""
    id: str
    type: str
    created: Optional[int] = None
    livemode: bool = False
    data: EventData

    def data_as(self, model: Type[T]) -> T:
        return model.model_validate(self.data.object)
