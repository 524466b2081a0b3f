from typing import Optional

from app.models.base import CamelModel


class CreateCheckoutSessionDTO(CamelModel):
    product_slug: Optional[str] = None
    duration: Optional[str] = None


class CheckoutSessionResult(CamelModel):
    session_id: str
    url: Optional[str] = None
    payment_intent: Optional[str] = None


class SessionStatus(CamelModel):
    id: str
    status: Optional[str] = None
    customer_email: Optional[str] = None
