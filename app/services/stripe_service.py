from typing import Optional

import sentry_sdk
import stripe
import structlog
from pydantic import ValidationError

from app.exceptions import (
    GatewayUnavailableError,
    InternalError,
    InvalidInputError,
    InvalidSignatureError,
    NotFoundError,
)
from app.models.catalog import DurationTier, Product
from app.models.purchase import Purchase
from app.models.stripe.checkout import CheckoutSessionResult, SessionStatus
from app.models.stripe.events import StripeEvent
from app.settings import settings

logger = structlog.getLogger(__name__)


class StripeService:
    placeholder_keys = {"sk_test_YOUR_STRIPE_KEY_HERE"}

    def __init__(
            self,
            api_key: Optional[str] = None,
            webhook_secret: Optional[str] = None,
            tolerance: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        self.tolerance = tolerance or settings.stripe_config.webhook_tolerance
        self._client: Optional[stripe.StripeClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key not in self.placeholder_keys

    def get_client(self) -> stripe.StripeClient:
        if not self.is_configured:
            logger.warning("Stripe not initialized - STRIPE_SECRET_KEY not configured")
            raise GatewayUnavailableError()
        if self._client is None:
            self._client = stripe.StripeClient(self.api_key, http_client=stripe.HTTPXClient())
        return self._client

    async def create_checkout_session(
            self,
            purchase: Purchase,
            product: Product,
            tier: Optional[DurationTier],
    ) -> CheckoutSessionResult:
        client = self.get_client()
        price = tier.price if tier else product.base_price
        params = {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": str(purchase.currency).lower(),
                        "product_data": {
                            "name": f"{product.title} - {purchase.duration}",
                            "description": product.description or product.title,
                        },
                        # smallest currency unit
                        "unit_amount": round(price * 100),
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": f"{settings.frontend_url}{settings.stripe_config.success_path}",
            "cancel_url": f"{settings.frontend_url}{settings.stripe_config.cancel_path}",
            "client_reference_id": str(purchase.id),
            "metadata": {
                "purchaseId": str(purchase.id),
                "userId": str(purchase.user_id),
                "productSlug": product.slug,
                "duration": purchase.duration or "",
            },
        }
        try:
            session = await client.checkout.sessions.create_async(params=params)
        except stripe.StripeError as e:
            logger.error("Failed to create checkout session", purchase_id=purchase.id, error=str(e))
            sentry_sdk.capture_exception(e)
            raise InternalError("Server error while creating checkout session") from e
        logger.info("Checkout session created", purchase_id=purchase.id, session_id=session.id)
        return CheckoutSessionResult(
            session_id=session.id,
            url=session.url,
            payment_intent=session.get("payment_intent"),
        )

    async def retrieve_session(self, session_id: str) -> SessionStatus:
        client = self.get_client()
        try:
            session = await client.checkout.sessions.retrieve_async(session_id)
        except stripe.InvalidRequestError as e:
            logger.warning("Checkout session not found", session_id=session_id, error=str(e))
            raise NotFoundError("Session not found") from e
        except stripe.StripeError as e:
            logger.error("Failed to fetch checkout session", session_id=session_id, error=str(e))
            sentry_sdk.capture_exception(e)
            raise InternalError("Server error while fetching session") from e
        customer_details = session.get("customer_details")
        return SessionStatus(
            id=session.id,
            status=session.get("payment_status"),
            customer_email=customer_details.get("email") if customer_details else None,
        )

    def verify_callback(self, raw_body: bytes, signature: Optional[str]) -> StripeEvent:
        if not self.webhook_secret:
            logger.warning("Webhook received but STRIPE_WEBHOOK_SECRET is not configured")
            raise GatewayUnavailableError()
        if not signature:
            raise InvalidSignatureError("Missing signature header")
        try:
            payload = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.error("Webhook body is not utf-8", error=str(e))
            raise InvalidSignatureError("Webhook Error: body is not valid utf-8") from e
        try:
            stripe.WebhookSignature.verify_header(payload, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.error("Webhook signature verification failed", error=str(e))
            raise InvalidSignatureError(f"Webhook Error: {e}") from e
        try:
            return StripeEvent.model_validate_json(payload)
        except ValidationError as e:
            logger.error("Malformed webhook payload", error=str(e))
            raise InvalidInputError("Malformed webhook payload") from e
