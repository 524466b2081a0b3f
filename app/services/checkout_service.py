from typing import Optional

import structlog

from app.exceptions import GatewayUnavailableError, InternalError, InvalidInputError, NotFoundError
from app.models.stripe.checkout import CheckoutSessionResult, SessionStatus
from app.repository.products_repository import ProductsRepository
from app.services.ledger_service import LedgerService
from app.services.stripe_service import StripeService

logger = structlog.getLogger(__name__)


class CheckoutService:
    def __init__(self, ledger: LedgerService, products: ProductsRepository, stripe_service: StripeService):
        self._ledger = ledger
        self._products = products
        self._stripe = stripe_service

    async def create_checkout_session(
            self,
            buyer_id: int,
            product_slug: Optional[str],
            duration: Optional[str],
    ) -> CheckoutSessionResult:
        if not self._stripe.is_configured:
            raise GatewayUnavailableError()
        if not product_slug or not duration:
            raise InvalidInputError("Product slug and duration are required")

        product = await self._products.get_by_slug(product_slug, active_only=True)
        if product is None:
            raise NotFoundError("Product not found")

        purchase = await self._ledger.create_pending(buyer_id, product, duration)
        try:
            session = await self._stripe.create_checkout_session(purchase, product, product.get_tier(duration))
        except InternalError:
            await self._ledger.mark_failed(purchase.id, "Checkout session could not be created")
            raise

        # the session id has to be on the record before the client can be redirected
        await self._ledger.attach_session(purchase.id, session.session_id, session.payment_intent)
        logger.info(
            "Checkout started",
            purchase_id=purchase.id,
            session_id=session.session_id,
            user_id=buyer_id,
        )
        return session

    async def get_session_status(self, session_id: str) -> SessionStatus:
        return await self._stripe.retrieve_session(session_id)
