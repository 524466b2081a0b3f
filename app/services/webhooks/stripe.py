from typing import Awaitable, Callable, Dict, Optional

import sentry_sdk
import structlog
from fastapi import BackgroundTasks

from app.exceptions import InvalidTransitionError
from app.models.catalog import Product
from app.models.purchase import Purchase
from app.models.stripe.events import Charge, CheckoutSession, EventType, PaymentIntent, StripeEvent
from app.repository.products_repository import ProductsRepository
from app.repository.webhook_events_repository import RawWebhookStorageError, WebhookEventsRepository
from app.services.entitlement_service import EntitlementService
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService

logger = structlog.getLogger(__name__)


class StripeWebhookService:
    """Reconciles verified Stripe events with the purchase ledger.

    Deliveries are best effort: an event that points at no purchase is logged and
    dropped rather than raised, so Stripe does not keep retrying something that
    can never succeed.
    """

    def __init__(
            self,
            ledger: LedgerService,
            products: ProductsRepository,
            entitlements: EntitlementService,
            notifier: NotificationService,
            events: WebhookEventsRepository,
            tasks: Optional[BackgroundTasks] = None,
    ):
        self._ledger = ledger
        self._products = products
        self._entitlements = entitlements
        self._notifier = notifier
        self._events = events
        self._tasks = tasks
        self._handlers: Dict[str, Callable[[StripeEvent], Awaitable[Optional[Purchase]]]] = {
            EventType.CHECKOUT_SESSION_COMPLETED.value: self.on_checkout_completed,
            EventType.CHECKOUT_SESSION_ASYNC_PAYMENT_SUCCEEDED.value: self.on_checkout_completed,
            EventType.CHECKOUT_SESSION_ASYNC_PAYMENT_FAILED.value: self.on_async_payment_failed,
            EventType.CHECKOUT_SESSION_EXPIRED.value: self.on_session_expired,
            EventType.PAYMENT_INTENT_PAYMENT_FAILED.value: self.on_payment_failed,
            EventType.CHARGE_REFUNDED.value: self.on_charge_refunded,
        }

    def _notify(self, purchase: Purchase, title: str, message: str, **data):
        kwargs = dict(
            user_uid=purchase.user_id,
            title=title,
            message=message,
            data={"purchaseId": purchase.id, **data},
            related_id=purchase.id,
        )
        if self._tasks is not None:
            self._tasks.add_task(self._notifier.notify, **kwargs)
        else:
            logger.warning("No task runner, notification dropped", purchase_id=purchase.id, title=title)

    async def _purchase_from_session(self, session: CheckoutSession) -> Optional[Purchase]:
        purchase_id = session.purchase_id
        if purchase_id is None:
            logger.error("No purchase ID in checkout session", session_id=session.id)
            sentry_sdk.set_context("stripe_webhook", {"session_id": session.id, "metadata": session.metadata})
            sentry_sdk.capture_message("No purchase ID in checkout session")
            return None
        purchase = await self._ledger.find(purchase_id)
        if purchase is None:
            logger.error("Purchase not found", purchase_id=purchase_id, session_id=session.id)
            sentry_sdk.set_context("stripe_webhook", {"session_id": session.id, "purchase_id": purchase_id})
            sentry_sdk.capture_message("Purchase not found for checkout session")
        return purchase

    async def _product_for(self, purchase: Purchase) -> Optional[Product]:
        if not purchase.product_slug:
            return None
        return await self._products.get_by_slug(purchase.product_slug)

    async def on_checkout_completed(self, event: StripeEvent) -> Optional[Purchase]:
        session = event.data_as(CheckoutSession)
        if not session.is_paid:
            logger.info("Checkout completed without payment yet", session_id=session.id,
                        payment_status=session.payment_status)
            return None
        purchase = await self._purchase_from_session(session)
        if purchase is None:
            return None

        try:
            completed = await self._ledger.mark_completed(
                purchase.id,
                transaction_id=session.id,
                payment_id=session.payment_intent,
            )
        except InvalidTransitionError as e:
            logger.warning("Completion ignored", purchase_id=purchase.id, status=str(e.current.status))
            return None
        if completed is None:
            # replayed delivery, finish a grant an earlier delivery may have left undone
            current = await self._ledger.get(purchase.id)
            await self._entitlements.grant_for_purchase(current, await self._product_for(current))
            return None

        product = await self._product_for(completed)
        await self._entitlements.grant_for_purchase(completed, product)

        self._notify(
            completed,
            "Purchase Complete!",
            f"Your purchase of {product.title if product else 'product'} has been completed successfully.",
            productSlug=completed.product_slug,
            duration=completed.duration,
        )
        logger.info("Purchase completed successfully", purchase_id=completed.id, event_id=event.id)
        return completed

    async def on_payment_failed(self, event: StripeEvent) -> Optional[Purchase]:
        intent = event.data_as(PaymentIntent)
        logger.info("Payment failed", payment_intent=intent.id)
        # failure events carry no checkout metadata, only the payment intent
        purchase = await self._ledger.find_by_payment_id(intent.id)
        if purchase is None:
            logger.info("No purchase for failed payment intent", payment_intent=intent.id)
            return None
        return await self._fail(purchase, intent.failure_message)

    async def on_async_payment_failed(self, event: StripeEvent) -> Optional[Purchase]:
        session = event.data_as(CheckoutSession)
        purchase = await self._purchase_from_session(session)
        if purchase is None:
            return None
        return await self._fail(purchase, "Payment failed")

    async def _fail(self, purchase: Purchase, reason: str) -> Optional[Purchase]:
        try:
            failed = await self._ledger.mark_failed(purchase.id, reason)
        except InvalidTransitionError as e:
            logger.warning("Failure ignored", purchase_id=purchase.id, status=str(e.current.status))
            return None
        self._notify(failed, "Payment Failed", "Your recent payment attempt has failed. Please try again.")
        return failed

    async def on_session_expired(self, event: StripeEvent) -> Optional[Purchase]:
        session = event.data_as(CheckoutSession)
        purchase = await self._purchase_from_session(session)
        if purchase is None:
            return None
        try:
            return await self._ledger.mark_cancelled(purchase.id, "Checkout session expired")
        except InvalidTransitionError as e:
            logger.info("Expiry ignored", purchase_id=purchase.id, status=str(e.current.status))
            return None

    async def on_charge_refunded(self, event: StripeEvent) -> Optional[Purchase]:
        charge = event.data_as(Charge)
        if not charge.payment_intent:
            return None
        purchase = await self._ledger.find_by_payment_id(charge.payment_intent)
        if purchase is None:
            logger.info("No purchase for refunded charge", charge_id=charge.id, payment_intent=charge.payment_intent)
            return None
        try:
            return await self._ledger.mark_refunded(purchase.id, "Refunded via Stripe")
        except InvalidTransitionError as e:
            logger.info("Refund ignored", purchase_id=purchase.id, status=str(e.current.status))
            return None

    async def process_event(self, event: StripeEvent) -> Optional[Purchase]:
        logger.info("Received webhook event", event_id=event.id, type=event.type)
        try:
            await self._events.store(event)
        except RawWebhookStorageError as e:
            logger.error("Failed to save webhook event", event_id=event.id, error=str(e))
            sentry_sdk.capture_exception(e)

        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Unhandled event type", event_id=event.id, type=event.type)
            return None
        return await handler(event)
