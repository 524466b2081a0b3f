import structlog
from fastapi import APIRouter, Depends
from sentry_sdk import capture_exception, set_context
from starlette.requests import Request

from app.depends.services import get_stripe_service, get_webhook_service
from app.exceptions import InvalidInputError
from app.services.stripe_service import StripeService
from app.services.webhooks.stripe import StripeWebhookService

router = APIRouter(prefix="/stripe", tags=["webhooks"])

logger = structlog.getLogger(__name__)


@router.post("/webhook")
async def stripe_webhook(
        req: Request,
        stripe_service: StripeService = Depends(get_stripe_service),
        webhook_service: StripeWebhookService = Depends(get_webhook_service),
):
    signature = req.headers.get("Stripe-Signature")
    # only a bad or missing signature is answered with an error
    try:
        event = stripe_service.verify_callback(await req.body(), signature)
    except InvalidInputError as e:
        logger.error("Unreadable webhook payload", error=e.message)
        capture_exception(e)
        return {"received": True}

    try:
        await webhook_service.process_event(event)
    except Exception as e:
        logger.error("Failed to process webhook", event_id=event.id, type=event.type, error=str(e))
        set_context("stripe_webhook", {"event_id": event.id, "type": event.type})
        capture_exception(e)
    return {"received": True}
