import structlog
from postgrest import APIError
from postgrest.types import CountMethod

from app.models.stripe.events import StripeEvent
from app.repository.base import BaseRepository

logger = structlog.getLogger(__name__)


class RawWebhookStorageError(Exception):
    pass


class WebhookEventsRepository(BaseRepository):
    table_name = "webhook_events"

    async def store(self, event: StripeEvent) -> int:
        try:
            resp = await self.repository.insert({
                "event_id": event.id,
                "type": event.type,
                "payload": event.model_dump(mode="json"),
            }, count=CountMethod.exact).execute()
        except APIError as e:
            raise RawWebhookStorageError(str(e)) from e
        if not resp.count or not resp.data:
            raise RawWebhookStorageError("Failed to insert webhook event")
        return resp.data[0].get("id")
