from types import SimpleNamespace

import pytest

from app.models.stripe.events import StripeEvent
from app.repository.webhook_events_repository import RawWebhookStorageError, WebhookEventsRepository


class RecordingTable:
    def __init__(self, data):
        self.data = data
        self.inserted = []

    def insert(self, row, count=None):
        self.inserted.append(row)
        return self

    async def execute(self):
        return SimpleNamespace(data=self.data, count=len(self.data))


class RecordingClient:
    def __init__(self, data):
        self.tables = {}
        self.data = data

    def table(self, name):
        return self.tables.setdefault(name, RecordingTable(self.data))


def stripe_event() -> StripeEvent:
    return StripeEvent.model_validate({
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {"object": "checkout.session", "id": "cs_test_1", "metadata": {"purchaseId": "1"}}},
    })


@pytest.mark.asyncio
async def test_payload_is_stored_as_json_object():
    db = RecordingClient([{"id": 41}])

    assert await WebhookEventsRepository(db).store(stripe_event()) == 41

    [row] = db.tables["webhook_events"].inserted
    assert row["event_id"] == "evt_1"
    assert row["type"] == "checkout.session.completed"
    assert isinstance(row["payload"], dict)
    assert row["payload"]["id"] == "evt_1"
    assert row["payload"]["data"]["object"]["metadata"] == {"purchaseId": "1"}


@pytest.mark.asyncio
async def test_empty_insert_result_is_a_storage_error():
    with pytest.raises(RawWebhookStorageError):
        await WebhookEventsRepository(RecordingClient([])).store(stripe_event())
