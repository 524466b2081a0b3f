from datetime import datetime, timedelta, timezone

import pytest
from fastapi import BackgroundTasks

from app.models.purchase import PurchaseStatus
from app.models.stripe.events import StripeEvent
from app.tests.conftest import PRO_ROLE_ID, make_product


def event(type_: str, obj: dict, event_id: str = "evt_1") -> StripeEvent:
    return StripeEvent.model_validate({"id": event_id, "type": type_, "data": {"object": obj}})


def session_completed(purchase_id, payment_status="paid", payment_intent="pi_1", **extra) -> StripeEvent:
    obj = {
        "object": "checkout.session",
        "id": f"cs_test_{purchase_id}",
        "client_reference_id": str(purchase_id) if purchase_id is not None else None,
        "payment_status": payment_status,
        "payment_intent": payment_intent,
    }
    obj.update(extra)
    return event("checkout.session.completed", obj)


async def run_tasks(tasks: BackgroundTasks):
    await tasks()


@pytest.mark.asyncio
async def test_completion_grants_role_and_sets_expiry(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    tasks = BackgroundTasks()

    completed = await market.webhook_service(tasks).process_event(session_completed(purchase.id))

    assert completed.status == PurchaseStatus.COMPLETED
    assert completed.transaction_id == f"cs_test_{purchase.id}"
    assert completed.stripe_payment_id == "pi_1"
    [grant] = market.roles.assignments
    assert grant.user_uid == 1
    assert grant.role_id == PRO_ROLE_ID
    assert grant.metadata == {"purchase_id": purchase.id}
    expected = datetime.now(timezone.utc) + timedelta(days=30)
    assert abs((grant.expires_at - expected).total_seconds()) < 60
    assert market.purchases.rows[purchase.id].expires_at == grant.expires_at
    assert len(market.events.events) == 1

    await run_tasks(tasks)
    [notification] = market.notifications.rows
    assert notification["title"] == "Purchase Complete!"
    assert notification["message"] == "Your purchase of Pro Tool has been completed successfully."
    assert notification["data"]["purchaseId"] == purchase.id
    assert notification["related_id"] == purchase.id


@pytest.mark.asyncio
async def test_lifetime_purchase_never_expires(market):
    purchase = await market.ledger.create_pending(1, make_product(), "Lifetime")
    await market.webhook_service().process_event(session_completed(purchase.id))

    [grant] = market.roles.assignments
    assert grant.expires_at is None
    assert market.purchases.rows[purchase.id].expires_at is None


@pytest.mark.asyncio
async def test_replayed_completion_grants_once(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    service = market.webhook_service(BackgroundTasks())

    await service.process_event(session_completed(purchase.id))
    assert await service.process_event(session_completed(purchase.id)) is None

    assert len(market.roles.assignments) == 1
    assert len(market.events.events) == 2


@pytest.mark.asyncio
async def test_purchase_id_from_metadata(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    evt = session_completed(None, metadata={"purchaseId": str(purchase.id)})

    completed = await market.webhook_service().process_event(evt)
    assert completed.id == purchase.id


@pytest.mark.asyncio
async def test_unknown_purchase_is_ignored(market):
    assert await market.webhook_service().process_event(session_completed(4242)) is None
    assert await market.webhook_service().process_event(session_completed(None)) is None
    assert market.roles.assignments == []


@pytest.mark.asyncio
async def test_unpaid_session_waits_for_async_payment(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    service = market.webhook_service()

    assert await service.process_event(session_completed(purchase.id, payment_status="unpaid")) is None
    assert market.purchases.rows[purchase.id].status == PurchaseStatus.PENDING

    evt = session_completed(purchase.id)
    evt.type = "checkout.session.async_payment_succeeded"
    completed = await service.process_event(evt)
    assert completed.status == PurchaseStatus.COMPLETED


@pytest.mark.asyncio
async def test_product_without_role_still_completes(market):
    market.products.rows["pro-tool"] = make_product(role_id=None)
    purchase = await market.ledger.create_pending(1, market.products.rows["pro-tool"], "1 Month")

    completed = await market.webhook_service().process_event(session_completed(purchase.id))
    assert completed.status == PurchaseStatus.COMPLETED
    assert market.roles.assignments == []


@pytest.mark.asyncio
async def test_missing_role_is_skipped(market):
    market.products.rows["pro-tool"] = make_product(role_id=1234)
    purchase = await market.ledger.create_pending(1, market.products.rows["pro-tool"], "1 Month")

    completed = await market.webhook_service().process_event(session_completed(purchase.id))
    assert completed.status == PurchaseStatus.COMPLETED
    assert market.roles.assignments == []


@pytest.mark.asyncio
async def test_payment_failure_marks_purchase_failed(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    await market.ledger.attach_session(purchase.id, "cs_test_1", "pi_declined")
    tasks = BackgroundTasks()

    failed = await market.webhook_service(tasks).process_event(event(
        "payment_intent.payment_failed",
        {
            "object": "payment_intent",
            "id": "pi_declined",
            "last_payment_error": {"code": "card_declined", "message": "Your card was declined."},
        },
    ))

    assert failed.status == PurchaseStatus.FAILED
    assert failed.notes == "Your card was declined."
    await run_tasks(tasks)
    assert market.notifications.rows[0]["title"] == "Payment Failed"


@pytest.mark.asyncio
async def test_payment_failure_default_message(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    await market.ledger.attach_session(purchase.id, "cs_test_1", "pi_2")

    failed = await market.webhook_service().process_event(event(
        "payment_intent.payment_failed", {"object": "payment_intent", "id": "pi_2"},
    ))
    assert failed.notes == "Payment failed"


@pytest.mark.asyncio
async def test_payment_failure_for_unknown_intent(market):
    result = await market.webhook_service().process_event(event(
        "payment_intent.payment_failed", {"object": "payment_intent", "id": "pi_unknown"},
    ))
    assert result is None


@pytest.mark.asyncio
async def test_expired_session_cancels_pending_purchase(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    evt = session_completed(purchase.id, payment_status="unpaid", payment_intent=None)
    evt.type = "checkout.session.expired"

    cancelled = await market.webhook_service().process_event(evt)
    assert cancelled.status == PurchaseStatus.CANCELLED
    assert cancelled.notes == "Checkout session expired"


@pytest.mark.asyncio
async def test_charge_refunded(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    await market.webhook_service().process_event(session_completed(purchase.id, payment_intent="pi_9"))

    refunded = await market.webhook_service().process_event(event(
        "charge.refunded",
        {"object": "charge", "id": "ch_1", "payment_intent": "pi_9", "refunded": True, "amount_refunded": 999},
        event_id="evt_2",
    ))
    assert refunded.status == PurchaseStatus.REFUNDED
    assert refunded.refund_reason == "Refunded via Stripe"


@pytest.mark.asyncio
async def test_unhandled_event_is_stored(market):
    result = await market.webhook_service().process_event(event("customer.created", {"id": "cus_1"}))
    assert result is None
    assert market.events.events[0].type == "customer.created"


@pytest.mark.asyncio
async def test_raw_storage_failure_does_not_block_processing(market):
    market.events.broken = True
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")

    completed = await market.webhook_service().process_event(session_completed(purchase.id))
    assert completed.status == PurchaseStatus.COMPLETED


@pytest.mark.asyncio
async def test_replay_finishes_a_grant_that_failed(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    service = market.webhook_service()
    create_assignment = market.roles.create_assignment

    async def unavailable(*args, **kwargs):
        raise ConnectionError("user_roles unavailable")

    market.roles.create_assignment = unavailable
    with pytest.raises(ConnectionError):
        await service.process_event(session_completed(purchase.id))
    assert market.purchases.rows[purchase.id].status == PurchaseStatus.COMPLETED
    assert market.roles.assignments == []

    market.roles.create_assignment = create_assignment
    assert await service.process_event(session_completed(purchase.id)) is None

    [grant] = market.roles.assignments
    assert grant.metadata == {"purchase_id": purchase.id}
    assert market.purchases.rows[purchase.id].expires_at == grant.expires_at

    await service.process_event(session_completed(purchase.id))
    assert len(market.roles.assignments) == 1
