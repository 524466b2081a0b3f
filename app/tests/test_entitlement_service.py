import json
from datetime import datetime, timedelta, timezone

import pytest

from app.tests.conftest import PRO_ROLE_ID, make_product


@pytest.mark.asyncio
async def test_grant_with_duration(market):
    entitlement = await market.entitlements.grant(1, PRO_ROLE_ID, duration_days=7, assigned_by=99)
    expected = datetime.now(timezone.utc) + timedelta(days=7)
    assert abs((entitlement.expires_at - expected).total_seconds()) < 60
    assert entitlement.assigned_by == 99
    assert entitlement.active


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [None, 0, -3])
async def test_grant_without_positive_duration_is_permanent(market, days):
    entitlement = await market.entitlements.grant(1, PRO_ROLE_ID, duration_days=days)
    assert entitlement.expires_at is None


@pytest.mark.asyncio
async def test_grant_always_adds_a_record(market):
    await market.entitlements.grant(1, PRO_ROLE_ID, duration_days=30)
    await market.entitlements.grant(1, PRO_ROLE_ID, duration_days=30)
    assert len(market.roles.assignments) == 2


@pytest.mark.asyncio
async def test_grant_for_purchase_copies_expiry_to_purchase(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Year")
    purchase = await market.ledger.mark_completed(purchase.id)

    entitlement = await market.entitlements.grant_for_purchase(purchase, make_product())
    assert entitlement.metadata == {"purchase_id": purchase.id}
    assert market.purchases.rows[purchase.id].expires_at == entitlement.expires_at


@pytest.mark.asyncio
async def test_grant_for_purchase_without_role(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    assert await market.entitlements.grant_for_purchase(purchase, make_product(role_id=None)) is None
    assert await market.entitlements.grant_for_purchase(purchase, None) is None
    assert market.roles.assignments == []


@pytest.mark.asyncio
async def test_active_entitlements_are_cached_until_next_grant(market):
    await market.entitlements.grant(1, PRO_ROLE_ID, duration_days=1)

    first = await market.entitlements.get_active_entitlements(1)
    assert len(first) == 1
    key = "users:entitlements:1"
    assert len(json.loads(market.cache.data[key])) == 1
    # a day away, so the configured hour wins
    assert market.cache.ttls[key] == 3600

    await market.entitlements.grant(1, PRO_ROLE_ID)
    assert key not in market.cache.data
    assert len(await market.entitlements.get_active_entitlements(1)) == 2


@pytest.mark.asyncio
async def test_cache_ttl_follows_earliest_expiry(market):
    entitlement = await market.roles.create_assignment(
        1, PRO_ROLE_ID, expires_at=datetime.now(timezone.utc) + timedelta(minutes=10)
    )
    await market.entitlements.get_active_entitlements(1)
    ttl = market.cache.ttls["users:entitlements:1"]
    assert 0 < ttl <= 600
    assert entitlement.expires_at is not None


@pytest.mark.asyncio
async def test_expired_entitlements_are_not_active(market):
    await market.roles.create_assignment(1, PRO_ROLE_ID, expires_at=datetime.now(timezone.utc) - timedelta(days=1))
    assert await market.entitlements.get_active_entitlements(1) == []


@pytest.mark.asyncio
async def test_cached_entitlements_are_read_back(market):
    await market.entitlements.grant(1, PRO_ROLE_ID, duration_days=30)
    await market.entitlements.get_active_entitlements(1)
    market.roles.assignments.clear()

    cached = await market.entitlements.get_active_entitlements(1)
    assert [e.role_id for e in cached] == [PRO_ROLE_ID]


@pytest.mark.asyncio
async def test_grant_for_purchase_is_applied_once(market):
    purchase = await market.ledger.create_pending(1, make_product(), "1 Month")
    purchase = await market.ledger.mark_completed(purchase.id)

    first = await market.entitlements.grant_for_purchase(purchase, make_product())
    again = await market.entitlements.grant_for_purchase(market.purchases.rows[purchase.id], make_product())
    assert again.id == first.id
    assert len(market.roles.assignments) == 1
