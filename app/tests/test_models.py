import pytest

from app.models.purchase import Pagination, PurchaseStatus
from app.models.stripe.events import CheckoutSession, PaymentIntent
from app.tests.conftest import make_product


@pytest.mark.parametrize(
    "total, page, limit, pages, has_next, has_prev",
    [
        (0, 1, 20, 0, False, False),
        (20, 1, 20, 1, False, False),
        (21, 1, 20, 2, True, False),
        (45, 3, 20, 3, False, True),
    ],
)
def test_pagination(total, page, limit, pages, has_next, has_prev):
    pagination = Pagination.build(page, limit, total)
    assert pagination.total_pages == pages
    assert pagination.has_next is has_next
    assert pagination.has_prev is has_prev
    assert pagination.model_dump(by_alias=True)["totalPurchases"] == total


def test_allowed_transitions():
    assert PurchaseStatus.COMPLETED.allowed_sources() == {PurchaseStatus.PENDING, PurchaseStatus.FAILED}
    assert PurchaseStatus.REFUNDED.allowed_sources() == {PurchaseStatus.COMPLETED}
    assert PurchaseStatus.PENDING.allowed_sources() == set()


def test_checkout_session_purchase_id():
    assert CheckoutSession(id="cs_1", client_reference_id="12").purchase_id == 12
    assert CheckoutSession(id="cs_1", metadata={"purchaseId": "13"}).purchase_id == 13
    assert CheckoutSession(id="cs_1", client_reference_id="abc").purchase_id is None
    assert CheckoutSession(id="cs_1").purchase_id is None


def test_checkout_session_paid():
    assert CheckoutSession(id="cs_1", payment_status="paid").is_paid
    assert not CheckoutSession(id="cs_1", payment_status="unpaid").is_paid


def test_payment_intent_failure_message():
    assert PaymentIntent(id="pi_1").failure_message == "Payment failed"
    intent = PaymentIntent.model_validate({"id": "pi_1", "last_payment_error": {"message": "Insufficient funds"}})
    assert intent.failure_message == "Insufficient funds"


def test_product_tiers():
    product = make_product(slug=" Pro-Tool ")
    assert product.slug == "pro-tool"
    assert product.price_for("1 Year") == 79.99
    assert product.price_for("unknown") == 9.99
    assert product.get_tier("unknown") is None
