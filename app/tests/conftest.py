import os

# settings are read at import time
os.environ.setdefault("DB_CONFIG", '{"url": "http://localhost:54321", "password": "test-service-key"}')
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi import BackgroundTasks
from fastapi.testclient import TestClient

from app.depends import services as service_depends
from app.depends.auth import auth_dependency
from app.main import app
from app.models.catalog import DurationTier, Product, Software, SoftwareCategory, SoftwareStatus
from app.models.entitlement import Role
from app.models.users import Principal
from app.services.checkout_service import CheckoutService
from app.services.download_service import DownloadService
from app.services.entitlement_service import EntitlementService
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService
from app.services.purchase_service import PurchaseService
from app.services.webhooks.stripe import StripeWebhookService
from app.tests.fakes import (
    FakeCache,
    FakeNotificationsRepository,
    FakePurchasesRepository,
    FakeProductsRepository,
    FakeRolesRepository,
    FakeSoftwareRepository,
    FakeStripeService,
    FakeUsersRepository,
    FakeWebhookEventsRepository,
)

WEBHOOK_SECRET = "whsec_test"

PRO_ROLE_ID = 7

BUYER = Principal(uid=1, username="buyer", email="buyer@example.com")
OTHER = Principal(uid=2, username="other", email="other@example.com")
ADMIN = Principal(uid=99, username="admin", email="admin@example.com", badge="Admin")


def make_product(**overrides) -> Product:
    data = dict(
        id=10,
        slug="pro-tool",
        title="Pro Tool",
        description="Everything in pro",
        base_price=9.99,
        durations=[
            DurationTier(duration="1 Month", days=30, price=9.99),
            DurationTier(duration="1 Year", days=365, price=79.99),
            DurationTier(duration="Lifetime", days=0, price=199.0),
        ],
        role_id=PRO_ROLE_ID,
        download_url="https://cdn.example.com/pro-tool.zip",
    )
    data.update(overrides)
    return Product(**data)


def make_software(**overrides) -> Software:
    data = dict(
        id=5,
        name="Aim Trainer",
        description="Trains your aim",
        price=19.99,
        category=SoftwareCategory.TOOL,
        download_url="https://cdn.example.com/aim-trainer.zip",
        status=SoftwareStatus.ACTIVE,
    )
    data.update(overrides)
    return Software(**data)


class Market:
    """Every fake wired into the real services, the same way the app's dependencies do it."""

    def __init__(self):
        self.purchases = FakePurchasesRepository()
        self.products = FakeProductsRepository([make_product()])
        self.software = FakeSoftwareRepository([
            make_software(),
            make_software(id=6, name="Old Mod", status=SoftwareStatus.DISCONTINUED),
        ])
        self.roles = FakeRolesRepository([Role(id=PRO_ROLE_ID, slug="pro", name="Pro")])
        self.notifications = FakeNotificationsRepository()
        self.events = FakeWebhookEventsRepository()
        self.users = FakeUsersRepository([BUYER, OTHER, ADMIN])
        self.cache = FakeCache()
        self.stripe = FakeStripeService(webhook_secret=WEBHOOK_SECRET)

        self.ledger = LedgerService(self.purchases, max_downloads=5)
        self.notifier = NotificationService(self.notifications, max_attempts=3, backoff_seconds=0)
        self.entitlements = EntitlementService(self.roles, self.ledger, self.cache, cache_ttl=3600)
        self.downloads = DownloadService(self.ledger, self.products, self.software)
        self.checkout = CheckoutService(self.ledger, self.products, self.stripe)

    def purchase_service(self, tasks=None) -> PurchaseService:
        return PurchaseService(self.ledger, self.software, self.notifier, tasks, auto_complete=True)

    def webhook_service(self, tasks=None) -> StripeWebhookService:
        return StripeWebhookService(
            ledger=self.ledger,
            products=self.products,
            entitlements=self.entitlements,
            notifier=self.notifier,
            events=self.events,
            tasks=tasks,
        )


@pytest.fixture
def market() -> Market:
    return Market()


@pytest.fixture
def principal() -> dict:
    return {"current": BUYER}


@pytest.fixture
def client(market, principal):
    def purchase_service(tasks: BackgroundTasks):
        return market.purchase_service(tasks)

    def webhook_service(tasks: BackgroundTasks):
        return market.webhook_service(tasks)

    app.dependency_overrides = {
        auth_dependency: lambda: principal["current"],
        service_depends.get_products_repository: lambda: market.products,
        service_depends.get_software_repository: lambda: market.software,
        service_depends.get_users_repository: lambda: market.users,
        service_depends.get_cache: lambda: market.cache,
        service_depends.get_stripe_service: lambda: market.stripe,
        service_depends.get_ledger_service: lambda: market.ledger,
        service_depends.get_notification_service: lambda: market.notifier,
        service_depends.get_entitlement_service: lambda: market.entitlements,
        service_depends.get_download_service: lambda: market.downloads,
        service_depends.get_purchase_service: purchase_service,
        service_depends.get_checkout_service: lambda: market.checkout,
        service_depends.get_webhook_service: webhook_service,
    }
    yield TestClient(app)
    app.dependency_overrides = {}
