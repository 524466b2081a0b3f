from fastapi import BackgroundTasks, Depends
from supabase import AsyncClient

from app.depends.db import get_db
from app.repository.notifications_repository import NotificationsRepository
from app.repository.products_repository import ProductsRepository
from app.repository.purchases_repository import PurchasesRepository
from app.repository.roles_repository import RolesRepository
from app.repository.software_repository import SoftwareRepository
from app.repository.users_repository import UsersRepository
from app.repository.webhook_events_repository import WebhookEventsRepository
from app.services.cache.base import BaseCacheService
from app.services.cache.redis_cache import RedisCacheService
from app.services.checkout_service import CheckoutService
from app.services.download_service import DownloadService
from app.services.entitlement_service import EntitlementService
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService
from app.services.purchase_service import PurchaseService
from app.services.stripe_service import StripeService
from app.services.webhooks.stripe import StripeWebhookService


def get_products_repository(db: AsyncClient = Depends(get_db)) -> ProductsRepository:
    return ProductsRepository(db)


def get_software_repository(db: AsyncClient = Depends(get_db)) -> SoftwareRepository:
    return SoftwareRepository(db)


def get_users_repository(db: AsyncClient = Depends(get_db)) -> UsersRepository:
    return UsersRepository(db)


def get_cache() -> BaseCacheService:
    return RedisCacheService()


def get_stripe_service() -> StripeService:
    return StripeService()


def get_ledger_service(db: AsyncClient = Depends(get_db)) -> LedgerService:
    return LedgerService(PurchasesRepository(db))


def get_notification_service(db: AsyncClient = Depends(get_db)) -> NotificationService:
    return NotificationService(NotificationsRepository(db))


def get_entitlement_service(
        db: AsyncClient = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        cache: BaseCacheService = Depends(get_cache),
) -> EntitlementService:
    return EntitlementService(RolesRepository(db), ledger, cache)


def get_download_service(
        ledger: LedgerService = Depends(get_ledger_service),
        products: ProductsRepository = Depends(get_products_repository),
        software: SoftwareRepository = Depends(get_software_repository),
) -> DownloadService:
    return DownloadService(ledger, products, software)


def get_purchase_service(
        tasks: BackgroundTasks,
        ledger: LedgerService = Depends(get_ledger_service),
        software: SoftwareRepository = Depends(get_software_repository),
        notifier: NotificationService = Depends(get_notification_service),
) -> PurchaseService:
    return PurchaseService(ledger, software, notifier, tasks)


def get_checkout_service(
        ledger: LedgerService = Depends(get_ledger_service),
        products: ProductsRepository = Depends(get_products_repository),
        stripe_service: StripeService = Depends(get_stripe_service),
) -> CheckoutService:
    return CheckoutService(ledger, products, stripe_service)


def get_webhook_service(
        tasks: BackgroundTasks,
        db: AsyncClient = Depends(get_db),
        ledger: LedgerService = Depends(get_ledger_service),
        products: ProductsRepository = Depends(get_products_repository),
        entitlements: EntitlementService = Depends(get_entitlement_service),
        notifier: NotificationService = Depends(get_notification_service),
) -> StripeWebhookService:
    return StripeWebhookService(
        ledger=ledger,
        products=products,
        entitlements=entitlements,
        notifier=notifier,
        events=WebhookEventsRepository(db),
        tasks=tasks,
    )
