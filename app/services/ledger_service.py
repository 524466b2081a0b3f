import secrets
import string
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import structlog

from app.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidTransitionError,
    LimitExceededError,
    NotCompletedError,
    NotFoundError,
)
from app.models.catalog import Product, Software
from app.models.purchase import PaymentMethod, Purchase, PurchaseStatus
from app.repository.purchases_repository import PurchasesRepository
from app.settings import settings

logger = structlog.getLogger(__name__)

LICENSE_KEY_ALPHABET = string.ascii_uppercase + string.digits


def generate_license_key(groups: int = 4, group_size: int = 4) -> str:
    return "-".join(
        "".join(secrets.choice(LICENSE_KEY_ALPHABET) for _ in range(group_size))
        for _ in range(groups)
    )


def is_download_allowed(purchase: Purchase, now: Optional[datetime] = None) -> bool:
    return purchase.can_download(now)


class LedgerService:
    """Purchase records and every status change they go through.

    Status changes are conditional updates on the current status, so a replayed
    webhook or a racing request cannot apply the same transition twice.
    """

    def __init__(self, purchases: PurchasesRepository, max_downloads: Optional[int] = None):
        self._purchases = purchases
        self._max_downloads = max_downloads or settings.purchase_config.max_downloads

    async def find(self, purchase_id: int) -> Optional[Purchase]:
        return await self._purchases.get(purchase_id)

    async def find_by_payment_id(self, payment_id: str) -> Optional[Purchase]:
        return await self._purchases.get_by_payment_id(payment_id)

    async def get(self, purchase_id: int) -> Purchase:
        purchase = await self._purchases.get(purchase_id)
        if purchase is None:
            raise NotFoundError("Purchase not found")
        return purchase

    async def create_pending(
            self,
            buyer_id: int,
            product: Product,
            duration: str,
            payment_method: PaymentMethod = PaymentMethod.CARD,
    ) -> Purchase:
        if not product.active:
            raise NotFoundError("Product not found")
        duration_days = None
        if product.durations:
            tier = product.get_tier(duration)
            if tier is None:
                raise NotFoundError("Invalid duration")
            duration_days = tier.days
        purchase = await self._purchases.create(
            user_id=buyer_id,
            software_id=product.id,
            product_slug=product.slug,
            duration=duration,
            duration_days=duration_days,
            payment_method=payment_method,
            amount=product.price_for(duration),
            currency=product.currency,
            status=PurchaseStatus.PENDING,
            license_key=generate_license_key(),
            download_count=0,
            max_downloads=self._max_downloads,
            purchase_date=datetime.now(timezone.utc),
        )
        logger.info(
            "Pending purchase created",
            purchase_id=purchase.id,
            user_id=buyer_id,
            product_slug=product.slug,
            duration=duration,
            amount=purchase.amount,
        )
        return purchase

    async def create_direct(self, buyer_id: int, software: Software, payment_method: PaymentMethod) -> Purchase:
        if not software.is_purchasable():
            raise InvalidInputError("Software is not available for purchase")
        if await self._purchases.find_completed(buyer_id, software.id):
            raise ConflictError("You already own this software")
        purchase = await self._purchases.create(
            user_id=buyer_id,
            software_id=software.id,
            payment_method=payment_method,
            amount=software.price,
            currency=software.currency,
            status=PurchaseStatus.PENDING,
            license_key=generate_license_key(),
            download_count=0,
            max_downloads=self._max_downloads,
            purchase_date=datetime.now(timezone.utc),
        )
        logger.info("Direct purchase created", purchase_id=purchase.id, user_id=buyer_id, software_id=software.id)
        return purchase

    async def _transition(self, purchase_id: int, target: PurchaseStatus, **fields) -> Purchase:
        updated = await self._purchases.update(
            purchase_id,
            expected_status=target.allowed_sources(),
            status=target,
            **fields
        )
        if updated is not None:
            logger.info("Purchase status changed", purchase_id=purchase_id, status=str(target))
            return updated
        current = await self.get(purchase_id)
        raise InvalidTransitionError(
            f"Cannot move purchase from {current.status} to {target}", current=current
        )

    async def mark_completed(
            self,
            purchase_id: int,
            transaction_id: Optional[str] = None,
            payment_id: Optional[str] = None,
    ) -> Optional[Purchase]:
        """Returns None when the purchase was already completed by an earlier delivery."""
        fields = {"completed_at": datetime.now(timezone.utc)}
        if transaction_id:
            fields["transaction_id"] = transaction_id
        if payment_id:
            fields["stripe_payment_id"] = payment_id
        try:
            return await self._transition(purchase_id, PurchaseStatus.COMPLETED, **fields)
        except InvalidTransitionError as e:
            if e.current.status == PurchaseStatus.COMPLETED:
                logger.info("Purchase already completed", purchase_id=purchase_id, transaction_id=transaction_id)
                return None
            raise

    async def mark_failed(self, purchase_id: int, reason: Optional[str] = None) -> Purchase:
        return await self._transition(purchase_id, PurchaseStatus.FAILED, notes=reason)

    async def mark_cancelled(self, purchase_id: int, reason: Optional[str] = None) -> Purchase:
        return await self._transition(purchase_id, PurchaseStatus.CANCELLED, notes=reason)

    async def mark_refunded(self, purchase_id: int, reason: Optional[str] = None) -> Purchase:
        return await self._transition(
            purchase_id,
            PurchaseStatus.REFUNDED,
            refunded_at=datetime.now(timezone.utc),
            refund_reason=reason,
        )

    async def attach_session(self, purchase_id: int, session_id: str, payment_id: Optional[str] = None) -> Purchase:
        fields = {"stripe_session_id": session_id}
        if payment_id:
            fields["stripe_payment_id"] = payment_id
        updated = await self._purchases.update(purchase_id, **fields)
        if updated is None:
            raise NotFoundError("Purchase not found")
        return updated

    async def set_expiry(self, purchase_id: int, expires_at: datetime) -> Optional[Purchase]:
        updated = await self._purchases.update(purchase_id, expires_unset=True, expires_at=expires_at)
        if updated is None:
            logger.warning("Purchase expiry already set, keeping it", purchase_id=purchase_id)
        return updated

    async def record_download(self, purchase: Purchase) -> Purchase:
        if purchase.download_count >= purchase.max_downloads:
            raise LimitExceededError()
        updated = await self._purchases.update(
            purchase.id,
            expected_status=[PurchaseStatus.COMPLETED],
            expected_download_count=purchase.download_count,
            download_count=purchase.download_count + 1,
            last_download=datetime.now(timezone.utc),
        )
        if updated is not None:
            return updated
        # someone else moved the row, re-check against what is stored now
        fresh = await self.get(purchase.id)
        if fresh.status != PurchaseStatus.COMPLETED:
            raise NotCompletedError()
        return await self.record_download(fresh)

    def _page(self, page: int, limit: int) -> Tuple[int, int]:
        page = max(page, 1)
        if limit <= 0:
            limit = settings.purchase_config.page_size
        return page, min(limit, settings.purchase_config.max_page_size)

    async def list_for_user(
            self,
            user_id: int,
            status: Optional[PurchaseStatus] = None,
            page: int = 1,
            limit: int = 20,
    ) -> Tuple[List[Purchase], int, int, int]:
        page, limit = self._page(page, limit)
        purchases, total = await self._purchases.list(user_id=user_id, status=status, page=page, limit=limit)
        return purchases, total, page, limit

    async def list_all(
            self,
            status: Optional[PurchaseStatus] = None,
            user_id: Optional[int] = None,
            software_id: Optional[int] = None,
            sort_by: str = "purchaseDate",
            sort_order: str = "desc",
            page: int = 1,
            limit: int = 20,
    ) -> Tuple[List[Purchase], int, int, int]:
        page, limit = self._page(page, limit)
        purchases, total = await self._purchases.list(
            user_id=user_id,
            software_id=software_id,
            status=status,
            sort_by=sort_by,
            descending=sort_order != "asc",
            page=page,
            limit=limit,
        )
        return purchases, total, page, limit
