from datetime import datetime, timezone
from typing import Optional

import structlog

from app.exceptions import DownloadDeniedError, ExpiredError, LimitExceededError, NotCompletedError
from app.models.purchase import DownloadResult, Purchase, PurchaseStatus
from app.repository.products_repository import ProductsRepository
from app.repository.software_repository import SoftwareRepository
from app.services.ledger_service import LedgerService, is_download_allowed

logger = structlog.getLogger(__name__)


def denial_for(purchase: Purchase, now: Optional[datetime] = None) -> DownloadDeniedError:
    # status first, then the counter, then expiry
    if purchase.status != PurchaseStatus.COMPLETED:
        return NotCompletedError()
    if purchase.download_count >= purchase.max_downloads:
        return LimitExceededError()
    if purchase.is_expired(now):
        return ExpiredError()
    return DownloadDeniedError()


class DownloadService:
    """Redeems downloads. Whether the caller may touch the purchase is decided by the route."""

    def __init__(self, ledger: LedgerService, products: ProductsRepository, software: SoftwareRepository):
        self._ledger = ledger
        self._products = products
        self._software = software

    async def redeem(self, purchase: Purchase) -> DownloadResult:
        now = datetime.now(timezone.utc)
        if not is_download_allowed(purchase, now):
            denial = denial_for(purchase, now)
            logger.info("Download denied", purchase_id=purchase.id, reason=denial.message)
            raise denial

        updated = await self._ledger.record_download(purchase)
        logger.info(
            "Download recorded",
            purchase_id=updated.id,
            download_count=updated.download_count,
            max_downloads=updated.max_downloads,
        )
        return DownloadResult(
            download_url=await self._download_target(updated),
            remaining_downloads=updated.max_downloads - updated.download_count,
        )

    async def _download_target(self, purchase: Purchase) -> Optional[str]:
        if purchase.product_slug:
            product = await self._products.get_by_slug(purchase.product_slug)
            return product.download_url if product else None
        software = await self._software.get(purchase.software_id)
        return software.download_url if software else None
