import time
from typing import Optional

import structlog
from fastapi import BackgroundTasks

from app.exceptions import InvalidInputError, NotFoundError
from app.models.purchase import PaymentMethod, Purchase
from app.repository.software_repository import SoftwareRepository
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService
from app.settings import settings

logger = structlog.getLogger(__name__)


class PurchaseService:
    """Direct purchases of software listings, outside of the Stripe checkout."""

    def __init__(
            self,
            ledger: LedgerService,
            software: SoftwareRepository,
            notifier: NotificationService,
            tasks: Optional[BackgroundTasks] = None,
            auto_complete: Optional[bool] = None,
    ):
        self._ledger = ledger
        self._software = software
        self._notifier = notifier
        self._tasks = tasks
        self._auto_complete = (
            auto_complete if auto_complete is not None else settings.purchase_config.auto_complete_direct
        )

    async def purchase(
            self,
            buyer_id: int,
            software_id: Optional[int],
            payment_method: Optional[PaymentMethod],
    ) -> Purchase:
        if software_id is None or payment_method is None:
            raise InvalidInputError("Software ID and payment method are required")

        software = await self._software.get(software_id)
        if software is None:
            raise NotFoundError("Software not found")

        purchase = await self._ledger.create_direct(buyer_id, software, payment_method)
        if not self._auto_complete:
            return purchase

        # no payment processor behind this path, settle right away
        completed = await self._ledger.mark_completed(
            purchase.id,
            transaction_id=f"DEMO_{int(time.time() * 1000)}",
        )
        if completed is None:
            return await self._ledger.get(purchase.id)
        await self._software.increment_sales(software.id)
        if self._tasks is not None:
            self._tasks.add_task(
                self._notifier.notify,
                user_uid=buyer_id,
                title="Purchase Complete!",
                message=f"Your purchase of {software.name} has been completed successfully.",
                data={"purchaseId": completed.id, "softwareId": software.id},
                related_id=completed.id,
            )
        logger.info("Direct purchase completed", purchase_id=completed.id, software_id=software.id)
        return completed

    async def refund(self, purchase_id: int, reason: Optional[str] = None) -> Purchase:
        purchase = await self._ledger.mark_refunded(purchase_id, reason or "Refunded by admin")
        logger.info("Purchase refunded", purchase_id=purchase_id, reason=reason)
        return purchase
