from typing import Iterable, List, Optional, Tuple

import structlog
from postgrest import APIError
from postgrest.types import CountMethod
from sentry_sdk import capture_exception

from app.models.purchase import Purchase, PurchaseStatus
from app.repository.base import BaseRepository, serialize

logger = structlog.getLogger(__name__)


class FailedToCreatePurchaseError(Exception):
    pass


class PurchasesRepository(BaseRepository):
    table_name = "purchases"
    sortable_fields = {
        "purchaseDate": "purchase_date",
        "completedAt": "completed_at",
        "amount": "amount",
        "status": "status",
        "id": "id",
    }

    async def create(self, **kwargs) -> Purchase:
        # id comes from the identity column, never computed here
        try:
            response = await self.repository.insert(
                serialize(kwargs), count=CountMethod.exact
            ).execute()
        except APIError as e:
            logger.error("Failed to create purchase", error=str(e))
            capture_exception(e)
            raise e
        if not response.data:
            raise FailedToCreatePurchaseError()
        return Purchase.model_validate(response.data[0])

    async def _find_one(self, column: str, value) -> Optional[Purchase]:
        response = await self.repository.select("*").eq(column, value).limit(1).execute()
        if not response.data:
            return None
        return Purchase.model_validate(response.data[0])

    async def get(self, purchase_id: int) -> Optional[Purchase]:
        return await self._find_one("id", purchase_id)

    async def get_by_payment_id(self, payment_id: str) -> Optional[Purchase]:
        return await self._find_one("stripe_payment_id", payment_id)

    async def find_completed(self, user_id: int, software_id: int) -> Optional[Purchase]:
        response = await self.repository.select("*").eq(
            "user_id", user_id
        ).eq(
            "software_id", software_id
        ).eq(
            "status", PurchaseStatus.COMPLETED.value
        ).is_(
            "product_slug", "null"
        ).limit(1).execute()
        if not response.data:
            return None
        return Purchase.model_validate(response.data[0])

    async def update(
            self,
            purchase_id: int,
            *,
            expected_status: Optional[Iterable[PurchaseStatus]] = None,
            expected_download_count: Optional[int] = None,
            expires_unset: bool = False,
            **kwargs
    ) -> Optional[Purchase]:
        """Conditional single-row update. Returns None when no row matched the guards."""
        query = self.repository.update(
            serialize(kwargs), count=CountMethod.exact
        ).eq("id", purchase_id)
        if expected_status is not None:
            query = query.in_("status", [s.value for s in expected_status])
        if expected_download_count is not None:
            query = query.eq("download_count", expected_download_count)
        if expires_unset:
            query = query.is_("expires_at", "null")
        try:
            response = await query.execute()
        except APIError as e:
            logger.error("Failed to update purchase", purchase_id=purchase_id, error=str(e))
            capture_exception(e)
            raise e
        if not response.data:
            return None
        return Purchase.model_validate(response.data[0])

    async def list(
            self,
            *,
            user_id: Optional[int] = None,
            software_id: Optional[int] = None,
            status: Optional[PurchaseStatus] = None,
            sort_by: str = "purchaseDate",
            descending: bool = True,
            page: int = 1,
            limit: int = 20,
    ) -> Tuple[List[Purchase], int]:
        query = self.repository.select("*", count=CountMethod.exact)
        if user_id is not None:
            query = query.eq("user_id", user_id)
        if software_id is not None:
            query = query.eq("software_id", software_id)
        if status is not None:
            query = query.eq("status", status.value)
        column = self.sortable_fields.get(sort_by, "purchase_date")
        start = (page - 1) * limit
        response = await query.order(column, desc=descending).range(start, start + limit - 1).execute()
        return [Purchase.model_validate(row) for row in response.data], response.count or 0
