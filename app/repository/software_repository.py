from typing import List, Optional, Tuple

import structlog
from postgrest.types import CountMethod

from app.models.catalog import Software, SoftwareCategory, SoftwareStatus
from app.repository.base import BaseRepository

logger = structlog.getLogger(__name__)


class SoftwareRepository(BaseRepository):
    table_name = "software"

    async def get(self, software_id: int) -> Optional[Software]:
        response = await self.repository.select("*").eq("id", software_id).limit(1).execute()
        if not response.data:
            return None
        return Software.model_validate(response.data[0])

    async def get_many(self, software_ids: List[int]) -> List[Software]:
        if not software_ids:
            return []
        response = await self.repository.select("*").in_("id", list(set(software_ids))).execute()
        return [Software.model_validate(row) for row in response.data]

    async def list(
            self,
            category: Optional[SoftwareCategory] = None,
            status: Optional[SoftwareStatus] = None,
            page: int = 1,
            limit: int = 20,
    ) -> Tuple[List[Software], int]:
        query = self.repository.select("*", count=CountMethod.exact)
        if category is not None:
            query = query.eq("category", category.value)
        if status is not None:
            query = query.eq("status", status.value)
        start = (page - 1) * limit
        response = await query.order("created_at", desc=True).range(start, start + limit - 1).execute()
        return [Software.model_validate(row) for row in response.data], response.count or 0

    async def increment_sales(self, software_id: int) -> int:
        # done in the database so concurrent sales are not lost
        response = await self.db.rpc("increment_software_sales", {"p_software_id": software_id}).execute()
        logger.debug("Incremented software sales", software_id=software_id, total_sales=response.data)
        return response.data or 0
