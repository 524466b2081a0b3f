from typing import List, Optional

import structlog

from app.models.catalog import Product
from app.repository.base import BaseRepository

logger = structlog.getLogger(__name__)


class ProductsRepository(BaseRepository):
    table_name = "products"

    async def get(self, product_id: int) -> Optional[Product]:
        response = await self.repository.select("*").eq("id", product_id).limit(1).execute()
        if not response.data:
            return None
        return Product.model_validate(response.data[0])

    async def get_by_slug(self, slug: str, active_only: bool = False) -> Optional[Product]:
        query = self.repository.select("*").eq("slug", slug.strip().lower())
        if active_only:
            query = query.eq("active", True)
        response = await query.limit(1).execute()
        if not response.data:
            return None
        return Product.model_validate(response.data[0])

    async def list(self, active_only: bool = True) -> List[Product]:
        query = self.repository.select("*")
        if active_only:
            query = query.eq("active", True)
        response = await query.order("id").execute()
        return [Product.model_validate(row) for row in response.data]
