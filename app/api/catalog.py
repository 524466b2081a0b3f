from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.depends.services import get_products_repository, get_software_repository
from app.exceptions import NotFoundError
from app.models.catalog import SoftwareCategory, SoftwareStatus
from app.models.purchase import Pagination
from app.repository.products_repository import ProductsRepository
from app.repository.software_repository import SoftwareRepository
from app.settings import settings

router = APIRouter(tags=["catalog"])


@router.get("/products")
async def list_products(products: ProductsRepository = Depends(get_products_repository)):
    return {"success": True, "products": await products.list(active_only=True)}


@router.get("/products/{slug}")
async def get_product(slug: str, products: ProductsRepository = Depends(get_products_repository)):
    product = await products.get_by_slug(slug, active_only=True)
    if product is None:
        raise NotFoundError("Product not found")
    return {"success": True, "product": product}


@router.get("/software")
async def list_software(
        category: Optional[SoftwareCategory] = None,
        status: Optional[SoftwareStatus] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1),
        software: SoftwareRepository = Depends(get_software_repository),
):
    limit = min(limit, settings.purchase_config.max_page_size)
    listings, total = await software.list(category=category, status=status, page=page, limit=limit)
    pagination = Pagination.build(page, limit, total)
    return {
        "success": True,
        "software": listings,
        "pagination": {
            "currentPage": pagination.current_page,
            "totalPages": pagination.total_pages,
            "total": total,
            "hasNext": pagination.has_next,
            "hasPrev": pagination.has_prev,
        },
    }


@router.get("/software/{software_id}")
async def get_software(software_id: int, software: SoftwareRepository = Depends(get_software_repository)):
    listing = await software.get(software_id)
    if listing is None:
        raise NotFoundError("Software not found")
    return {"success": True, "software": listing}
