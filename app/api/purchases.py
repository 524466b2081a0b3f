from typing import Dict, List, Literal, Optional

import structlog
from fastapi import APIRouter, Depends, Query

from app.depends.auth import admin_dependency, auth_dependency
from app.depends.services import (
    get_download_service,
    get_ledger_service,
    get_purchase_service,
    get_software_repository,
    get_users_repository,
)
from app.exceptions import ForbiddenError
from app.models.purchase import (
    CreatePurchaseDTO,
    Pagination,
    Purchase,
    PurchaseStatus,
    PurchaseWithDetails,
    RefundDTO,
    SoftwareSummary,
)
from app.models.users import Principal
from app.repository.software_repository import SoftwareRepository
from app.repository.users_repository import UsersRepository
from app.services.download_service import DownloadService
from app.services.ledger_service import LedgerService
from app.services.purchase_service import PurchaseService

router = APIRouter(prefix="/purchases", tags=["purchases"])

logger = structlog.getLogger(__name__)


async def _software_summaries(software: SoftwareRepository, purchases: List[Purchase]) -> Dict[int, SoftwareSummary]:
    # product purchases carry a product id in software_id, not a listing id
    listings = await software.get_many([p.software_id for p in purchases if p.product_slug is None])
    return {s.id: SoftwareSummary.model_validate(s.model_dump(mode="json")) for s in listings}


def _listing(summaries: Dict[int, SoftwareSummary], purchase: Purchase) -> Optional[SoftwareSummary]:
    if purchase.product_slug is not None:
        return None
    return summaries.get(purchase.software_id)


@router.post("", status_code=201)
async def create_purchase(
        data: CreatePurchaseDTO,
        principal: Principal = Depends(auth_dependency),
        service: PurchaseService = Depends(get_purchase_service),
):
    purchase = await service.purchase(principal.uid, data.software_id, data.payment_method)
    return {
        "success": True,
        "message": "Purchase completed successfully",
        "purchase": purchase,
    }


@router.get("")
async def list_purchases(
        status: Optional[PurchaseStatus] = None,
        user_id: Optional[int] = Query(None, alias="userId"),
        software_id: Optional[int] = Query(None, alias="softwareId"),
        sort_by: str = Query("purchaseDate", alias="sortBy"),
        sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1),
        _admin: Principal = Depends(admin_dependency),
        ledger: LedgerService = Depends(get_ledger_service),
        software: SoftwareRepository = Depends(get_software_repository),
        users: UsersRepository = Depends(get_users_repository),
):
    purchases, total, page, limit = await ledger.list_all(
        status=status,
        user_id=user_id,
        software_id=software_id,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    summaries = await _software_summaries(software, purchases)
    buyers = await users.get_summaries([p.user_id for p in purchases])
    return {
        "success": True,
        "purchases": [
            PurchaseWithDetails(
                **p.model_dump(),
                software=_listing(summaries, p),
                user=buyers.get(p.user_id),
            )
            for p in purchases
        ],
        "pagination": Pagination.build(page, limit, total),
    }


@router.get("/user/{user_id}")
async def list_user_purchases(
        user_id: int,
        status: Optional[PurchaseStatus] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1),
        principal: Principal = Depends(auth_dependency),
        ledger: LedgerService = Depends(get_ledger_service),
        software: SoftwareRepository = Depends(get_software_repository),
):
    if principal.uid != user_id and not principal.is_admin:
        raise ForbiddenError("You can only view your own purchases")
    purchases, total, page, limit = await ledger.list_for_user(user_id, status=status, page=page, limit=limit)
    summaries = await _software_summaries(software, purchases)
    return {
        "success": True,
        "purchases": [
            PurchaseWithDetails(**p.model_dump(), software=_listing(summaries, p))
            for p in purchases
        ],
        "pagination": Pagination.build(page, limit, total),
    }


@router.get("/{purchase_id}")
async def get_purchase(
        purchase_id: int,
        principal: Principal = Depends(auth_dependency),
        ledger: LedgerService = Depends(get_ledger_service),
        software: SoftwareRepository = Depends(get_software_repository),
):
    purchase = await ledger.get(purchase_id)
    if purchase.user_id != principal.uid and not principal.is_admin:
        raise ForbiddenError("Access denied")
    summaries = await _software_summaries(software, [purchase])
    return {
        "success": True,
        "purchase": PurchaseWithDetails(**purchase.model_dump(), software=_listing(summaries, purchase)),
    }


@router.post("/{purchase_id}/download")
async def download_purchase(
        purchase_id: int,
        principal: Principal = Depends(auth_dependency),
        ledger: LedgerService = Depends(get_ledger_service),
        downloads: DownloadService = Depends(get_download_service),
):
    purchase = await ledger.get(purchase_id)
    if purchase.user_id != principal.uid:
        raise ForbiddenError("You can only download your own purchases")
    result = await downloads.redeem(purchase)
    return {
        "success": True,
        "message": "Download recorded successfully",
        "downloadUrl": result.download_url,
        "remainingDownloads": result.remaining_downloads,
    }


@router.post("/{purchase_id}/refund")
async def refund_purchase(
        purchase_id: int,
        data: Optional[RefundDTO] = None,
        admin: Principal = Depends(admin_dependency),
        service: PurchaseService = Depends(get_purchase_service),
):
    logger.info("Refund requested", purchase_id=purchase_id, admin_uid=admin.uid)
    purchase = await service.refund(purchase_id, data.reason if data else None)
    return {
        "success": True,
        "message": "Purchase refunded successfully",
        "purchase": purchase,
    }
