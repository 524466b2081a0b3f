from fastapi import APIRouter, Depends

from app.depends.auth import auth_dependency
from app.depends.services import get_entitlement_service
from app.models.users import Principal
from app.services.entitlement_service import EntitlementService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/entitlements")
async def get_my_entitlements(
        principal: Principal = Depends(auth_dependency),
        entitlements: EntitlementService = Depends(get_entitlement_service),
):
    return {
        "success": True,
        "entitlements": await entitlements.get_active_entitlements(principal.uid),
    }
