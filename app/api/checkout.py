from fastapi import APIRouter, Depends

from app.depends.auth import auth_dependency
from app.depends.services import get_checkout_service
from app.models.stripe.checkout import CreateCheckoutSessionDTO
from app.models.users import Principal
from app.services.checkout_service import CheckoutService

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/create-checkout-session")
async def create_checkout_session(
        data: CreateCheckoutSessionDTO,
        principal: Principal = Depends(auth_dependency),
        service: CheckoutService = Depends(get_checkout_service),
):
    session = await service.create_checkout_session(principal.uid, data.product_slug, data.duration)
    return {
        "success": True,
        "sessionId": session.session_id,
        "url": session.url,
    }


@router.get("/session/{session_id}")
async def get_session(
        session_id: str,
        _principal: Principal = Depends(auth_dependency),
        service: CheckoutService = Depends(get_checkout_service),
):
    return {
        "success": True,
        "session": await service.get_session_status(session_id),
    }
