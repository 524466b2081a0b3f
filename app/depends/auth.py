from typing import Annotated

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.requests import Request
from supabase import AsyncClient
from supabase_auth.errors import AuthError

from app.depends.db import get_db
from app.exceptions import ForbiddenError, UnauthorizedError
from app.models.users import Principal
from app.repository.users_repository import UsersRepository

logger = structlog.get_logger(__name__)


async def auth_dependency(
        request: Request,
        auth: Annotated[HTTPAuthorizationCredentials, Depends(HTTPBearer(auto_error=False))],
        db: AsyncClient = Depends(get_db),
) -> Principal:
    if not auth:
        raise UnauthorizedError()

    try:
        user_response = await db.auth.get_user(jwt=auth.credentials)
    except AuthError as e:
        logger.info("Rejected access token", error=str(e))
        raise UnauthorizedError("Invalid or expired token")
    if not (user_response and user_response.user):
        raise UnauthorizedError("Invalid or expired token")

    principal = await UsersRepository(db).get_by_auth_id(user_response.user.id)
    if principal is None:
        raise UnauthorizedError("User not found")
    if principal.banned:
        raise ForbiddenError("Account is banned")

    request.state.user = principal
    return principal


async def admin_dependency(principal: Principal = Depends(auth_dependency)) -> Principal:
    if not principal.is_admin:
        logger.warning("Admin route refused", uid=principal.uid, badge=principal.badge)
        raise ForbiddenError("Admin privileges required")
    return principal
