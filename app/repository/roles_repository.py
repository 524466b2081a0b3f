from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from postgrest import APIError
from sentry_sdk import capture_exception

from app.models.entitlement import Entitlement, Role
from app.repository.base import BaseRepository, serialize

logger = structlog.getLogger(__name__)


class FailedToAssignRoleError(Exception):
    pass


class RolesRepository(BaseRepository):
    table_name = "roles"
    assignments_table_name = "user_roles"

    async def get_role(self, role_id: int) -> Optional[Role]:
        response = await self.repository.select("*").eq("id", role_id).limit(1).execute()
        if not response.data:
            return None
        return Role.model_validate(response.data[0])

    async def create_assignment(
            self,
            user_uid: int,
            role_id: int,
            expires_at: Optional[datetime] = None,
            assigned_by: Optional[int] = None,
            metadata: Optional[Dict[str, Any]] = None,
    ) -> Entitlement:
        try:
            response = await self.db.table(self.assignments_table_name).insert(serialize({
                "user_uid": user_uid,
                "role_id": role_id,
                "assigned_at": datetime.now(timezone.utc),
                "assigned_by": assigned_by,
                "expires_at": expires_at,
                "active": True,
                "metadata": metadata or {},
            })).execute()
        except APIError as e:
            logger.error("Failed to assign role", user_uid=user_uid, role_id=role_id, error=str(e))
            capture_exception(e)
            raise e
        if not response.data:
            raise FailedToAssignRoleError()
        return Entitlement.model_validate(response.data[0])

    async def list_assignments(self, user_uid: int, active_only: bool = True) -> List[Entitlement]:
        query = self.db.table(self.assignments_table_name).select("*").eq("user_uid", user_uid)
        if active_only:
            query = query.eq("active", True)
        response = await query.order("assigned_at", desc=True).execute()
        return [Entitlement.model_validate(row) for row in response.data]

    async def find_by_purchase(self, purchase_id: int) -> Optional[Entitlement]:
        response = await self.db.table(self.assignments_table_name).select("*").eq(
            "metadata->>purchase_id", str(purchase_id)
        ).limit(1).execute()
        if not response.data:
            return None
        return Entitlement.model_validate(response.data[0])
