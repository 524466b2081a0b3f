from typing import Dict, List, Optional

import structlog

from app.models.purchase import BuyerSummary
from app.models.users import Principal
from app.repository.base import BaseRepository

logger = structlog.getLogger(__name__)


class UsersRepository(BaseRepository):
    """Read-only view over the platform's user profiles."""
    table_name = "users"

    async def get_by_auth_id(self, auth_id: str) -> Optional[Principal]:
        response = await self.repository.select(
            "uid, username, email, badge, banned, ban_reason"
        ).eq("auth_id", auth_id).limit(1).execute()
        if not response.data:
            logger.warning("No profile for auth user", auth_id=auth_id)
            return None
        return Principal.model_validate(response.data[0])

    async def get_summaries(self, uids: List[int]) -> Dict[int, BuyerSummary]:
        if not uids:
            return {}
        response = await self.repository.select("uid, username, email").in_("uid", list(set(uids))).execute()
        return {row["uid"]: BuyerSummary.model_validate(row) for row in response.data}
