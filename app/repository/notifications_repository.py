from typing import Any, Dict, Optional

from app.models.notification import NotificationType
from app.repository.base import BaseRepository, serialize


class NotificationsRepository(BaseRepository):
    table_name = "notifications"

    async def create(
            self,
            user_uid: int,
            type: NotificationType,
            title: str,
            message: str,
            data: Optional[Dict[str, Any]] = None,
            related_id: Optional[int] = None,
            from_user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        response = await self.repository.insert(serialize({
            "user_uid": user_uid,
            "type": type,
            "title": title,
            "message": message,
            "data": data or {},
            "related_id": related_id,
            "from_user_id": from_user_id,
        })).execute()
        return response.data[0] if response.data else {}
