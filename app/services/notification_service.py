import asyncio
from typing import Any, Dict, Optional

import sentry_sdk
import structlog

from app.models.notification import NotificationType
from app.repository.notifications_repository import NotificationsRepository
from app.settings import settings

logger = structlog.getLogger(__name__)


class NotificationService:
    """Writes user notifications. Runs after the response, so it retries on its own and never raises."""

    def __init__(
            self,
            notifications: NotificationsRepository,
            max_attempts: Optional[int] = None,
            backoff_seconds: Optional[float] = None,
    ):
        self._notifications = notifications
        self._max_attempts = max_attempts or settings.notification_config.max_attempts
        self._backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.notification_config.backoff_seconds
        )

    async def notify(
            self,
            user_uid: int,
            title: str,
            message: str,
            type: NotificationType = NotificationType.PURCHASE,
            data: Optional[Dict[str, Any]] = None,
            related_id: Optional[int] = None,
    ) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._notifications.create(
                    user_uid=user_uid,
                    type=type,
                    title=title,
                    message=message,
                    data=data,
                    related_id=related_id,
                )
                logger.debug("Notification created", user_uid=user_uid, type=str(type), attempt=attempt)
                return True
            except Exception as e:
                logger.warning(
                    "Failed to create notification",
                    user_uid=user_uid,
                    type=str(type),
                    attempt=attempt,
                    error=str(e),
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._backoff_seconds * attempt)
        sentry_sdk.set_context("notification", {"user_uid": user_uid, "type": str(type), "related_id": related_id})
        sentry_sdk.capture_message("Giving up on notification")
        return False
