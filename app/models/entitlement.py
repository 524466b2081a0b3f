from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.models.base import CamelModel


class Role(CamelModel):
    id: int
    slug: str
    name: str
    description: str = ""
    permissions: List[str] = []
    active: bool = True

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions or "*" in self.permissions


class Entitlement(CamelModel):
    """A role assignment. Never mutated once written; a newer assignment supersedes it."""
    id: int
    user_uid: int
    role_id: int
    assigned_at: datetime
    assigned_by: Optional[int] = None
    expires_at: Optional[datetime] = None
    active: bool = True
    metadata: Dict[str, Any] = {}

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or datetime.now(timezone.utc))

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.active and not self.is_expired(now)
