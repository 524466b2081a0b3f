from typing import Optional

from app.models.base import CamelModel

ADMIN_BADGES = {"Owner", "Admin"}


class Principal(CamelModel):
    uid: int
    username: str
    email: Optional[str] = None
    badge: Optional[str] = None
    banned: bool = False
    ban_reason: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.badge in ADMIN_BADGES
