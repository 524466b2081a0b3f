import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import sentry_sdk
import structlog

from app.models.catalog import Product
from app.models.entitlement import Entitlement
from app.models.purchase import Purchase
from app.repository.roles_repository import RolesRepository
from app.services.cache.base import BaseCacheService
from app.services.ledger_service import LedgerService
from app.settings import settings

logger = structlog.getLogger(__name__)


class EntitlementService:
    _cache_entitlements_key = "users:entitlements"

    def __init__(
            self,
            roles: RolesRepository,
            ledger: LedgerService,
            cache: BaseCacheService,
            cache_ttl: Optional[int] = None,
    ):
        self._roles = roles
        self._ledger = ledger
        self.cache = cache
        self._cache_ttl = cache_ttl or settings.entitlement_cache_ttl

    def _entitlements_key(self, user_uid: int) -> str:
        return f"{self._cache_entitlements_key}:{user_uid}"

    async def grant(
            self,
            user_uid: int,
            role_id: int,
            duration_days: Optional[int] = None,
            assigned_by: Optional[int] = None,
            purchase_id: Optional[int] = None,
    ) -> Entitlement:
        """Always writes a new assignment; existing ones for the same role are left alone."""
        expires_at = None
        if duration_days and duration_days > 0:
            expires_at = datetime.now(timezone.utc) + timedelta(days=duration_days)
        entitlement = await self._roles.create_assignment(
            user_uid=user_uid,
            role_id=role_id,
            expires_at=expires_at,
            assigned_by=assigned_by,
            metadata={"purchase_id": purchase_id} if purchase_id is not None else None,
        )
        logger.info(
            "Role granted",
            user_uid=user_uid,
            role_id=role_id,
            expires_at=expires_at,
            purchase_id=purchase_id,
        )
        await self.revalidate_user(user_uid)
        return entitlement

    async def grant_for_purchase(self, purchase: Purchase, product: Optional[Product]) -> Optional[Entitlement]:
        if product is None or product.role_id is None:
            return None
        role = await self._roles.get_role(product.role_id)
        if role is None:
            logger.warning("Product role does not exist", product_slug=product.slug, role_id=product.role_id)
            sentry_sdk.set_context("entitlement", {"purchase_id": purchase.id, "role_id": product.role_id})
            sentry_sdk.capture_message("Product role does not exist")
            return None
        entitlement = await self._roles.find_by_purchase(purchase.id)
        if entitlement is not None:
            logger.info("Purchase already granted", purchase_id=purchase.id, entitlement_id=entitlement.id)
        else:
            entitlement = await self.grant(
                user_uid=purchase.user_id,
                role_id=role.id,
                duration_days=purchase.duration_days,
                assigned_by=purchase.user_id,
                purchase_id=purchase.id,
            )
        if entitlement.expires_at is not None and purchase.expires_at is None:
            await self._ledger.set_expiry(purchase.id, entitlement.expires_at)
        return entitlement

    def _ttl_for(self, entitlements: List[Entitlement]) -> int:
        now = datetime.now(timezone.utc)
        ttl = self._cache_ttl
        for entitlement in entitlements:
            if entitlement.expires_at is not None:
                ttl = min(ttl, int((entitlement.expires_at - now).total_seconds()))
        return max(ttl, 1)

    async def get_active_entitlements(self, user_uid: int) -> List[Entitlement]:
        cached = await self.cache.get(self._entitlements_key(user_uid))
        if cached is not None:
            return [Entitlement.model_validate(item) for item in json.loads(cached)]
        entitlements = [e for e in await self._roles.list_assignments(user_uid) if e.is_valid()]
        await self.cache.set(
            self._entitlements_key(user_uid),
            json.dumps([e.model_dump(mode="json") for e in entitlements]),
            ttl=self._ttl_for(entitlements),
        )
        return entitlements

    async def revalidate_user(self, user_uid: int):
        await self.cache.delete(self._entitlements_key(user_uid))
