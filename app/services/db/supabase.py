import structlog
from supabase import AsyncClient
from supabase.client import create_async_client
from supabase.lib.client_options import AsyncClientOptions

from app.services.db.base import BaseDBConnectionService
from app.settings import settings

logger = structlog.getLogger(__name__)


class SupabaseConnectionService(BaseDBConnectionService):
    db: AsyncClient | None = None

    async def _connect(self, **kwargs):
        if not self.db:
            logger.info("Connecting to supabase", url=settings.db_config.url)
            self.db = await create_async_client(
                settings.db_config.url,
                settings.db_config.password,
                AsyncClientOptions(
                    **kwargs
                )
            )
        return self.db

    async def _disconnect(self):
        await self.db.postgrest.aclose()
