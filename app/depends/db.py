from supabase import AsyncClient

from app.services.db.supabase import SupabaseConnectionService


async def get_db() -> AsyncClient:
    return await SupabaseConnectionService().connect()
