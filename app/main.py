from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import (
    catalog_router,
    checkout_router,
    health_router,
    purchases_router,
    users_router,
    webhooks_router,
)
from app.api.errors import register_exception_handlers
import sentry_sdk

from app.services.cache.redis_cache import RedisCacheService
from app.services.db.supabase import SupabaseConnectionService
from app.settings import settings
from app.utils.logging import configure_logging

configure_logging(debug=settings.debug)

if not settings.debug and settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=1.0,
        profiles_sample_rate=1.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await RedisCacheService().connect()
        await SupabaseConnectionService().connect()
        yield
    finally:
        await RedisCacheService().disconnect()
        await SupabaseConnectionService().disconnect()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(catalog_router)
app.include_router(purchases_router)
app.include_router(checkout_router)
app.include_router(webhooks_router)
app.include_router(users_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8123, reload=settings.debug)
