from app.api.catalog import router as catalog_router
from app.api.checkout import router as checkout_router
from app.api.health import router as health_router
from app.api.purchases import router as purchases_router
from app.api.users import router as users_router
from app.api.webhooks import router as webhooks_router
