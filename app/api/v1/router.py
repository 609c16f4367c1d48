"""API v1 router combining all route modules."""

from fastapi import APIRouter

from app.api.v1 import events, health, sync
from app.api.v1.webhooks import shopify as shopify_webhooks

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Sync trigger, status and settings
api_router.include_router(
    sync.router,
    tags=["sync"],
)

# Shopify webhooks (no auth - verified via HMAC)
api_router.include_router(
    shopify_webhooks.router,
    prefix="/webhooks/shopify",
    tags=["webhooks"],
)

# Storefront events (no auth, rate limited)
api_router.include_router(
    events.router,
    prefix="/events",
    tags=["events"],
)
