"""Shopify webhook handlers for realtime mirror updates."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from app.core.deps import DBSession
from app.core.exceptions import StoreNotFoundError, WebhookSignatureError
from app.integrations.shopify.webhooks import WebhookTopic
from app.services.webhook_ingester import WebhookIngester

logger = logging.getLogger(__name__)

router = APIRouter()


async def _ingest(topic: WebhookTopic, request: Request, db: DBSession) -> dict[str, str]:
    """Read the raw body and hand it to the ingester, mapping failures to HTTP errors."""
    body = await request.body()
    signature = request.headers.get("X-Shopify-Hmac-Sha256")
    shop_domain = request.headers.get("X-Shopify-Shop-Domain")

    try:
        await WebhookIngester(db).ingest(topic, body, signature, shop_domain)
    except WebhookSignatureError as e:
        logger.warning("Rejected %s webhook from %s: invalid signature", topic.value, shop_domain)
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, e.message) from e
    except StoreNotFoundError as e:
        logger.warning("Ignoring %s webhook for unknown shop %s", topic.value, shop_domain)
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Store not found") from e
    except Exception as e:
        logger.exception("Failed to process %s webhook from %s", topic.value, shop_domain)
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed"
        ) from e

    return {"status": "processed"}


@router.post("/customers-create")
async def customers_create(request: Request, db: DBSession) -> dict[str, str]:
    """Handle customer creation webhook."""
    return await _ingest(WebhookTopic.CUSTOMERS_CREATE, request, db)


@router.post("/customers-update")
async def customers_update(request: Request, db: DBSession) -> dict[str, str]:
    """Handle customer update webhook."""
    return await _ingest(WebhookTopic.CUSTOMERS_UPDATE, request, db)


@router.post("/products-create")
async def products_create(request: Request, db: DBSession) -> dict[str, str]:
    """Handle product creation webhook."""
    return await _ingest(WebhookTopic.PRODUCTS_CREATE, request, db)


@router.post("/products-update")
async def products_update(request: Request, db: DBSession) -> dict[str, str]:
    """Handle product update webhook."""
    return await _ingest(WebhookTopic.PRODUCTS_UPDATE, request, db)


@router.post("/orders-create")
async def orders_create(request: Request, db: DBSession) -> dict[str, str]:
    """Handle order creation webhook."""
    return await _ingest(WebhookTopic.ORDERS_CREATE, request, db)


@router.post("/orders-updated")
async def orders_updated(request: Request, db: DBSession) -> dict[str, str]:
    """Handle order update webhook."""
    return await _ingest(WebhookTopic.ORDERS_UPDATED, request, db)


@router.post("/orders-paid")
async def orders_paid(request: Request, db: DBSession) -> dict[str, str]:
    """Handle order paid webhook (also records a checkout_completed event)."""
    return await _ingest(WebhookTopic.ORDERS_PAID, request, db)


@router.post("/orders-cancelled")
async def orders_cancelled(request: Request, db: DBSession) -> dict[str, str]:
    """Handle order cancellation webhook."""
    return await _ingest(WebhookTopic.ORDERS_CANCELLED, request, db)
