"""Public endpoint for storefront analytics events."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import ValidationError

from app.core.config import settings
from app.core.deps import DBSession
from app.core.exceptions import StoreNotFoundError
from app.core.rate_limit import get_client_ip, limiter
from app.schemas.events import CustomEventCreate, CustomEventResponse
from app.services.webhook_ingester import WebhookIngester

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=CustomEventResponse)
@limiter.limit(settings.custom_events_rate_limit)
async def record_event(request: Request, db: DBSession) -> CustomEventResponse:
    """Record a custom event sent by storefront code.

    No authentication; rate limited per client IP. Events are appended as
    received and never deduplicated.
    """
    try:
        payload: Any = await request.json()
        event = CustomEventCreate.model_validate(payload)
    except (ValueError, ValidationError) as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Missing or invalid event fields") from e

    try:
        row = await WebhookIngester(db).record_custom_event(
            event,
            user_agent=request.headers.get("User-Agent"),
            ip_address=get_client_ip(request),
        )
    except StoreNotFoundError as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Store not found") from e
    except Exception as e:
        logger.exception("Failed to record %s event for store %s", event.event_type, event.store_id)
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Event processing failed"
        ) from e

    return CustomEventResponse(status="recorded", id=row.id)
