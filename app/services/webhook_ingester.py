"""Realtime ingestion of Shopify webhooks and storefront events."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import MappingError, StoreNotFoundError, WebhookSignatureError
from app.core.logging_config import bind_store
from app.integrations.shopify.webhooks import WebhookTopic, verify_webhook
from app.models.custom_event import CustomEvent
from app.models.store import Store
from app.schemas.events import CustomEventCreate
from app.services.mapping import external_id, parse_int, parse_timestamp
from app.services.record_store import RecordStore
from app.services.store_directory import StoreDirectory
from app.services.upserter import RecordUpserter

logger = logging.getLogger(__name__)


class WebhookIngester:
    """Applies one webhook delivery to the mirror.

    Deliveries may be repeated or arrive out of order. Every handler is an
    upsert or a narrow update keyed by the platform id, so replays converge.
    Webhooks never touch a store's sync status.
    """

    def __init__(self, session: AsyncSession, secret: str | None = None) -> None:
        self.session = session
        self.secret = settings.shopify_webhook_secret if secret is None else secret
        self.records = RecordStore(session)
        self.upserter = RecordUpserter(self.records)
        self.directory = StoreDirectory(session)

    def verify(self, body: bytes, signature: str | None) -> None:
        if not verify_webhook(body, signature, self.secret):
            raise WebhookSignatureError()

    async def resolve_store(self, shop_domain: str | None) -> Store:
        store = await self.directory.find_active_by_domain(shop_domain) if shop_domain else None
        if store is None:
            raise StoreNotFoundError(f"No active store for shop domain {shop_domain!r}")
        return store

    async def ingest(
        self,
        topic: WebhookTopic,
        body: bytes,
        signature: str | None,
        shop_domain: str | None,
    ) -> Store:
        """Verify, resolve and apply a webhook delivery, then commit.

        Raises:
            WebhookSignatureError: Before anything is read or written.
            StoreNotFoundError: If no active store owns the shop domain.
            MappingError: If the body is not a JSON object or a record is malformed.
        """
        self.verify(body, signature)

        try:
            data = json.loads(body)
        except ValueError as e:
            raise MappingError("Webhook body is not valid JSON") from e
        if not isinstance(data, dict):
            raise MappingError("Webhook body is not a JSON object")

        store = await self.resolve_store(shop_domain)

        with bind_store(store.id):
            try:
                await self.handle(store, topic, data)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise
            logger.info("Processed %s webhook for %s", topic.value, store.shop_domain)
        return store

    async def handle(self, store: Store, topic: WebhookTopic, data: dict[str, Any]) -> None:
        """Dispatch a parsed payload by topic. Does not commit."""
        match topic:
            case WebhookTopic.CUSTOMERS_CREATE | WebhookTopic.CUSTOMERS_UPDATE:
                await self.upserter.upsert_customer(store.id, data)
            case WebhookTopic.PRODUCTS_CREATE | WebhookTopic.PRODUCTS_UPDATE:
                await self.upserter.upsert_product(store.id, data)
            case WebhookTopic.ORDERS_CREATE | WebhookTopic.ORDERS_UPDATED:
                await self.upserter.upsert_order(store.id, data)
            case WebhookTopic.ORDERS_PAID:
                await self._order_paid(store, data)
            case WebhookTopic.ORDERS_CANCELLED:
                await self._order_cancelled(store, data)

    async def _order_paid(self, store: Store, data: dict[str, Any]) -> None:
        order_id = external_id(data)
        fields: dict[str, Any] = {
            "financial_status": "paid",
            "processed_at": parse_timestamp(data.get("processed_at")) or datetime.now(UTC),
        }
        if data.get("updated_at"):
            fields["platform_updated_at"] = parse_timestamp(data["updated_at"])
        await self._update_order(store, data, fields)

        customer = data.get("customer")
        customer_id = await self.records.find_customer_id(
            store.id,
            parse_int(customer.get("id"), None) if isinstance(customer, dict) else None,
        )
        await self.records.add_event_once(
            store_id=store.id,
            message_id=f"{WebhookTopic.ORDERS_PAID.value}:{order_id}",
            customer_id=customer_id,
            event_type="checkout_completed",
            event_name="Order Paid",
            event_data={
                "order_id": order_id,
                "order_number": data.get("order_number"),
                "total_price": data.get("total_price"),
                "currency": data.get("currency"),
            },
            source="shopify",
        )

    async def _order_cancelled(self, store: Store, data: dict[str, Any]) -> None:
        fields: dict[str, Any] = {
            "financial_status": "voided",
            "cancelled_at": parse_timestamp(data.get("cancelled_at")) or datetime.now(UTC),
        }
        if "cancel_reason" in data:
            fields["cancel_reason"] = data["cancel_reason"]
        if data.get("updated_at"):
            fields["platform_updated_at"] = parse_timestamp(data["updated_at"])
        await self._update_order(store, data, fields)

    async def _update_order(
        self, store: Store, data: dict[str, Any], fields: dict[str, Any]
    ) -> None:
        """Narrow status update; an order not mirrored yet is upserted from the payload first."""
        order_id = external_id(data)
        if await self.records.update_order(store.id, order_id, **fields):
            return
        logger.info("Order %s not mirrored yet, upserting from webhook payload", order_id)
        await self.upserter.upsert_order(store.id, data)
        await self.records.update_order(store.id, order_id, **fields)

    async def record_custom_event(
        self,
        event: CustomEventCreate,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> CustomEvent:
        """Append a storefront event. Events are never deduplicated.

        Raises:
            StoreNotFoundError: If the store does not exist.
        """
        store = await self.directory.get(event.store_id)
        if store is None:
            raise StoreNotFoundError(f"Store {event.store_id} not found")

        customer_id = event.customer_id
        if customer_id and not await self.records.customer_belongs_to_store(customer_id, store.id):
            customer_id = None

        row = await self.records.add_event(
            store_id=store.id,
            customer_id=customer_id,
            event_type=event.event_type,
            event_name=event.event_name,
            event_data=event.event_data,
            session_id=event.session_id,
            user_id=event.user_id,
            anonymous_id=event.anonymous_id,
            url=event.url,
            referrer=event.referrer,
            user_agent=user_agent,
            ip_address=ip_address,
            properties=event.properties,
            context=event.context,
            traits=event.traits,
            source="web",
        )
        await self.session.commit()
        return row
