"""Idempotent upsert contract shared by pull sync and webhooks."""

import logging
from typing import Any
from uuid import UUID

from app.core.exceptions import MappingError
from app.services.mapping import map_customer, map_order, map_order_item, map_product, parse_int
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class RecordUpserter:
    """Writes platform records into the mirror keyed by (store_id, external_id).

    Both the pull synchronizer and the webhook ingester go through this class,
    so a record looks the same whichever channel delivered it last.
    """

    def __init__(self, records: RecordStore) -> None:
        self.records = records

    async def upsert_customer(self, store_id: UUID, data: dict[str, Any]) -> UUID:
        return await self.records.upsert_customer(map_customer(store_id, data))

    async def upsert_product(self, store_id: UUID, data: dict[str, Any]) -> UUID:
        return await self.records.upsert_product(map_product(store_id, data))

    async def upsert_order(self, store_id: UUID, data: dict[str, Any]) -> UUID:
        """Upsert an order, then each of its line items.

        The local customer is resolved from the embedded customer object; a
        customer not mirrored yet leaves the link empty. Line items are written
        after the order so they can reference it. A malformed line item is
        skipped and the rest of the order still applies.
        """
        if not isinstance(data, dict):
            raise MappingError(f"Expected an order object, got {type(data).__name__}")

        customer = data.get("customer")
        customer_external_id = (
            parse_int(customer.get("id"), None) if isinstance(customer, dict) else None
        )
        customer_id = await self.records.find_customer_id(store_id, customer_external_id)

        order_id = await self.records.upsert_order(map_order(store_id, data, customer_id))

        for item in data.get("line_items") or []:
            try:
                await self._upsert_line_item(store_id, order_id, item)
            except MappingError as e:
                logger.warning(
                    "Skipping line item %s of order %s: %s",
                    item.get("id") if isinstance(item, dict) else None,
                    data.get("id"),
                    e,
                )

        return order_id

    async def _upsert_line_item(self, store_id: UUID, order_id: UUID, item: Any) -> UUID:
        product_external_id = (
            parse_int(item.get("product_id"), None) if isinstance(item, dict) else None
        )
        product_id = await self.records.find_product_id(store_id, product_external_id)
        return await self.records.upsert_order_item(map_order_item(order_id, item, product_id))
