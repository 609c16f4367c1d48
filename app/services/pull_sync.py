"""Paginated pull of platform collections into the mirror."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import MappingError
from app.integrations.shopify.client import ShopifyClient
from app.services.record_store import RecordStore
from app.services.upserter import RecordUpserter

logger = logging.getLogger(__name__)

RESOURCE_KINDS = ("customers", "products", "orders")


class PullSynchronizer:
    """Pulls one store's customers, products and orders page by page.

    Each page is committed before the next one is requested, so the progress
    of a run that fails midway is kept.
    """

    def __init__(self, session: AsyncSession, client: ShopifyClient, store_id: UUID) -> None:
        self.session = session
        self.client = client
        self.store_id = store_id
        self.records = RecordStore(session)
        self.upserter = RecordUpserter(self.records)

    async def sync(self, kind: str) -> int:
        """Sync one resource kind and return the number of records upserted."""
        handlers = {
            "customers": self.sync_customers,
            "products": self.sync_products,
            "orders": self.sync_orders,
        }
        if kind not in handlers:
            raise ValueError(f"Unknown resource kind: {kind}")
        return await handlers[kind]()

    async def sync_customers(self) -> int:
        return await self._pull("customers", self.upserter.upsert_customer)

    async def sync_products(self) -> int:
        return await self._pull("products", self.upserter.upsert_product)

    async def sync_orders(self) -> int:
        return await self._pull("orders", self.upserter.upsert_order)

    async def _pull(
        self,
        resource: str,
        upsert: Callable[[UUID, dict[str, Any]], Awaitable[UUID]],
    ) -> int:
        synced = 0
        page_info: str | None = None
        pages = 0

        try:
            while True:
                page = await self.client.fetch_page(resource, page_info)
                pages += 1

                for item in page.items:
                    try:
                        await upsert(self.store_id, item)
                    except MappingError as e:
                        logger.warning(
                            "Skipping malformed %s record %s: %s",
                            resource,
                            item.get("id") if isinstance(item, dict) else None,
                            e,
                        )
                        continue
                    synced += 1

                await self.records.commit()

                if not page.next_page_info:
                    break
                page_info = page.next_page_info
        except Exception:
            await self.records.rollback()
            logger.warning(
                "Pull of %s aborted after %d pages (%d records)", resource, pages, synced
            )
            raise

        logger.info("Pulled %d %s in %d pages", synced, resource, pages)
        return synced
