"""Persistence primitives for mirrored records."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base
from app.models.custom_event import CustomEvent
from app.models.customer import Customer
from app.models.order import Order, OrderItem
from app.models.product import Product

logger = logging.getLogger(__name__)

STORE_KEY = ("store_id", "external_id")
ORDER_ITEM_KEY = ("order_id", "external_id")


class RecordStore:
    """Upserts, lookups and narrow updates against the mirror tables.

    Every upsert is a single INSERT .. ON CONFLICT DO UPDATE on the record's
    natural key, so concurrent writers of the same key resolve last-write-wins
    and repeated application is idempotent. Committing is left to the caller.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    # --- Upserts ---

    async def upsert_customer(self, values: dict[str, Any]) -> UUID:
        return await self._upsert(Customer, values, STORE_KEY)

    async def upsert_product(self, values: dict[str, Any]) -> UUID:
        return await self._upsert(Product, values, STORE_KEY)

    async def upsert_order(self, values: dict[str, Any]) -> UUID:
        return await self._upsert(Order, values, STORE_KEY)

    async def upsert_order_item(self, values: dict[str, Any]) -> UUID:
        return await self._upsert(OrderItem, values, ORDER_ITEM_KEY)

    async def _upsert(
        self,
        model: type[Base],
        values: dict[str, Any],
        key: tuple[str, ...],
    ) -> UUID:
        """Insert or fully replace the mutable columns of one record."""
        insert = pg_insert if self._dialect == "postgresql" else sqlite_insert
        stmt = insert(model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(key),
            set_={
                **{k: v for k, v in values.items() if k not in key},
                "updated_at": func.now(),
            },
        ).returning(model.id)
        result = await self.session.execute(stmt)
        record_id: UUID = result.scalar_one()
        return record_id

    @property
    def _dialect(self) -> str:
        return self.session.get_bind().dialect.name

    # --- Lookups ---

    async def find_customer_id(self, store_id: UUID, external_id: int | None) -> UUID | None:
        if external_id is None:
            return None
        stmt = select(Customer.id).where(
            Customer.store_id == store_id,
            Customer.external_id == external_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_product_id(self, store_id: UUID, external_id: int | None) -> UUID | None:
        if external_id is None:
            return None
        stmt = select(Product.id).where(
            Product.store_id == store_id,
            Product.external_id == external_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_order_id(self, store_id: UUID, external_id: int) -> UUID | None:
        stmt = select(Order.id).where(
            Order.store_id == store_id,
            Order.external_id == external_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def customer_belongs_to_store(self, customer_id: UUID, store_id: UUID) -> bool:
        stmt = select(Customer.id).where(Customer.id == customer_id, Customer.store_id == store_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    # --- Narrow updates ---

    async def update_order(self, store_id: UUID, external_id: int, **fields: Any) -> bool:
        """Update selected order columns; returns False when no order matched."""
        stmt = (
            update(Order)
            .where(Order.store_id == store_id, Order.external_id == external_id)
            .values(**fields, synced_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    # --- Events ---

    async def add_event(self, **values: Any) -> CustomEvent:
        """Append an analytics event."""
        now = datetime.now(UTC)
        values.setdefault("occurred_at", now)
        values.setdefault("received_at", now)
        event = CustomEvent(**values)
        self.session.add(event)
        await self.session.flush()
        return event

    async def add_event_once(self, *, store_id: UUID, message_id: str, **values: Any) -> bool:
        """Append an event unless one with the same message id was already recorded."""
        stmt = select(CustomEvent.id).where(
            CustomEvent.store_id == store_id,
            CustomEvent.message_id == message_id,
        )
        result = await self.session.execute(stmt)
        if result.first() is not None:
            logger.debug("Event %s already recorded for store %s", message_id, store_id)
            return False
        await self.add_event(store_id=store_id, message_id=message_id, **values)
        return True

    # --- Counts ---

    async def count_records(self, store_id: UUID) -> dict[str, int]:
        """Number of mirrored customers, products and orders of a store."""
        counts: dict[str, int] = {}
        for name, model in (("customers", Customer), ("products", Product), ("orders", Order)):
            stmt = select(func.count()).select_from(model).where(model.store_id == store_id)
            result = await self.session.execute(stmt)
            counts[name] = result.scalar_one()
        return counts
