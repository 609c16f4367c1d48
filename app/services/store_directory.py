"""Store lookups and sync state transitions."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import StoreNotFoundError
from app.models.store import Store, SyncStatus

logger = logging.getLogger(__name__)

# Longest sync_error persisted on a store
MAX_ERROR_LENGTH = 500

INTERRUPTED_ERROR = "Sync interrupted before it finished"


class StoreDirectory:
    """Reads stores and moves them through pending/syncing/completed/failed."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, store_id: UUID) -> Store | None:
        return await self.session.get(Store, store_id, populate_existing=True)

    async def find_active_by_domain(self, shop_domain: str) -> Store | None:
        stmt = select(Store).where(
            Store.shop_domain == shop_domain,
            Store.is_active == True,  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_schedulable(self) -> list[Store]:
        """Active stores that are not in the middle of a sync."""
        stmt = (
            select(Store)
            .where(
                Store.is_active == True,  # noqa: E712
                Store.sync_status != SyncStatus.SYNCING,
            )
            .order_by(Store.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_auto_sync_ids(self) -> set[UUID]:
        """Ids of active stores with auto_sync on, whatever their sync status."""
        stmt = select(Store).where(Store.is_active == True)  # noqa: E712
        result = await self.session.execute(stmt)
        return {store.id for store in result.scalars().all() if store.sync_settings["auto_sync"]}

    def _stale_cutoff(self) -> datetime:
        return datetime.now(UTC) - timedelta(seconds=settings.stale_sync_timeout_seconds)

    def _is_stale_claim(self, cutoff: datetime) -> ColumnElement[bool]:
        # Claims always stamp last_sync_at
        return and_(Store.sync_status == SyncStatus.SYNCING, Store.last_sync_at < cutoff)

    async def claim_for_sync(self, store_id: UUID) -> Store | None:
        """Atomically move an active store to syncing.

        A store already syncing is only claimed when its claim is older than
        stale_sync_timeout_seconds, i.e. the previous run was killed without
        recording an outcome. Returns the claimed store, or None when the
        store is missing, inactive or busy. Two concurrent claims cannot both
        succeed.
        """
        stmt = (
            update(Store)
            .where(
                Store.id == store_id,
                Store.is_active == True,  # noqa: E712
                or_(
                    Store.sync_status != SyncStatus.SYNCING,
                    self._is_stale_claim(self._stale_cutoff()),
                ),
            )
            .values(
                sync_status=SyncStatus.SYNCING,
                last_sync_at=datetime.now(UTC),
                sync_error=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        if not result.rowcount:
            return None
        return await self.get(store_id)

    async def release_stale_claims(self) -> int:
        """Mark stores stuck in syncing past the timeout as failed.

        Returns the number of stores released.
        """
        stmt = (
            update(Store)
            .where(self._is_stale_claim(self._stale_cutoff()))
            .values(sync_status=SyncStatus.FAILED, sync_error=INTERRUPTED_ERROR)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        if result.rowcount:
            logger.warning("Released %d stores stuck in syncing", result.rowcount)
        return result.rowcount or 0

    async def finish_sync(
        self,
        store_id: UUID,
        status: SyncStatus,
        error: str | None = None,
    ) -> None:
        """Record the outcome of a sync run."""
        stmt = (
            update(Store)
            .where(Store.id == store_id)
            .values(
                sync_status=status,
                sync_error=error[:MAX_ERROR_LENGTH] if error else None,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def update_settings(self, store_id: UUID, partial: dict[str, Any]) -> Store:
        """Merge partial sync settings into the store's persisted settings."""
        store = await self.get(store_id)
        if store is None:
            raise StoreNotFoundError(f"Store {store_id} not found")

        # Reassign so the JSON column is flagged dirty
        store.settings = {**store.sync_settings, **partial}
        await self.session.commit()
        await self.session.refresh(store)

        logger.info("Updated sync settings for store %s: %s", store_id, partial)
        return store
