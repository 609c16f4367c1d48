"""One full sync run of a store."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import async_session_maker
from app.core.encryption import decrypt_token
from app.core.exceptions import StoreNotFoundError, SyncInProgressError
from app.core.logging_config import bind_store
from app.integrations.shopify.client import ShopifyClient
from app.models.store import Store, SyncStatus
from app.services.pull_sync import RESOURCE_KINDS, PullSynchronizer
from app.services.store_directory import INTERRUPTED_ERROR, StoreDirectory

logger = logging.getLogger(__name__)

SyncResults = dict[str, dict[str, Any]]


def enabled_kinds(store: Store) -> list[str]:
    """Resource kinds switched on in the store's settings, in sync order."""
    sync_settings = store.sync_settings
    return [kind for kind in RESOURCE_KINDS if sync_settings.get(f"sync_{kind}", True)]


def validate_kinds(kinds: Iterable[str] | None) -> list[str] | None:
    """Order an explicit kinds list, rejecting unknown kinds. None passes through."""
    if kinds is None:
        return None
    wanted = set(kinds)
    unknown = wanted - set(RESOURCE_KINDS)
    if unknown:
        raise ValueError(f"Unknown resource kinds: {', '.join(sorted(unknown))}")
    return [kind for kind in RESOURCE_KINDS if kind in wanted]


class StoreSyncRunner:
    """Runs the customers, products and orders pulls for one store.

    Shared by the in-process scheduler, manual triggers and the Celery worker.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        client_factory: Callable[[str, str], ShopifyClient] = ShopifyClient,
    ) -> None:
        self.session_factory = session_factory
        self.client_factory = client_factory

    async def run(self, store_id: UUID, kinds: Iterable[str] | None = None) -> SyncResults:
        """Sync a store.

        Args:
            store_id: Store to sync.
            kinds: Resource kinds to pull. Defaults to the kinds enabled in the
                store's settings; an explicit list overrides those toggles.

        Returns:
            Per-kind outcome, {"synced": n} or {"error": message}.

        Raises:
            StoreNotFoundError: If the store does not exist or is inactive.
            SyncInProgressError: If the store is already syncing.
        """
        requested = validate_kinds(kinds)

        with bind_store(store_id):
            store = await self._claim(store_id)
            if requested is None:
                requested = enabled_kinds(store)
            logger.info("Starting sync of %s: %s", store.shop_domain, ", ".join(requested))

            try:
                results = await self._pull_all(store, requested)
            except asyncio.CancelledError:
                logger.warning("Sync of %s was cancelled", store.shop_domain)
                await asyncio.shield(
                    self._finish(store_id, SyncStatus.FAILED, INTERRUPTED_ERROR)
                )
                raise
            except Exception as e:
                logger.exception("Sync of %s failed", store.shop_domain)
                await self._finish(store_id, SyncStatus.FAILED, str(e) or e.__class__.__name__)
                raise

            errors = [
                f"{kind}: {outcome['error']}"
                for kind, outcome in results.items()
                if "error" in outcome
            ]
            await self._finish(store_id, SyncStatus.COMPLETED, "; ".join(errors) or None)
            logger.info("Finished sync of %s: %s", store.shop_domain, results)
            return results

    async def _claim(self, store_id: UUID) -> Store:
        async with self.session_factory() as session:
            directory = StoreDirectory(session)
            store = await directory.claim_for_sync(store_id)
            if store is not None:
                return store

            existing = await directory.get(store_id)
            if existing is None or not existing.is_active:
                raise StoreNotFoundError(f"Store {store_id} not found")
            raise SyncInProgressError(f"Store {existing.shop_domain} is already syncing")

    async def _pull_all(self, store: Store, kinds: list[str]) -> SyncResults:
        access_token = decrypt_token(store.access_token)
        results: SyncResults = {}

        async with self.client_factory(store.shop_domain, access_token) as client:
            for kind in kinds:
                async with self.session_factory() as session:
                    synchronizer = PullSynchronizer(session, client, store.id)
                    try:
                        results[kind] = {"synced": await synchronizer.sync(kind)}
                    except Exception as e:
                        logger.exception("Failed to sync %s for %s", kind, store.shop_domain)
                        results[kind] = {"error": str(e) or e.__class__.__name__}

        return results

    async def _finish(self, store_id: UUID, status: SyncStatus, error: str | None) -> None:
        async with self.session_factory() as session:
            await StoreDirectory(session).finish_sync(store_id, status, error)
