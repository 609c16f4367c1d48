"""In-process scheduler for recurring store syncs."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.exceptions import StoreNotFoundError, SyncInProgressError
from app.models.store import Store
from app.services.cadence import Cadence, interval_to_cadence
from app.services.store_directory import StoreDirectory
from app.services.sync_runner import StoreSyncRunner, SyncResults

logger = logging.getLogger(__name__)

RECONCILE_JOB_ID = "reconcile_stores"


def job_key(store_id: UUID) -> str:
    return f"store_{store_id}"


def store_cadence(store: Store) -> Cadence:
    return interval_to_cadence(store.sync_settings.get("sync_interval_seconds"))


@dataclass
class ScheduledSync:
    """A registered recurring sync for one store."""

    store_id: UUID
    cadence: Cadence
    job: Job


class SyncScheduler:
    """Keeps one recurring sync job per active auto-sync store.

    The application creates one instance, starts it in its lifespan and stops
    it on shutdown. A reconciliation job re-reads the store table every few
    minutes so stores connected, reconfigured or deactivated elsewhere are
    picked up without a restart.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        *,
        runner: StoreSyncRunner | None = None,
        reconcile_interval: int | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.runner = runner or StoreSyncRunner(session_factory)
        self.reconcile_interval = (
            reconcile_interval or settings.scheduler_reconcile_interval_seconds
        )
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._jobs: dict[str, ScheduledSync] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> dict[str, ScheduledSync]:
        return dict(self._jobs)

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start the scheduler and schedule every eligible store. Idempotent."""
        if self._running:
            return
        self._running = True

        if not self._scheduler.running:
            self._scheduler.start()

        await self.reconcile()

        self._scheduler.add_job(
            self.reconcile,
            trigger=IntervalTrigger(seconds=self.reconcile_interval, timezone="UTC"),
            id=RECONCILE_JOB_ID,
            name="Reconcile store sync jobs",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(
            "Sync scheduler started with %d store jobs (reconciling every %ds)",
            len(self._jobs),
            self.reconcile_interval,
        )

    async def stop(self) -> None:
        """Remove every job and shut down. In-flight runs are not awaited. Idempotent."""
        if not self._running:
            return
        self._running = False

        for entry in list(self._jobs.values()):
            self.unschedule_store(entry.store_id)
        self._remove_job(RECONCILE_JOB_ID)

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("Sync scheduler stopped")

    # --- Job registry ---

    async def reconcile(self) -> None:
        """Bring the job registry in line with the store table.

        Releases stores whose run was killed mid-sync, schedules missing
        stores, reschedules stores whose interval changed and prunes stores
        that were deactivated or had auto_sync turned off. Errors are logged,
        never raised.
        """
        try:
            async with self.session_factory() as session:
                directory = StoreDirectory(session)
                await directory.release_stale_claims()
                stores = await directory.list_schedulable()
                keep = await directory.list_auto_sync_ids()

            for store in stores:
                if not store.sync_settings["auto_sync"]:
                    continue
                entry = self._jobs.get(job_key(store.id))
                if entry is None:
                    self.schedule_store(store)
                elif entry.cadence != store_cadence(store):
                    self._reschedule(store)

            for entry in list(self._jobs.values()):
                if entry.store_id not in keep:
                    self.unschedule_store(entry.store_id)
        except Exception:
            logger.exception("Failed to reconcile scheduled store syncs")

    def schedule_store(self, store: Store) -> bool:
        """Register a recurring sync for a store.

        Returns False when auto_sync is off or the store is already scheduled.
        """
        if not store.sync_settings["auto_sync"]:
            return False

        key = job_key(store.id)
        if key in self._jobs:
            return False

        cadence = store_cadence(store)
        job = self._scheduler.add_job(
            self._run_scheduled_sync,
            trigger=cadence.to_trigger(),
            args=[store.id],
            id=key,
            name=f"Sync {store.shop_domain}",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._jobs[key] = ScheduledSync(store_id=store.id, cadence=cadence, job=job)
        logger.info("Scheduled sync of %s %s", store.shop_domain, cadence.describe())
        return True

    def unschedule_store(self, store_id: UUID) -> bool:
        """Remove a store's recurring sync. Returns False if none was registered."""
        entry = self._jobs.pop(job_key(store_id), None)
        self._remove_job(job_key(store_id))
        if entry is None:
            return False
        logger.info("Unscheduled sync of store %s", store_id)
        return True

    def _reschedule(self, store: Store) -> None:
        self.unschedule_store(store.id)
        self.schedule_store(store)
        logger.info("Rescheduled sync of %s", store.shop_domain)

    def _remove_job(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    # --- Sync entry points ---

    async def sync_store_data(
        self,
        store_id: UUID,
        kinds: Iterable[str] | None = None,
    ) -> SyncResults:
        return await self.runner.run(store_id, kinds)

    async def trigger_sync(
        self,
        store_id: UUID,
        kinds: Iterable[str] | None = None,
    ) -> SyncResults:
        """Run a sync now, outside the schedule.

        Raises:
            StoreNotFoundError: If the store does not exist or is inactive.
            SyncInProgressError: If the store is already syncing.
        """
        logger.info("Manual sync requested for store %s", store_id)
        return await self.sync_store_data(store_id, kinds)

    async def update_store_sync_settings(self, store_id: UUID, partial: dict[str, Any]) -> Store:
        """Persist new sync settings and re-register the store's job to match."""
        async with self.session_factory() as session:
            store = await StoreDirectory(session).update_settings(store_id, partial)

        if store.is_active and store.sync_settings["auto_sync"]:
            entry = self._jobs.get(job_key(store.id))
            if entry is None:
                self.schedule_store(store)
            elif entry.cadence != store_cadence(store):
                self._reschedule(store)
        else:
            self.unschedule_store(store.id)
        return store

    def is_scheduled(self, store_id: UUID) -> bool:
        return job_key(store_id) in self._jobs

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self._running,
            "active_jobs": len(self._jobs),
            "jobs": [
                {
                    "store_id": entry.store_id,
                    "cadence": entry.cadence.describe(),
                    # Pending jobs (scheduler not started) have no run time yet
                    "next_run_at": getattr(entry.job, "next_run_time", None),
                }
                for entry in self._jobs.values()
            ],
        }

    async def _run_scheduled_sync(self, store_id: UUID) -> None:
        """Timer callback. Never raises."""
        try:
            await self.sync_store_data(store_id)
        except SyncInProgressError:
            logger.info("Store %s is still syncing, skipping this run", store_id)
        except StoreNotFoundError:
            logger.info("Store %s is gone or inactive, unscheduling", store_id)
            self.unschedule_store(store_id)
        except Exception:
            logger.exception("Scheduled sync of store %s failed", store_id)
