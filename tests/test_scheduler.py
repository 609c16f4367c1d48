"""Tests for the per-store sync scheduler."""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import StoreNotFoundError, SyncInProgressError
from app.models.store import Store, SyncStatus
from app.services.cadence import Cadence, CadenceUnit
from app.services.scheduler import RECONCILE_JOB_ID, SyncScheduler, job_key
from app.services.sync_runner import StoreSyncRunner


class TestScheduleStore:
    """Tests for schedule_store() / unschedule_store()."""

    @pytest.mark.asyncio
    async def test_registers_single_instance_job(
        self, scheduler: SyncScheduler, store: Store
    ) -> None:
        assert scheduler.schedule_store(store) is True

        entry = scheduler.jobs[job_key(store.id)]
        assert entry.cadence == Cadence(CadenceUnit.HOURS, 1)
        assert entry.job.id == f"store_{store.id}"
        assert entry.job.max_instances == 1
        assert entry.job.coalesce is True
        assert isinstance(entry.job.trigger, IntervalTrigger)

    @pytest.mark.asyncio
    async def test_daily_interval_uses_cron(
        self, scheduler: SyncScheduler, store_factory: Callable[..., Any]
    ) -> None:
        store = await store_factory(settings_data={"sync_interval_seconds": 86400})

        scheduler.schedule_store(store)

        assert isinstance(scheduler.jobs[job_key(store.id)].job.trigger, CronTrigger)

    @pytest.mark.asyncio
    async def test_auto_sync_off_is_not_scheduled(
        self, scheduler: SyncScheduler, store_factory: Callable[..., Any]
    ) -> None:
        store = await store_factory(settings_data={"auto_sync": False})

        assert scheduler.schedule_store(store) is False
        assert scheduler.jobs == {}

    @pytest.mark.asyncio
    async def test_already_scheduled_is_skipped(
        self, scheduler: SyncScheduler, store: Store
    ) -> None:
        scheduler.schedule_store(store)
        assert scheduler.schedule_store(store) is False
        assert len(scheduler.jobs) == 1

    @pytest.mark.asyncio
    async def test_unschedule(
        self, scheduler: SyncScheduler, store: Store
    ) -> None:
        scheduler.schedule_store(store)

        assert scheduler.unschedule_store(store.id) is True
        assert scheduler.unschedule_store(store.id) is False
        assert not scheduler.is_scheduled(store.id)


class TestReconcile:
    """Tests for reconcile()."""

    @pytest.mark.asyncio
    async def test_schedules_eligible_stores(
        self, scheduler: SyncScheduler, store_factory: Callable[..., Any]
    ) -> None:
        eligible = await store_factory()
        syncing = await store_factory(sync_status=SyncStatus.SYNCING)
        manual = await store_factory(settings_data={"auto_sync": False})
        inactive = await store_factory(is_active=False)

        await scheduler.reconcile()

        assert scheduler.is_scheduled(eligible.id)
        assert not scheduler.is_scheduled(syncing.id)
        assert not scheduler.is_scheduled(manual.id)
        assert not scheduler.is_scheduled(inactive.id)

    @pytest.mark.asyncio
    async def test_prunes_deactivated_and_auto_sync_off(
        self,
        db_session: AsyncSession,
        scheduler: SyncScheduler,
        store_factory: Callable[..., Any],
    ) -> None:
        deactivated = await store_factory()
        switched_off = await store_factory()
        kept = await store_factory()
        await scheduler.reconcile()
        assert len(scheduler.jobs) == 3

        deactivated.is_active = False
        switched_off.settings = {"auto_sync": False}
        await db_session.commit()
        await scheduler.reconcile()

        assert set(scheduler.jobs) == {job_key(kept.id)}

    @pytest.mark.asyncio
    async def test_keeps_job_of_store_mid_sync(
        self,
        db_session: AsyncSession,
        scheduler: SyncScheduler,
        store: Store,
    ) -> None:
        await scheduler.reconcile()
        store.sync_status = SyncStatus.SYNCING
        await db_session.commit()

        await scheduler.reconcile()

        assert scheduler.is_scheduled(store.id)

    @pytest.mark.asyncio
    async def test_releases_and_schedules_store_left_syncing_by_killed_run(
        self,
        db_session: AsyncSession,
        scheduler: SyncScheduler,
        store_factory: Callable[..., Any],
    ) -> None:
        stuck = await store_factory(
            sync_status=SyncStatus.SYNCING,
            last_sync_at=datetime.now(UTC) - timedelta(hours=3),
        )

        await scheduler.reconcile()

        assert scheduler.is_scheduled(stuck.id)
        await db_session.refresh(stuck)
        assert stuck.sync_status == SyncStatus.FAILED

        await scheduler.trigger_sync(stuck.id)
        await db_session.refresh(stuck)
        assert stuck.sync_status == SyncStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_reschedules_changed_interval(
        self,
        db_session: AsyncSession,
        scheduler: SyncScheduler,
        store: Store,
    ) -> None:
        await scheduler.reconcile()
        store.settings = {"sync_interval_seconds": 900}
        await db_session.commit()

        await scheduler.reconcile()

        assert scheduler.jobs[job_key(store.id)].cadence == Cadence(CadenceUnit.MINUTES, 15)

    @pytest.mark.asyncio
    async def test_errors_are_swallowed(self, runner: StoreSyncRunner) -> None:
        def broken_factory() -> Any:
            raise RuntimeError("database is down")

        scheduler = SyncScheduler(broken_factory, runner=runner)  # type: ignore[arg-type]

        await scheduler.reconcile()

        assert scheduler.jobs == {}


class TestSettingsUpdate:
    """Tests for update_store_sync_settings()."""

    @pytest.mark.asyncio
    async def test_turning_auto_sync_off_unschedules(
        self, scheduler: SyncScheduler, store: Store
    ) -> None:
        scheduler.schedule_store(store)

        updated = await scheduler.update_store_sync_settings(store.id, {"auto_sync": False})

        assert updated.sync_settings["auto_sync"] is False
        assert not scheduler.is_scheduled(store.id)

    @pytest.mark.asyncio
    async def test_turning_auto_sync_on_schedules(
        self, scheduler: SyncScheduler, store_factory: Callable[..., Any]
    ) -> None:
        store = await store_factory(settings_data={"auto_sync": False})

        await scheduler.update_store_sync_settings(store.id, {"auto_sync": True})

        assert scheduler.is_scheduled(store.id)

    @pytest.mark.asyncio
    async def test_interval_change_reschedules(
        self, scheduler: SyncScheduler, store: Store
    ) -> None:
        scheduler.schedule_store(store)

        await scheduler.update_store_sync_settings(store.id, {"sync_interval_seconds": 30})

        assert scheduler.jobs[job_key(store.id)].cadence == Cadence(CadenceUnit.SECONDS, 30)

    @pytest.mark.asyncio
    async def test_inactive_store_is_not_scheduled(
        self, scheduler: SyncScheduler, store_factory: Callable[..., Any]
    ) -> None:
        store = await store_factory(is_active=False)

        await scheduler.update_store_sync_settings(store.id, {"auto_sync": True})

        assert not scheduler.is_scheduled(store.id)

    @pytest.mark.asyncio
    async def test_unknown_store(self, scheduler: SyncScheduler) -> None:
        with pytest.raises(StoreNotFoundError):
            await scheduler.update_store_sync_settings(uuid.uuid4(), {"auto_sync": False})


class TestLifecycle:
    """Tests for start(), stop() and get_status()."""

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(
        self, scheduler: SyncScheduler, store: Store
    ) -> None:
        await scheduler.start()
        await scheduler.start()

        status = scheduler.get_status()
        assert status["is_running"] is True
        assert status["active_jobs"] == 1
        assert status["jobs"][0]["store_id"] == store.id
        assert status["jobs"][0]["cadence"] == "every 1 hours"
        assert status["jobs"][0]["next_run_at"] is not None
        assert scheduler._scheduler.get_job(RECONCILE_JOB_ID) is not None

        await scheduler.stop()
        await scheduler.stop()

        assert scheduler.get_status() == {"is_running": False, "active_jobs": 0, "jobs": []}

    @pytest.mark.asyncio
    async def test_status_before_start(self, scheduler: SyncScheduler) -> None:
        assert scheduler.get_status() == {"is_running": False, "active_jobs": 0, "jobs": []}


class TestScheduledRun:
    """Tests for the timer callback."""

    @pytest.mark.asyncio
    async def test_runs_sync(
        self,
        db_session: AsyncSession,
        scheduler: SyncScheduler,
        store: Store,
    ) -> None:
        await scheduler._run_scheduled_sync(store.id)

        await db_session.refresh(store)
        assert store.sync_status == SyncStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_in_progress_is_skipped_quietly(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: Store,
    ) -> None:
        runner = AsyncMock(spec=StoreSyncRunner)
        runner.run.side_effect = SyncInProgressError()
        scheduler = SyncScheduler(session_factory, runner=runner)
        scheduler.schedule_store(store)

        await scheduler._run_scheduled_sync(store.id)

        assert scheduler.is_scheduled(store.id)

    @pytest.mark.asyncio
    async def test_vanished_store_is_unscheduled(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: Store,
    ) -> None:
        runner = AsyncMock(spec=StoreSyncRunner)
        runner.run.side_effect = StoreNotFoundError()
        scheduler = SyncScheduler(session_factory, runner=runner)
        scheduler.schedule_store(store)

        await scheduler._run_scheduled_sync(store.id)

        assert not scheduler.is_scheduled(store.id)

    @pytest.mark.asyncio
    async def test_unexpected_errors_never_escape(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: Store,
    ) -> None:
        runner = AsyncMock(spec=StoreSyncRunner)
        runner.run.side_effect = RuntimeError("boom")
        scheduler = SyncScheduler(session_factory, runner=runner)

        await scheduler._run_scheduled_sync(store.id)

        runner.run.assert_awaited_once_with(store.id, None)
