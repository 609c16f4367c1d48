"""Store sync control endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.core.deps import DBSession, SchedulerDep
from app.core.encryption import decrypt_token
from app.core.exceptions import (
    CredentialError,
    ShopifyAPIError,
    StoreNotFoundError,
    SyncInProgressError,
)
from app.models.store import Store, SyncStatus
from app.schemas.sync import (
    RecordCounts,
    SchedulerStatusResponse,
    StoreSyncStatusResponse,
    SyncSettings,
    SyncSettingsUpdate,
    SyncTriggerRequest,
    SyncTriggerResponse,
)
from app.services.record_store import RecordStore
from app.services.scheduler import SyncScheduler, job_key
from app.services.store_directory import StoreDirectory
from app.workers.tasks.sync import sync_store

logger = logging.getLogger(__name__)

router = APIRouter()


async def _status_response(
    store: Store,
    db: DBSession,
    scheduler: SyncScheduler,
) -> StoreSyncStatusResponse:
    counts = await RecordStore(db).count_records(store.id)
    entry = scheduler.jobs.get(job_key(store.id))
    return StoreSyncStatusResponse(
        store_id=store.id,
        shop_domain=store.shop_domain,
        is_active=store.is_active,
        sync_status=store.sync_status.value,
        last_sync_at=store.last_sync_at,
        sync_error=store.sync_error,
        settings=SyncSettings(**store.sync_settings),
        scheduled=entry is not None,
        cadence=entry.cadence.describe() if entry else None,
        counts=RecordCounts(**counts),
    )


async def _check_connection(store: Store, scheduler: SyncScheduler) -> str:
    """Ask Shopify for the shop record with the store's stored token."""
    try:
        access_token = decrypt_token(store.access_token)
        async with scheduler.runner.client_factory(store.shop_domain, access_token) as client:
            await client.get_shop()
    except (CredentialError, ShopifyAPIError) as e:
        logger.warning("Connection check failed for %s: %s", store.shop_domain, e.message)
        return f"error: {e.message}"
    return "ok"


@router.post(
    "/stores/{store_id}/sync",
    response_model=SyncTriggerResponse,
    summary="Trigger a store sync",
)
async def trigger_sync(
    store_id: UUID,
    db: DBSession,
    scheduler: SchedulerDep,
    data: SyncTriggerRequest | None = None,
) -> SyncTriggerResponse:
    """Pull the store's resources now.

    Runs inline by default and returns per-resource results. With
    background=true the run is queued on the Celery worker instead.
    """
    data = data or SyncTriggerRequest()

    if data.background:
        store = await StoreDirectory(db).get(store_id)
        if store is None or not store.is_active:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Store not found")
        if store.sync_status == SyncStatus.SYNCING:
            raise HTTPException(
                status.HTTP_409_CONFLICT, "A sync is already running for this store"
            )

        task = sync_store.delay(str(store_id), data.resources)
        return SyncTriggerResponse(store_id=store_id, status="queued", task_id=task.id)

    try:
        results = await scheduler.trigger_sync(store_id, data.resources)
    except StoreNotFoundError as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, e.message) from e
    except SyncInProgressError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, e.message) from e
    except CredentialError as e:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, e.message) from e

    return SyncTriggerResponse(store_id=store_id, status="completed", results=results)


@router.get(
    "/stores/{store_id}/sync",
    response_model=StoreSyncStatusResponse,
    summary="Get store sync status",
)
async def get_sync_status(
    store_id: UUID,
    db: DBSession,
    scheduler: SchedulerDep,
    check_connection: bool = False,
) -> StoreSyncStatusResponse:
    """Report sync state; with check_connection=true also check the Shopify API."""
    store = await StoreDirectory(db).get(store_id)
    if store is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Store not found")
    response = await _status_response(store, db, scheduler)
    if check_connection:
        response.connection = await _check_connection(store, scheduler)
    return response


@router.patch(
    "/stores/{store_id}/sync-settings",
    response_model=StoreSyncStatusResponse,
    summary="Update store sync settings",
)
async def update_sync_settings(
    store_id: UUID,
    data: SyncSettingsUpdate,
    db: DBSession,
    scheduler: SchedulerDep,
) -> StoreSyncStatusResponse:
    """Merge the given settings and reschedule the store to match."""
    partial = data.model_dump(exclude_none=True)
    try:
        store = await scheduler.update_store_sync_settings(store_id, partial)
    except StoreNotFoundError as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, e.message) from e
    return await _status_response(store, db, scheduler)


@router.get(
    "/sync/scheduler",
    response_model=SchedulerStatusResponse,
    summary="Get scheduler status",
)
async def get_scheduler_status(scheduler: SchedulerDep) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(**scheduler.get_status())
