"""Pydantic schemas for store sync control."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from app.schemas.common import BaseSchema

ResourceKind = Literal["customers", "products", "orders"]


class SyncSettings(BaseSchema):
    """Effective sync settings of a store."""

    sync_customers: bool = True
    sync_products: bool = True
    sync_orders: bool = True
    sync_events: bool = True
    auto_sync: bool = True
    sync_interval_seconds: int = 3600


class SyncSettingsUpdate(BaseSchema):
    """Partial update of a store's sync settings."""

    sync_customers: bool | None = None
    sync_products: bool | None = None
    sync_orders: bool | None = None
    sync_events: bool | None = None
    auto_sync: bool | None = None
    sync_interval_seconds: int | None = Field(default=None, ge=1)


class SyncTriggerRequest(BaseSchema):
    """Manual sync request. Omitted resources means the store's enabled kinds."""

    resources: list[ResourceKind] | None = None
    background: bool = False


class SyncTriggerResponse(BaseSchema):
    """Result of a manual sync."""

    store_id: UUID
    status: str
    results: dict[str, dict[str, Any]] = {}
    task_id: str | None = None


class RecordCounts(BaseSchema):
    """Mirrored records per resource."""

    customers: int = 0
    products: int = 0
    orders: int = 0


class StoreSyncStatusResponse(BaseSchema):
    """Sync state of a store."""

    store_id: UUID
    shop_domain: str
    is_active: bool
    sync_status: str
    last_sync_at: datetime | None = None
    sync_error: str | None = None
    settings: SyncSettings
    scheduled: bool = False
    cadence: str | None = None
    counts: RecordCounts
    # "ok" or "error: ..." when a connection check was requested
    connection: str | None = None


class ScheduledJobResponse(BaseSchema):
    """A registered recurring sync."""

    store_id: UUID
    cadence: str
    next_run_at: datetime | None = None


class SchedulerStatusResponse(BaseSchema):
    """Scheduler state."""

    is_running: bool
    active_jobs: int
    jobs: list[ScheduledJobResponse] = []
