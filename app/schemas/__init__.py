"""Pydantic schemas for request/response validation."""

from app.schemas.common import HealthResponse
from app.schemas.events import CustomEventCreate, CustomEventResponse
from app.schemas.sync import (
    RecordCounts,
    SchedulerStatusResponse,
    StoreSyncStatusResponse,
    SyncSettings,
    SyncSettingsUpdate,
    SyncTriggerRequest,
    SyncTriggerResponse,
)

__all__ = [
    "CustomEventCreate",
    "CustomEventResponse",
    "HealthResponse",
    "RecordCounts",
    "SchedulerStatusResponse",
    "StoreSyncStatusResponse",
    "SyncSettings",
    "SyncSettingsUpdate",
    "SyncTriggerRequest",
    "SyncTriggerResponse",
]
