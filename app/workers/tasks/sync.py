"""Celery tasks for out-of-process store syncs."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar
from uuid import UUID

from app.core.database import engine
from app.core.exceptions import StoreNotFoundError, SyncInProgressError
from app.services.sync_runner import StoreSyncRunner
from app.workers.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine in a fresh event loop, disposing DB connections after.

    Prefork workers run each task on a new loop and asyncpg connections are
    bound to the loop that opened them, so pooled connections must not
    outlive the task.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(engine.dispose())
        loop.close()


@celery_app.task(
    name="tasks.sync.sync_store",
    base=BaseTask,
    bind=True,
)
def sync_store(
    self: BaseTask,  # noqa: ARG001
    store_id: str,
    resources: list[str] | None = None,
) -> dict[str, Any]:
    """Pull a store's customers, products and orders."""
    return _run_async(_sync_store_async(UUID(store_id), resources))


async def _sync_store_async(store_id: UUID, resources: list[str] | None) -> dict[str, Any]:
    """Async implementation of a store sync."""
    try:
        results = await StoreSyncRunner().run(store_id, resources)
    except StoreNotFoundError:
        return {"store_id": str(store_id), "status": "skipped", "reason": "store not found"}
    except SyncInProgressError:
        return {"store_id": str(store_id), "status": "skipped", "reason": "sync in progress"}

    return {
        "store_id": str(store_id),
        "status": "completed",
        "results": results,
    }
