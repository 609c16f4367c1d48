"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session
from app.services.scheduler import SyncScheduler

# Type alias for database session dependency
AsyncSessionDep = Annotated[AsyncSession, Depends(get_async_session)]


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session so tests can override one dependency."""
    async for session in get_async_session():
        yield session


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_scheduler(request: Request) -> SyncScheduler:
    """The application's sync scheduler, created in create_app."""
    scheduler: SyncScheduler = request.app.state.scheduler
    return scheduler


SchedulerDep = Annotated[SyncScheduler, Depends(get_scheduler)]


__all__ = [
    "AsyncSessionDep",
    "DBSession",
    "SchedulerDep",
    "get_db",
    "get_scheduler",
]
