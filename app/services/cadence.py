"""Mapping from a store's sync interval to a recurrence cadence."""

import enum
from dataclasses import dataclass

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings

MINUTE = 60
HOUR = 3600
DAY = 86400


class CadenceUnit(str, enum.Enum):
    """Granularity of a recurring sync."""

    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAILY = "daily"


@dataclass(frozen=True)
class Cadence:
    """Fire every `every` units, or once a day at midnight UTC for DAILY."""

    unit: CadenceUnit
    every: int = 1

    def to_trigger(self) -> BaseTrigger:
        """Build the APScheduler trigger for this cadence."""
        if self.unit is CadenceUnit.SECONDS:
            return IntervalTrigger(seconds=self.every, timezone="UTC")
        if self.unit is CadenceUnit.MINUTES:
            return IntervalTrigger(minutes=self.every, timezone="UTC")
        if self.unit is CadenceUnit.HOURS:
            return IntervalTrigger(hours=self.every, timezone="UTC")
        return CronTrigger(hour=0, minute=0, timezone="UTC")

    def describe(self) -> str:
        if self.unit is CadenceUnit.DAILY:
            return "daily"
        return f"every {self.every} {self.unit.value}"


def interval_to_cadence(seconds: int | None) -> Cadence:
    """Map a sync interval in seconds to a cadence.

    Under a minute fires every N seconds, under an hour every N // 60
    minutes, under a day every N // 3600 hours, anything longer once a day.
    Missing or non-positive intervals fall back to the configured default.
    """
    if not seconds or seconds <= 0:
        seconds = settings.default_sync_interval_seconds

    if seconds < MINUTE:
        return Cadence(CadenceUnit.SECONDS, seconds)
    if seconds < HOUR:
        return Cadence(CadenceUnit.MINUTES, seconds // MINUTE)
    if seconds < DAY:
        return Cadence(CadenceUnit.HOURS, seconds // HOUR)
    return Cadence(CadenceUnit.DAILY)
