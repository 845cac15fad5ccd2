"""One-shot alarm backends for the hourly scheduler."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from zoneinfo import ZoneInfo


_LOG = logging.getLogger("hourly_chime.alarm")

DEFAULT_JOB_ID = "hourly-chime-next-boundary"


class SchedulerSetupError(RuntimeError):
    """Raised when the alarm backend cannot be initialized."""


class Alarm(Protocol):
    """A single pending callback; scheduling again replaces the previous one."""

    def schedule(self, when: datetime, callback: Callable[[], None]) -> None:  # pragma: no cover - interface
        ...

    def cancel(self) -> None:  # pragma: no cover - interface
        ...


class BackgroundSchedulerProtocol(Protocol):
    """Subset of the APScheduler scheduler interface used by :class:`APSchedulerAlarm`."""

    running: bool

    def add_job(self, func: Callable[..., object], trigger: str, **kwargs: object) -> object:
        ...  # pragma: no cover - protocol stub

    def remove_job(self, job_id: str) -> None:  # pragma: no cover - protocol stub
        ...

    def start(self) -> None:  # pragma: no cover - protocol stub
        ...

    def shutdown(self, wait: bool = True) -> None:  # pragma: no cover - protocol stub
        ...


SchedulerFactory = Callable[[ZoneInfo | None], BackgroundSchedulerProtocol]


def create_background_scheduler(tz: ZoneInfo | None = None) -> BackgroundSchedulerProtocol:
    """Return a new APScheduler ``BackgroundScheduler``."""

    try:
        if tz is None:
            return BackgroundScheduler()
        return BackgroundScheduler(timezone=tz)
    except Exception as exc:
        raise SchedulerSetupError(f"Unable to create background scheduler: {exc}") from exc


class APSchedulerAlarm:
    """Alarm backed by a single APScheduler ``date`` job.

    The job always uses the same id, so scheduling replaces any pending run.
    Misfires are never dropped: a run delayed by suspend still executes and
    lets the hourly scheduler decide what to do with it.
    """

    def __init__(
        self,
        scheduler: BackgroundSchedulerProtocol,
        *,
        job_id: str = DEFAULT_JOB_ID,
    ) -> None:
        self._scheduler = scheduler
        self._job_id = job_id

    def schedule(self, when: datetime, callback: Callable[[], None]) -> None:
        self._scheduler.add_job(
            callback,
            trigger="date",
            id=self._job_id,
            replace_existing=True,
            run_date=when,
            misfire_grace_time=None,
            coalesce=True,
        )
        _LOG.debug("Alarm set", extra={"run_date": when.isoformat()})

    def cancel(self) -> None:
        try:
            self._scheduler.remove_job(self._job_id)
        except JobLookupError:
            return
        _LOG.debug("Alarm cancelled")

    def start(self) -> None:
        if not getattr(self._scheduler, "running", False):
            self._scheduler.start()

    def shutdown(self) -> None:
        if getattr(self._scheduler, "running", False):
            self._scheduler.shutdown(wait=False)


def prepare_alarm(
    tz: ZoneInfo | None, scheduler_factory: SchedulerFactory | None = None
) -> APSchedulerAlarm:
    """Build an :class:`APSchedulerAlarm` from ``scheduler_factory`` or APScheduler."""

    factory = scheduler_factory or create_background_scheduler
    scheduler = factory(tz)
    if scheduler is None:
        raise SchedulerSetupError(
            "scheduler_factory returned None; unable to configure scheduler"
        )
    return APSchedulerAlarm(scheduler)


__all__ = [
    "APSchedulerAlarm",
    "Alarm",
    "BackgroundSchedulerProtocol",
    "DEFAULT_JOB_ID",
    "SchedulerFactory",
    "SchedulerSetupError",
    "create_background_scheduler",
    "prepare_alarm",
]
