"""Hourly scheduler: fires the hour action at the top of every clock hour."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from typing import Callable

from zoneinfo import ZoneInfo

from .actions import ActionResult, ActionResultHandler, HourAction, run_hour_action
from .alarm import Alarm
from .clock import Clock, SystemClock, hour_slot, next_hour_boundary
from .guard import DEFAULT_GRACE_MINUTES, FireGuard, FiringRecord
from .wake import DEFAULT_SLEEP_THRESHOLD, SleepWakeSignals, WakeDetector


_LOG = logging.getLogger("hourly_chime.scheduler")


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    ARMED = "armed"
    FIRING = "firing"


@dataclass(frozen=True)
class SchedulerConfig:
    """Tuning knobs for :class:`HourlyScheduler`.

    Attributes
    ----------
    timezone:
        Zone whose wall clock defines the hour boundaries. ``None`` follows
        the system local zone.
    grace_minutes:
        Minutes past the hour during which a late firing is still played.
    sleep_threshold:
        Gap since the last observed time beyond which a firing is considered
        stale (the host was asleep).
    """

    timezone: ZoneInfo | None = None
    grace_minutes: int = DEFAULT_GRACE_MINUTES
    sleep_threshold: timedelta = DEFAULT_SLEEP_THRESHOLD


@dataclass(frozen=True)
class ScheduledFiring:
    """A pending alarm; replaced on every reschedule and consumed once."""

    target: datetime
    hour_slot: int
    generation: int


class HourlyScheduler:
    """State machine driving the hourly action.

    ``STOPPED -> ARMED`` on :meth:`start`; ``ARMED -> FIRING -> ARMED`` when the
    alarm elapses; ``ARMED -> ARMED`` on wake; ``* -> STOPPED`` on :meth:`stop`.

    All scheduling state is guarded by one lock. The hour action and its
    notifications run after the lock is released and after the next alarm is
    already installed, so a slow action never leaves the scheduler unarmed.
    """

    def __init__(
        self,
        action: HourAction,
        handler: ActionResultHandler,
        alarm: Alarm,
        *,
        clock: Clock | None = None,
        config: SchedulerConfig | None = None,
    ) -> None:
        cfg = config or SchedulerConfig()
        self._action = action
        self._handler = handler
        self._alarm = alarm
        self._clock = clock or SystemClock(cfg.timezone)
        self._timezone = cfg.timezone
        self._guard = FireGuard(cfg.grace_minutes)
        self._wake = WakeDetector(cfg.sleep_threshold)

        self._lock = threading.Lock()
        self._state = SchedulerState.STOPPED
        self._pending: ScheduledFiring | None = None
        self._generation = 0
        self._rearm_needed = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    @property
    def firing_record(self) -> FiringRecord:
        with self._lock:
            return self._guard.record

    def next_firing_instant(self) -> datetime | None:
        """Return the instant of the pending alarm, or ``None`` when stopped."""

        with self._lock:
            return self._pending.target if self._pending else None

    # -- lifecycle -----------------------------------------------------

    def start(self) -> None:
        with self._lock:
            now = self._clock.now()
            self._wake.observe(now)
            firing = self._arm_locked(now)
        _LOG.info(
            "Hourly scheduler started",
            extra={"next_firing": firing.target.isoformat()},
        )

    def stop(self) -> None:
        with self._lock:
            if self._state is SchedulerState.STOPPED:
                return
            self._alarm.cancel()
            self._generation += 1
            self._pending = None
            self._rearm_needed = False
            self._state = SchedulerState.STOPPED
        _LOG.info("Hourly scheduler stopped")

    def attach(self, signals: SleepWakeSignals) -> None:
        """Subscribe to sleep/wake/tick events published on ``signals``."""

        self.detach()
        self._unsubscribe = signals.subscribe(self)

    def detach(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    # -- sleep / wake --------------------------------------------------

    def on_sleep(self) -> None:
        with self._lock:
            self._wake.on_sleep(self._clock.now())

    def on_wake(self) -> None:
        with self._lock:
            now = self._clock.now()
            self._wake.on_wake(now)
            if self._state is not SchedulerState.ARMED:
                return
            firing = self._arm_locked(now)
        _LOG.info(
            "Re-armed after wake",
            extra={"next_firing": firing.target.isoformat()},
        )

    def on_tick(self) -> None:
        with self._lock:
            now = self._clock.now()
            self._wake.observe(now)
            if self._state is SchedulerState.ARMED and self._rearm_needed:
                _LOG.info("Retrying alarm installation")
                self._arm_locked(now)

    # -- firing --------------------------------------------------------

    def _arm_locked(self, now: datetime) -> ScheduledFiring:
        boundary = next_hour_boundary(now, self._timezone)
        self._alarm.cancel()
        self._generation += 1
        firing = ScheduledFiring(
            target=boundary.target,
            hour_slot=boundary.hour_slot,
            generation=self._generation,
        )
        self._pending = firing
        self._state = SchedulerState.ARMED
        try:
            self._alarm.schedule(boundary.target, partial(self._on_alarm, firing.generation))
        except Exception:
            # the pending firing stays recorded; the next tick or wake re-arms
            _LOG.exception("Failed to install alarm for %s", firing.target.isoformat())
            self._rearm_needed = True
            return firing
        self._rearm_needed = False
        _LOG.debug(
            "Alarm armed",
            extra={
                "next_firing": firing.target.isoformat(),
                "delay_seconds": boundary.delay.total_seconds(),
            },
        )
        return firing

    def _evaluate_locked(self, now: datetime, slot: int) -> bool:
        if self._wake.should_suppress(now):
            _LOG.info("Firing for hour %02d suppressed after sleep", slot)
            return False
        return self._guard.admit(now, slot)

    def _on_alarm(self, generation: int) -> None:
        with self._lock:
            pending = self._pending
            if (
                self._state is not SchedulerState.ARMED
                or pending is None
                or pending.generation != generation
            ):
                _LOG.info("Ignoring stale alarm callback", extra={"generation": generation})
                return

            self._state = SchedulerState.FIRING
            self._pending = None
            now = self._clock.now()
            slot = hour_slot(now, self._timezone)
            try:
                admitted = self._evaluate_locked(now, slot)
            finally:
                self._arm_locked(now)

        if admitted:
            self._execute(slot)

    def _execute(self, slot: int) -> ActionResult:
        result = run_hour_action(self._action, slot)
        try:
            self._handler.handle(result)
        except Exception:
            _LOG.exception("Result handling failed for hour %02d", slot)
        return result

    def fire_now(self) -> ActionResult:
        """Run the hour action for the current hour immediately.

        Bypasses the alarm, the wake detector and the fire guard, and leaves
        the firing record untouched.
        """

        slot = hour_slot(self._clock.now(), self._timezone)
        _LOG.info("Manual firing for hour %02d", slot)
        return self._execute(slot)


__all__ = [
    "HourlyScheduler",
    "ScheduledFiring",
    "SchedulerConfig",
    "SchedulerState",
]
