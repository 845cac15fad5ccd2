"""Sleep/wake tracking and detection of wall-clock jumps."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol


_LOG = logging.getLogger("hourly_chime.wake")

DEFAULT_SLEEP_THRESHOLD = timedelta(hours=1)


class WakeDetector:
    """Decides whether a firing is stale because the host was asleep.

    A single ``last_known`` instant is kept. Any evaluation, heartbeat or
    sleep/wake signal moves it forward; a firing that arrives more than
    ``threshold`` after it is treated as stale rather than replayed.

    Not thread-safe on its own; the scheduler calls it under its lock.
    """

    def __init__(self, threshold: timedelta = DEFAULT_SLEEP_THRESHOLD) -> None:
        if threshold <= timedelta(0):
            raise ValueError("threshold must be positive")
        self._threshold = threshold
        self._last_known: datetime | None = None

    @property
    def threshold(self) -> timedelta:
        return self._threshold

    @property
    def last_known(self) -> datetime | None:
        return self._last_known

    def observe(self, now: datetime) -> None:
        self._last_known = now

    def on_sleep(self, now: datetime) -> None:
        _LOG.info("System sleep observed at %s", now.isoformat())
        self._last_known = now

    def on_wake(self, now: datetime) -> None:
        _LOG.info("System wake observed at %s", now.isoformat())
        self._last_known = now

    def should_suppress(self, now: datetime) -> bool:
        """Return ``True`` when more than ``threshold`` passed since the last observation."""

        previous = self._last_known
        self._last_known = now
        if previous is None:
            return False

        # compare absolute instants; same-zone subtraction ignores DST folds
        elapsed = now.astimezone(timezone.utc) - previous.astimezone(timezone.utc)
        if elapsed > self._threshold:
            _LOG.info(
                "Suppressing stale firing",
                extra={
                    "elapsed_seconds": elapsed.total_seconds(),
                    "last_known": previous.isoformat(),
                },
            )
            return True
        return False


class SleepWakeListener(Protocol):
    """Receiver of sleep/wake/tick events published on :class:`SleepWakeSignals`."""

    def on_sleep(self) -> None:  # pragma: no cover - interface
        ...

    def on_wake(self) -> None:  # pragma: no cover - interface
        ...

    def on_tick(self) -> None:  # pragma: no cover - interface
        ...


class SleepWakeSignals:
    """Event channel between platform adapters and the scheduler.

    Adapters translating OS power notifications call :meth:`publish_sleep`
    and :meth:`publish_wake`; :class:`ClockJumpWatcher` publishes ticks and
    wake events for jumps it detects. Listeners run on the publishing thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[SleepWakeListener] = []

    def subscribe(self, listener: SleepWakeListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(listener)

        return _unsubscribe

    def unsubscribe(self, listener: SleepWakeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _snapshot(self) -> list[SleepWakeListener]:
        with self._lock:
            return list(self._listeners)

    def publish_sleep(self) -> None:
        for listener in self._snapshot():
            listener.on_sleep()

    def publish_wake(self) -> None:
        for listener in self._snapshot():
            listener.on_wake()

    def publish_tick(self) -> None:
        for listener in self._snapshot():
            listener.on_tick()


class ClockJumpWatcher:
    """Background poller that spots suspend/resume and manual clock changes.

    Each poll compares how far the wall clock moved against the monotonic
    clock, which does not advance while the host is suspended. A difference
    beyond ``tolerance`` seconds is published as a wake event; every poll
    also publishes a tick so the wake detector's last-known time stays fresh.
    """

    def __init__(
        self,
        signals: SleepWakeSignals,
        *,
        interval: float = 30.0,
        tolerance: float = 90.0,
        wall_clock: Callable[[], float] = time.time,
        monotonic_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if tolerance <= 0:
            raise ValueError("tolerance must be positive")
        self._signals = signals
        self._interval = interval
        self._tolerance = tolerance
        self._wall_clock = wall_clock
        self._monotonic_clock = monotonic_clock
        self._last: tuple[float, float] | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll(self) -> float | None:
        """Sample both clocks once and publish events.

        Returns the detected jump in seconds, or ``None`` when the clocks
        advanced together.
        """

        wall = self._wall_clock()
        mono = self._monotonic_clock()
        previous = self._last
        self._last = (wall, mono)

        jump: float | None = None
        if previous is not None:
            drift = (wall - previous[0]) - (mono - previous[1])
            if abs(drift) > self._tolerance:
                jump = drift

        if jump is not None:
            _LOG.info("Wall clock jumped by %.0f seconds", jump)
            self._signals.publish_wake()
        else:
            self._signals.publish_tick()
        return jump

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # listeners must not kill the watcher thread
                _LOG.exception("Clock watcher poll failed")
            self._stop_event.wait(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._last = None
        self._thread = threading.Thread(
            target=self._run, name="hourly-chime-clock-watcher", daemon=True
        )
        self._thread.start()
        _LOG.info("Clock watcher started", extra={"interval": self._interval})

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        _LOG.info("Clock watcher stopped")


__all__ = [
    "ClockJumpWatcher",
    "DEFAULT_SLEEP_THRESHOLD",
    "SleepWakeListener",
    "SleepWakeSignals",
    "WakeDetector",
]
