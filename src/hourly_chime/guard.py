"""Deduplication and lateness checks applied before each hourly firing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime


_LOG = logging.getLogger("hourly_chime.guard")

DEFAULT_GRACE_MINUTES = 2


@dataclass(frozen=True)
class FiringRecord:
    """Slot and instant of the last admitted firing."""

    last_fired_slot: int | None = None
    last_firing_instant: datetime | None = None


def _validate_slot(hour_slot: int) -> None:
    if not 0 <= hour_slot <= 23:
        raise ValueError("Hour slot must be within the range 0-23")


class FireGuard:
    """Admits at most one firing per hour slot, and only near the boundary."""

    def __init__(self, grace_minutes: int = DEFAULT_GRACE_MINUTES) -> None:
        if not 0 <= grace_minutes <= 59:
            raise ValueError("grace_minutes must be within the range 0-59")
        self._grace_minutes = grace_minutes
        self._record = FiringRecord()

    @property
    def grace_minutes(self) -> int:
        return self._grace_minutes

    @property
    def record(self) -> FiringRecord:
        return self._record

    def _is_duplicate(self, now: datetime, hour_slot: int) -> bool:
        record = self._record
        if record.last_fired_slot != hour_slot:
            return False
        # The same slot on a later calendar day is a new hour.
        last = record.last_firing_instant
        return last is None or last.date() == now.date()

    def admit(self, now: datetime, hour_slot: int) -> bool:
        """Return ``True`` and record the firing when ``hour_slot`` may fire at ``now``."""

        _validate_slot(hour_slot)

        if self._is_duplicate(now, hour_slot):
            _LOG.info("Hour %02d already fired; skipping duplicate", hour_slot)
            return False

        if now.minute > self._grace_minutes:
            _LOG.info(
                "Firing for hour %02d is %d minute(s) late; skipping",
                hour_slot,
                now.minute,
                extra={"grace_minutes": self._grace_minutes},
            )
            return False

        self._record = FiringRecord(last_fired_slot=hour_slot, last_firing_instant=now)
        return True


__all__ = ["DEFAULT_GRACE_MINUTES", "FireGuard", "FiringRecord"]
