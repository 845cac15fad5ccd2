"""Wall-clock helpers for aligning work to the top of each hour."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Protocol

from zoneinfo import ZoneInfo


_LOG = logging.getLogger("hourly_chime.clock")

ONE_HOUR = timedelta(hours=1)

# Every UTC offset in the tz database since the 1970s is a multiple of 15
# minutes, so each local ":00" lands on this grid of UTC instants.
_GRID_STEP = timedelta(minutes=15)
_GRID_SEARCH_STEPS = 12


class Clock(Protocol):
    """Source of the current time as a timezone-aware datetime."""

    def now(self) -> datetime:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class SystemClock:
    """Clock backed by the operating system.

    ``timezone=None`` follows the system local zone, re-read on every call so
    that a zone change on the host is picked up by the next computation.
    """

    timezone: ZoneInfo | None = None

    def now(self) -> datetime:
        if self.timezone is not None:
            return datetime.now(self.timezone)
        return datetime.now().astimezone()


@dataclass(frozen=True)
class HourBoundary:
    """Next top-of-hour instant and the delay from the reference time."""

    target: datetime
    delay: timedelta

    @property
    def hour_slot(self) -> int:
        return self.target.hour


def localize(value: datetime, tz: tzinfo | None = None) -> datetime:
    """Return ``value`` expressed in ``tz``.

    ``tz=None`` means the system local zone. Naive datetimes are taken to be
    wall-clock times in the target zone.
    """

    if tz is None:
        return value.astimezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _resolve_zone(now: datetime, tz: tzinfo | None) -> tzinfo | None:
    if tz is not None:
        return tz
    if isinstance(now.tzinfo, ZoneInfo):
        return now.tzinfo
    return None


def hour_slot(now: datetime, tz: tzinfo | None = None) -> int:
    """Return the local hour (0-23) that ``now`` falls into."""

    return localize(now, _resolve_zone(now, tz)).hour


def _fallback_boundary(now: datetime) -> HourBoundary:
    try:
        return HourBoundary(target=now + ONE_HOUR, delay=ONE_HOUR)
    except OverflowError:
        # end of representable time; keep the loop alive with a plain delay
        return HourBoundary(target=now, delay=ONE_HOUR)


def next_hour_boundary(now: datetime, tz: tzinfo | None = None) -> HourBoundary:
    """Return the first instant after ``now`` whose local time reads ``HH:00:00``.

    The search walks UTC instants rather than adding 3600 seconds to the
    local time, so 23 and 25 hour days and half-hour DST shifts still land
    on a wall-clock ``:00``. When the calendar cannot resolve a boundary the
    result is ``now + 1 hour``; this function never raises.
    """

    zone = _resolve_zone(now, tz)
    try:
        local_now = localize(now, zone)
        reference = local_now.astimezone(timezone.utc)
        hour_start = local_now.replace(minute=0, second=0, microsecond=0)
        candidate = hour_start.astimezone(timezone.utc)

        for _ in range(_GRID_SEARCH_STEPS):
            candidate += _GRID_STEP
            if candidate <= reference:
                continue
            local_candidate = localize(candidate, zone)
            if local_candidate.minute == 0 and local_candidate.second == 0:
                return HourBoundary(
                    target=local_candidate,
                    delay=candidate - reference,
                )
    except (OverflowError, OSError, ValueError) as exc:
        _LOG.warning("Hour boundary calculation failed; using +1 hour: %s", exc)
        return _fallback_boundary(now)

    _LOG.warning(
        "No hour boundary found after %s; using +1 hour",
        now.isoformat(),
    )
    return _fallback_boundary(now)


def upcoming_hour_boundaries(
    now: datetime, count: int, tz: tzinfo | None = None
) -> list[datetime]:
    """Return the next ``count`` hour boundaries after ``now``."""

    if count <= 0:
        raise ValueError("count must be greater than 0")

    boundaries: list[datetime] = []
    reference = now
    for _ in range(count):
        boundary = next_hour_boundary(reference, tz)
        boundaries.append(boundary.target)
        reference = boundary.target
    return boundaries


__all__ = [
    "Clock",
    "HourBoundary",
    "ONE_HOUR",
    "SystemClock",
    "hour_slot",
    "localize",
    "next_hour_boundary",
    "upcoming_hour_boundaries",
]
