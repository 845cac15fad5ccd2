from __future__ import annotations

from datetime import datetime

import pytest
from zoneinfo import ZoneInfo

from hourly_chime.guard import FireGuard, FiringRecord


UTC = ZoneInfo("UTC")


def _at(day: int, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2024, 5, day, hour, minute, second, tzinfo=UTC)


def test_admit_records_first_firing() -> None:
    guard = FireGuard()

    assert guard.admit(_at(1, 12), 12) is True
    assert guard.record == FiringRecord(last_fired_slot=12, last_firing_instant=_at(1, 12))


def test_admit_rejects_duplicate_slot_on_same_day() -> None:
    guard = FireGuard()
    guard.admit(_at(1, 12), 12)

    assert guard.admit(_at(1, 12, 0, 30), 12) is False
    assert guard.record.last_firing_instant == _at(1, 12)


def test_admit_accepts_same_slot_on_following_day() -> None:
    guard = FireGuard()
    guard.admit(_at(1, 12), 12)

    assert guard.admit(_at(2, 12), 12) is True
    assert guard.record.last_firing_instant == _at(2, 12)


def test_admit_rejects_late_firing_beyond_grace() -> None:
    guard = FireGuard(grace_minutes=2)

    assert guard.admit(_at(1, 12, 3, 10), 12) is False
    assert guard.record == FiringRecord()


def test_admit_accepts_last_minute_of_grace() -> None:
    guard = FireGuard(grace_minutes=2)

    assert guard.admit(_at(1, 12, 2, 59), 12) is True


def test_admit_with_zero_grace_only_accepts_minute_zero() -> None:
    guard = FireGuard(grace_minutes=0)

    assert guard.admit(_at(1, 9, 0, 45), 9) is True
    assert guard.admit(_at(1, 10, 1), 10) is False


def test_admit_moves_on_to_next_slot() -> None:
    guard = FireGuard()
    guard.admit(_at(1, 12), 12)

    assert guard.admit(_at(1, 13), 13) is True
    assert guard.record.last_fired_slot == 13


def test_admit_rejects_invalid_slot() -> None:
    guard = FireGuard()

    with pytest.raises(ValueError):
        guard.admit(_at(1, 12), 24)


@pytest.mark.parametrize("grace", [-1, 60])
def test_fire_guard_rejects_invalid_grace(grace: int) -> None:
    with pytest.raises(ValueError):
        FireGuard(grace_minutes=grace)
