from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import pytest
from zoneinfo import ZoneInfo

from hourly_chime.actions import ActionOutcome
from hourly_chime.alarm import APSchedulerAlarm
from hourly_chime.config import ConfigError, load_config
from hourly_chime.playback import SubprocessAudioPlayer
from hourly_chime.scheduler import SchedulerState
from hourly_chime.workflow import (
    build_application,
    build_player,
    resolve_player_command,
    start_application,
    stop_application,
)


UTC = ZoneInfo("UTC")


class _FakeClock:
    def __init__(self, value: datetime) -> None:
        self.value = value

    def now(self) -> datetime:
        return self.value


class _DummyScheduler:
    def __init__(self) -> None:
        self.jobs: dict[str, dict[str, Any]] = {}
        self.running = False

    def add_job(self, func: Callable[..., object], trigger: str, **kwargs: Any) -> None:
        self.jobs[kwargs["id"]] = {"func": func, "trigger": trigger, **kwargs}

    def remove_job(self, job_id: str) -> None:
        self.jobs.pop(job_id, None)

    def start(self) -> None:
        self.running = True

    def shutdown(self, wait: bool = True) -> None:
        self.running = False


class _DummyPlayer:
    def __init__(self) -> None:
        self.played: list[Path] = []

    def play(self, path: Path) -> bool:
        self.played.append(path)
        return True


@pytest.fixture()
def chime_env(tmp_path: Path) -> dict[str, str]:
    return {
        "HOURLY_CHIME_LIBRARY_DIR": str(tmp_path / "library"),
        "HOURLY_CHIME_TIMEZONE": "UTC",
        "HOURLY_CHIME_PLAYER": "aplay -q",
    }


def test_build_application_wires_library_and_player(tmp_path: Path, chime_env) -> None:
    config = load_config(chime_env)
    clip = tmp_path / "noon.mp3"
    clip.write_bytes(b"data")
    player = _DummyPlayer()
    notices: list[tuple[str, str]] = []
    fallbacks: list[None] = []

    app = build_application(
        config,
        clock=_FakeClock(datetime(2024, 5, 1, 12, 0, 30, tzinfo=UTC)),
        scheduler_factory=lambda tz: _DummyScheduler(),
        player=player,
        notifier=lambda title, body: notices.append((title, body)),
        fallback=lambda: fallbacks.append(None),
    )
    app.library.assign(clip, 12)

    result = app.scheduler.fire_now()

    assert result.outcome is ActionOutcome.PLAYED
    assert player.played == [app.library.audio_directory / "noon.mp3"]
    assert notices == [("Hourly Chime", "Playing audio for 12:00 - noon.mp3")]
    assert fallbacks == []


def test_start_and_stop_application(chime_env) -> None:
    config = load_config(chime_env)
    backend = _DummyScheduler()

    app = build_application(
        config,
        clock=_FakeClock(datetime(2024, 5, 1, 11, 59, 30, tzinfo=UTC)),
        scheduler_factory=lambda tz: backend,
        player=_DummyPlayer(),
        notifier=lambda title, body: None,
        fallback=lambda: None,
    )
    assert isinstance(app.alarm, APSchedulerAlarm)

    start_application(app, watch_clock=False)

    assert backend.running is True
    assert app.scheduler.state is SchedulerState.ARMED
    assert app.scheduler.next_firing_instant() == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    job = next(iter(backend.jobs.values()))
    assert job["run_date"] == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    stop_application(app)

    assert backend.running is False
    assert app.scheduler.state is SchedulerState.STOPPED
    assert backend.jobs == {}


def test_wake_signal_reaches_running_scheduler(chime_env) -> None:
    config = load_config(chime_env)
    clock = _FakeClock(datetime(2024, 5, 1, 11, 30, tzinfo=UTC))
    app = build_application(
        config,
        clock=clock,
        scheduler_factory=lambda tz: _DummyScheduler(),
        player=_DummyPlayer(),
        notifier=lambda title, body: None,
        fallback=lambda: None,
    )
    start_application(app, watch_clock=False)

    clock.value = datetime(2024, 5, 1, 15, 20, tzinfo=UTC)
    app.signals.publish_wake()

    assert app.scheduler.next_firing_instant() == datetime(2024, 5, 1, 16, 0, tzinfo=UTC)
    stop_application(app)


def test_build_player_uses_configured_command(chime_env) -> None:
    config = load_config(chime_env)

    player = build_player(config.playback)

    assert isinstance(player, SubprocessAudioPlayer)
    assert player.command == ("aplay", "-q")


def test_build_player_without_any_player_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("hourly_chime.workflow.default_player_command", lambda: None)
    config = load_config({})

    assert resolve_player_command(config.playback) is None
    with pytest.raises(ConfigError):
        build_player(config.playback)
