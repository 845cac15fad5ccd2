"""Wiring helpers that assemble the hourly chime from its configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .actions import ActionResultHandler, FallbackSignal
from .alarm import Alarm, APSchedulerAlarm, SchedulerFactory, prepare_alarm
from .clock import Clock
from .config import ApplicationConfig, ConfigError, PlaybackConfig
from .library import AudioLibrary
from .notification import NotificationSink, build_notification_sink
from .playback import (
    AudioPlayer,
    SubprocessAudioPlayer,
    SystemSoundFallback,
    build_hour_action,
    default_player_command,
)
from .scheduler import HourlyScheduler
from .wake import ClockJumpWatcher, SleepWakeSignals


_LOG = logging.getLogger("hourly_chime.workflow")


@dataclass(frozen=True)
class ChimeApplication:
    """Fully wired scheduler together with the collaborators it owns."""

    config: ApplicationConfig
    library: AudioLibrary
    scheduler: HourlyScheduler
    alarm: Alarm
    signals: SleepWakeSignals
    watcher: ClockJumpWatcher


def resolve_player_command(config: PlaybackConfig) -> tuple[str, ...] | None:
    return config.player_command or default_player_command()


def build_player(config: PlaybackConfig) -> AudioPlayer:
    command = resolve_player_command(config)
    if command is None:
        raise ConfigError(
            "No audio player found on PATH; set HOURLY_CHIME_PLAYER to a player command."
        )
    return SubprocessAudioPlayer(command)


def build_application(
    config: ApplicationConfig,
    *,
    clock: Clock | None = None,
    alarm: Alarm | None = None,
    scheduler_factory: SchedulerFactory | None = None,
    player: AudioPlayer | None = None,
    notifier: NotificationSink | None = None,
    fallback: FallbackSignal | None = None,
) -> ChimeApplication:
    """Assemble library, playback, notifications, alarm and scheduler."""

    library = AudioLibrary(
        config.library.directory, max_file_size=config.library.max_file_size
    )
    handler = ActionResultHandler(
        notifier or build_notification_sink(config.notification),
        fallback or SystemSoundFallback(config.playback.fallback_command),
        app_name=config.notification.app_name,
    )
    action = build_hour_action(library, player or build_player(config.playback))
    chosen_alarm = alarm or prepare_alarm(config.scheduler.timezone, scheduler_factory)

    scheduler = HourlyScheduler(
        action,
        handler,
        chosen_alarm,
        clock=clock,
        config=config.scheduler,
    )
    signals = SleepWakeSignals()
    watcher = ClockJumpWatcher(
        signals,
        interval=config.watcher.interval,
        tolerance=config.watcher.tolerance,
    )
    _LOG.debug("Application assembled", extra={"library": str(library.directory)})
    return ChimeApplication(
        config=config,
        library=library,
        scheduler=scheduler,
        alarm=chosen_alarm,
        signals=signals,
        watcher=watcher,
    )


def start_application(app: ChimeApplication, *, watch_clock: bool = True) -> None:
    """Start the alarm backend, arm the scheduler and begin watching the clock."""

    if isinstance(app.alarm, APSchedulerAlarm):
        app.alarm.start()
    app.scheduler.attach(app.signals)
    app.scheduler.start()
    if watch_clock:
        app.watcher.start()
    _LOG.info(
        "Hourly chime running",
        extra={"next_firing": _isoformat(app.scheduler.next_firing_instant())},
    )


def stop_application(app: ChimeApplication) -> None:
    """Stop watching, disarm the scheduler and shut the alarm backend down."""

    app.watcher.stop()
    app.scheduler.detach()
    app.scheduler.stop()
    if isinstance(app.alarm, APSchedulerAlarm):
        app.alarm.shutdown()


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


__all__ = [
    "ChimeApplication",
    "build_application",
    "build_player",
    "resolve_player_command",
    "start_application",
    "stop_application",
]
