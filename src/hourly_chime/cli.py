"""Command line utilities for the hourly chime."""

from __future__ import annotations

import argparse
import logging
import os
import shutil
import sys
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Mapping, Sequence

from .actions import ActionOutcome, ActionResult, FallbackSignal
from .alarm import SchedulerFactory, SchedulerSetupError
from .clock import Clock, SystemClock, localize, next_hour_boundary, upcoming_hour_boundaries
from .config import ApplicationConfig, ConfigError, load_config, load_env_file
from .library import AudioLibrary, AudioValidationError, LibraryError
from .logging_utils import configure_logging, logging_config_from_env
from .notification import NotificationSink
from .playback import AudioPlayer
from .workflow import (
    ChimeApplication,
    build_application,
    resolve_player_command,
    start_application,
    stop_application,
)


_LOG = logging.getLogger("hourly_chime.cli")


@dataclass(frozen=True)
class DoctorCheck:
    """Result of a single validation executed by :func:`run_doctor`."""

    name: str
    passed: bool
    details: str


@dataclass(frozen=True)
class DoctorReport:
    """Aggregated outcome of the configuration doctor command."""

    checks: tuple[DoctorCheck, ...]
    errors: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        """Return ``True`` when all checks succeeded and no fatal errors occurred."""

        return not self.errors and all(check.passed for check in self.checks)


@dataclass(frozen=True)
class SchedulePreviewEntry:
    """One upcoming hour boundary and the audio planned for it."""

    run_time: datetime
    hour: int
    audio: str


@dataclass(frozen=True)
class SchedulePreview:
    """Snapshot of the next hourly firings."""

    generated_at: datetime
    entries: tuple[SchedulePreviewEntry, ...]
    next_custom_audio: datetime | None = None


def _configure_default_logging() -> None:
    """Configure the package logger when no handlers are registered."""

    base_logger = logging.getLogger("hourly_chime")
    if base_logger.handlers:
        return

    configure_logging(logging_config_from_env(os.environ))


def _load_application_config(
    env_path: str | Path | None,
    *,
    base_env: Mapping[str, str] | None,
) -> tuple[ApplicationConfig, list[DoctorCheck]]:
    base_values = dict(base_env if base_env is not None else os.environ)
    if env_path is None:
        source_label = "environment variables"
        values = base_values
    else:
        path = Path(env_path)
        source_label = str(path)
        values = {**base_values, **load_env_file(path)}

    _LOG.debug("Loading configuration from %s", source_label)
    try:
        config = load_config(values)
    except ConfigError as exc:
        _LOG.error("Configuration loading failed: %s", exc)
        raise ConfigError(f"Failed to load configuration from {source_label}: {exc}") from exc

    _LOG.info("Configuration loaded from %s", source_label)
    checks = [
        DoctorCheck(
            name="configuration.load",
            passed=True,
            details=f"Configuration loaded from {source_label}",
        )
    ]
    return config, checks


def _check_library(config: ApplicationConfig) -> DoctorCheck:
    directory = config.library.directory
    probe = directory
    while not probe.exists() and probe.parent != probe:
        probe = probe.parent
    if not os.access(probe, os.W_OK):
        return DoctorCheck(
            name="library.directory",
            passed=False,
            details=f"Library directory {directory} is not writable.",
        )

    try:
        library = AudioLibrary(directory, max_file_size=config.library.max_file_size)
    except LibraryError as exc:
        return DoctorCheck(name="library.directory", passed=False, details=str(exc))

    return DoctorCheck(
        name="library.directory",
        passed=True,
        details=f"{len(library)} hour(s) assigned in {directory}.",
    )


def _check_player(config: ApplicationConfig) -> DoctorCheck:
    command = resolve_player_command(config.playback)
    if command is None:
        return DoctorCheck(
            name="playback.player",
            passed=False,
            details="No audio player found; set HOURLY_CHIME_PLAYER.",
        )
    if shutil.which(command[0]) is None:
        return DoctorCheck(
            name="playback.player",
            passed=False,
            details=f"Player '{command[0]}' was not found on PATH.",
        )
    return DoctorCheck(
        name="playback.player",
        passed=True,
        details=f"Using player: {' '.join(command)}",
    )


def _check_notifications(config: ApplicationConfig) -> DoctorCheck:
    url = config.notification.slack_webhook_url
    if not url:
        return DoctorCheck(
            name="notification.sink",
            passed=True,
            details="No Slack webhook configured; notifications are logged.",
        )
    endpoint_note = "" if "hooks.slack.com" in url else " (non-standard endpoint detected)"
    return DoctorCheck(
        name="notification.sink",
        passed=True,
        details=f"Slack webhook appears valid{endpoint_note}.",
    )


def _check_schedule(config: ApplicationConfig, clock: Clock) -> DoctorCheck:
    now = clock.now()
    boundary = next_hour_boundary(now, config.scheduler.timezone)
    tz_name = boundary.target.tzname() or "local"
    return DoctorCheck(
        name="schedule.next",
        passed=True,
        details=(
            f"Next firing at {boundary.target.isoformat()} ({tz_name}), "
            f"in {int(boundary.delay.total_seconds())}s."
        ),
    )


def run_doctor(
    env_path: str | Path | None = None,
    *,
    base_env: Mapping[str, str] | None = None,
    clock: Clock | None = None,
) -> DoctorReport:
    """Execute configuration validations and return their outcome."""

    _configure_default_logging()
    _LOG.info("Running doctor checks", extra={"env_path": str(env_path) if env_path else None})
    try:
        config, checks = _load_application_config(env_path, base_env=base_env)
    except ConfigError as exc:
        _LOG.error("Doctor failed: %s", exc)
        return DoctorReport(checks=(), errors=(str(exc),))

    checks.append(_check_library(config))
    checks.append(_check_player(config))
    checks.append(_check_notifications(config))
    checks.append(_check_schedule(config, clock or SystemClock(config.scheduler.timezone)))

    _LOG.info("Doctor completed with %d check(s)", len(checks))
    return DoctorReport(checks=tuple(checks))


def render_report(report: DoctorReport) -> str:
    """Render a human-friendly summary for :class:`DoctorReport`."""

    status = "PASS" if report.passed else "FAIL"
    lines = [f"Doctor summary: {status}"]
    for check in report.checks:
        symbol = "✔" if check.passed else "✖"
        lines.append(f"{symbol} {check.name}: {check.details}")
    for error in report.errors:
        lines.append(f"✖ error: {error}")
    return "\n".join(lines)


def generate_schedule_preview(
    config: ApplicationConfig,
    library: AudioLibrary,
    *,
    hours: int,
    reference_time: datetime | None = None,
) -> SchedulePreview:
    """Build a :class:`SchedulePreview` covering the next ``hours`` boundaries."""

    if hours <= 0:
        raise ValueError("hours must be greater than 0")

    tz = config.scheduler.timezone
    now = localize(reference_time or SystemClock(tz).now(), tz)
    entries = tuple(
        SchedulePreviewEntry(run_time=run, hour=run.hour, audio=library.display_name(run.hour))
        for run in upcoming_hour_boundaries(now, hours, tz)
    )
    return SchedulePreview(
        generated_at=now,
        entries=entries,
        next_custom_audio=library.next_assigned_boundary(now, tz),
    )


def run_schedule_preview(
    env_path: str | Path | None,
    *,
    hours: int,
    base_env: Mapping[str, str] | None = None,
    reference_time: datetime | None = None,
) -> SchedulePreview:
    """Load configuration and return a schedule preview."""

    _configure_default_logging()
    config, _ = _load_application_config(env_path, base_env=base_env)
    library = AudioLibrary(config.library.directory, max_file_size=config.library.max_file_size)
    preview = generate_schedule_preview(
        config, library, hours=hours, reference_time=reference_time
    )
    _LOG.info("Schedule preview generated with %d entr(ies)", len(preview.entries))
    return preview


def render_schedule_preview(preview: SchedulePreview) -> str:
    """Return a readable summary of :class:`SchedulePreview`."""

    lines = [
        "Schedule preview:",
        f"Generated at: {preview.generated_at.isoformat()}",
    ]
    for entry in preview.entries:
        lines.append(f"  - {entry.run_time.isoformat()}  {entry.audio}")
    if preview.next_custom_audio is not None:
        lines.append(f"Next custom audio at: {preview.next_custom_audio.isoformat()}")
    else:
        lines.append("No custom audio assigned.")
    return "\n".join(lines)


class RunError(RuntimeError):
    """Raised when a chime cannot be executed."""


def run_once(
    env_path: str | Path | None,
    *,
    base_env: Mapping[str, str] | None = None,
    clock: Clock | None = None,
    player: AudioPlayer | None = None,
    notifier: NotificationSink | None = None,
    fallback: FallbackSignal | None = None,
    scheduler_factory: SchedulerFactory | None = None,
) -> ActionResult:
    """Play the current hour's audio once, as the scheduler would."""

    _configure_default_logging()
    config, _ = _load_application_config(env_path, base_env=base_env)
    try:
        app = build_application(
            config,
            clock=clock,
            player=player,
            notifier=notifier,
            fallback=fallback,
            scheduler_factory=scheduler_factory,
        )
    except (LibraryError, SchedulerSetupError) as exc:
        raise RunError(str(exc)) from exc

    result = app.scheduler.fire_now()
    _LOG.info("Manual chime completed", extra={"outcome": result.outcome.value})
    return result


def render_run_result(result: ActionResult) -> str:
    """Render a textual summary for an :class:`ActionResult`."""

    if result.outcome is ActionOutcome.PLAYED:
        status = f"played {result.resource}"
    elif result.outcome is ActionOutcome.NO_RESOURCE_CONFIGURED:
        status = "no audio assigned; played system sound"
    else:
        subject = result.resource or "audio"
        status = f"could not play {subject}; played system sound"
    return f"Hour {result.hour:02d}: {status}"


def run_scheduler(
    env_path: str | Path | None,
    *,
    base_env: Mapping[str, str] | None = None,
    scheduler_factory: SchedulerFactory | None = None,
    player: AudioPlayer | None = None,
    notifier: NotificationSink | None = None,
    fallback: FallbackSignal | None = None,
    watch_clock: bool = True,
) -> ChimeApplication:
    """Build and start the hourly scheduler; the caller owns shutdown."""

    _configure_default_logging()
    _LOG.info("Configuring scheduler")
    config, _ = _load_application_config(env_path, base_env=base_env)
    try:
        app = build_application(
            config,
            scheduler_factory=scheduler_factory,
            player=player,
            notifier=notifier,
            fallback=fallback,
        )
    except LibraryError as exc:
        raise SchedulerSetupError(str(exc)) from exc

    start_application(app, watch_clock=watch_clock)
    _LOG.info("Scheduler configuration complete")
    return app


def _wait_forever() -> None:  # pragma: no cover - blocks until interrupted
    threading.Event().wait()


def _open_library(env_path: str | Path | None) -> AudioLibrary:
    config, _ = _load_application_config(env_path, base_env=None)
    return AudioLibrary(config.library.directory, max_file_size=config.library.max_file_size)


def render_library(library: AudioLibrary) -> str:
    lines = ["Hourly audio:"]
    entries = list(library)
    if not entries:
        lines.append("  (no custom audio assigned)")
    for entry in entries:
        lines.append(f"  {entry.hour:02d}:00  {entry.name}")
    return "\n".join(lines)


def _add_env_file_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-e",
        "--env-file",
        dest="env_file",
        help="Path to a .env file merged over the environment.",
    )


def _hour_argument(value: str) -> int:
    try:
        hour = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid hour: {value!r}") from exc
    if not 0 <= hour <= 23:
        raise argparse.ArgumentTypeError("hour must be within the range 0-23")
    return hour


def build_argument_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command line interface."""

    parser = argparse.ArgumentParser(
        prog="hourly_chime", description="Play audio at the top of every hour"
    )
    subparsers = parser.add_subparsers(dest="command")

    doctor_parser = subparsers.add_parser(
        "doctor", help="Validate configuration, library and player setup."
    )
    _add_env_file_argument(doctor_parser)

    schedule_parser = subparsers.add_parser(
        "schedule", help="Preview the next hourly firings."
    )
    _add_env_file_argument(schedule_parser)
    schedule_parser.add_argument(
        "-n",
        "--hours",
        dest="hours",
        type=int,
        default=6,
        help="Number of upcoming hours to preview (default: 6).",
    )

    play_parser = subparsers.add_parser(
        "play", help="Play the audio for the current hour now."
    )
    _add_env_file_argument(play_parser)

    assign_parser = subparsers.add_parser(
        "assign", help="Import an audio file for an hour."
    )
    _add_env_file_argument(assign_parser)
    assign_parser.add_argument("file", help="Audio file to import.")
    assign_parser.add_argument(
        "--hour",
        dest="hour",
        type=_hour_argument,
        help="Hour (0-23); inferred from the filename when omitted.",
    )

    remove_parser = subparsers.add_parser(
        "remove", help="Remove the audio assigned to an hour."
    )
    _add_env_file_argument(remove_parser)
    remove_parser.add_argument("hour", type=_hour_argument, help="Hour (0-23).")

    list_parser = subparsers.add_parser("list", help="List assigned audio files.")
    _add_env_file_argument(list_parser)

    serve_parser = subparsers.add_parser(
        "serve", help="Run the hourly scheduler until interrupted."
    )
    _add_env_file_argument(serve_parser)
    serve_parser.add_argument(
        "--no-clock-watch",
        dest="watch_clock",
        action="store_false",
        help="Do not poll for suspend/resume and clock jumps.",
    )

    return parser


def _fail(prefix: str, exc: Exception) -> int:
    _LOG.error("%s: %s", prefix, exc)
    print(f"{prefix}: {exc}", file=sys.stderr)
    return 1


def _serve(args: argparse.Namespace) -> int:
    try:
        app = run_scheduler(args.env_file, watch_clock=args.watch_clock)
    except ConfigError as exc:
        return _fail("Failed to load configuration", exc)
    except SchedulerSetupError as exc:
        return _fail("Failed to initialize scheduler", exc)

    next_firing = app.scheduler.next_firing_instant()
    print(f"Scheduler started; next chime at {next_firing.isoformat() if next_firing else 'n/a'}.")
    print("Press Ctrl+C to stop.")

    try:
        _wait_forever()
    except KeyboardInterrupt:
        _LOG.warning("Scheduler interrupted by user")
    finally:
        stop_application(app)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by ``python -m hourly_chime``."""

    _configure_default_logging()
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    _LOG.info("CLI command invoked", extra={"command": args.command})

    if args.command == "doctor":
        report = run_doctor(args.env_file)
        print(render_report(report))
        return 0 if report.passed else 1

    if args.command == "schedule":
        try:
            preview = run_schedule_preview(args.env_file, hours=args.hours)
        except ConfigError as exc:
            return _fail("Failed to load configuration", exc)
        except (ValueError, LibraryError) as exc:
            return _fail("Schedule preview failed", exc)
        print(render_schedule_preview(preview))
        return 0

    if args.command == "play":
        try:
            result = run_once(args.env_file)
        except ConfigError as exc:
            return _fail("Failed to load configuration", exc)
        except RunError as exc:
            return _fail("Play failed", exc)
        print(render_run_result(result))
        return 0

    if args.command in {"assign", "remove", "list"}:
        try:
            library = _open_library(args.env_file)
            if args.command == "assign":
                entry = library.assign(args.file, args.hour)
                print(f"Assigned {entry.name} to {entry.hour:02d}:00")
            elif args.command == "remove":
                if not library.remove(args.hour):
                    print(f"No audio assigned to {args.hour:02d}:00")
                    return 1
                print(f"Removed audio for {args.hour:02d}:00")
            else:
                print(render_library(library))
        except ConfigError as exc:
            return _fail("Failed to load configuration", exc)
        except AudioValidationError as exc:
            return _fail("Audio file validation failed", exc)
        except LibraryError as exc:
            return _fail("Library error", exc)
        return 0

    if args.command == "serve":
        return _serve(args)

    _LOG.warning("No command provided; displaying help")
    parser.print_help()
    return 1


__all__ = [
    "DoctorCheck",
    "DoctorReport",
    "RunError",
    "SchedulePreview",
    "SchedulePreviewEntry",
    "build_argument_parser",
    "generate_schedule_preview",
    "main",
    "render_library",
    "render_report",
    "render_run_result",
    "render_schedule_preview",
    "run_doctor",
    "run_once",
    "run_schedule_preview",
    "run_scheduler",
]
