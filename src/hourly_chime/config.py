from __future__ import annotations

"""Environment driven configuration loading helpers."""

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping

import os
import shlex

from zoneinfo import ZoneInfo

from .library import DEFAULT_MAX_FILE_SIZE
from .notification import DEFAULT_APP_NAME, NotificationOptions
from .scheduler import SchedulerConfig


DEFAULT_LIBRARY_DIR = "~/.hourly_chime"


class ConfigError(ValueError):
    """Raised when configuration values are missing or invalid."""


@dataclass(frozen=True)
class LibraryConfig:
    directory: Path = Path(DEFAULT_LIBRARY_DIR).expanduser()
    max_file_size: int = DEFAULT_MAX_FILE_SIZE


@dataclass(frozen=True)
class PlaybackConfig:
    """External commands used for playback.

    ``player_command=None`` autodetects a player at runtime;
    ``fallback_command=None`` rings the terminal bell.
    """

    player_command: tuple[str, ...] | None = None
    fallback_command: tuple[str, ...] | None = None


@dataclass(frozen=True)
class WatcherConfig:
    """Polling cadence and jump tolerance for the clock watcher, in seconds."""

    interval: float = 30.0
    tolerance: float = 90.0


@dataclass(frozen=True)
class ApplicationConfig:
    """Aggregate configuration required to run the hourly chime."""

    scheduler: SchedulerConfig
    library: LibraryConfig
    playback: PlaybackConfig
    notification: NotificationOptions
    watcher: WatcherConfig


def _read_env(env: Mapping[str, str] | None = None) -> Mapping[str, str]:
    if env is None:
        return os.environ
    return env


def _get_optional(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_timezone(value: str | None) -> ZoneInfo | None:
    if not value:
        return None
    try:
        return ZoneInfo(value)
    except Exception as exc:  # pragma: no cover - ZoneInfo raises various errors
        raise ConfigError(f"Invalid timezone identifier: {value}") from exc


def _parse_int(value: str | None, *, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"Expected integer for value '{value}'") from exc


def _parse_positive_float(value: str | None, *, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"Expected number for value '{value}'") from exc
    if parsed <= 0:
        raise ConfigError(f"Expected a positive number for value '{value}'")
    return parsed


def _parse_command(value: str | None) -> tuple[str, ...] | None:
    if not value:
        return None
    try:
        parts = tuple(shlex.split(value))
    except ValueError as exc:
        raise ConfigError(f"Invalid command line '{value}': {exc}") from exc
    return parts or None


def load_scheduler_config(env: Mapping[str, str] | None = None) -> SchedulerConfig:
    """Build :class:`SchedulerConfig` from environment variables."""

    values = _read_env(env)
    defaults = SchedulerConfig()
    grace_minutes = _parse_int(
        values.get("HOURLY_CHIME_GRACE_MINUTES"), default=defaults.grace_minutes
    )
    if not 0 <= grace_minutes <= 59:
        raise ConfigError("HOURLY_CHIME_GRACE_MINUTES must be within the range 0-59")

    threshold = _parse_positive_float(
        values.get("HOURLY_CHIME_SLEEP_THRESHOLD_SECONDS"),
        default=defaults.sleep_threshold.total_seconds(),
    )
    return SchedulerConfig(
        timezone=_parse_timezone(_get_optional(values, "HOURLY_CHIME_TIMEZONE")),
        grace_minutes=grace_minutes,
        sleep_threshold=timedelta(seconds=threshold),
    )


def load_library_config(env: Mapping[str, str] | None = None) -> LibraryConfig:
    values = _read_env(env)
    directory = _get_optional(values, "HOURLY_CHIME_LIBRARY_DIR") or DEFAULT_LIBRARY_DIR
    max_file_size = _parse_int(
        values.get("HOURLY_CHIME_MAX_FILE_SIZE"), default=DEFAULT_MAX_FILE_SIZE
    )
    if max_file_size <= 0:
        raise ConfigError("HOURLY_CHIME_MAX_FILE_SIZE must be greater than 0")
    return LibraryConfig(directory=Path(directory).expanduser(), max_file_size=max_file_size)


def load_playback_config(env: Mapping[str, str] | None = None) -> PlaybackConfig:
    values = _read_env(env)
    return PlaybackConfig(
        player_command=_parse_command(_get_optional(values, "HOURLY_CHIME_PLAYER")),
        fallback_command=_parse_command(
            _get_optional(values, "HOURLY_CHIME_FALLBACK_COMMAND")
        ),
    )


def load_notification_options(env: Mapping[str, str] | None = None) -> NotificationOptions:
    values = _read_env(env)
    webhook_url = _get_optional(values, "SLACK_WEBHOOK_URL")
    if webhook_url is not None and not webhook_url.startswith("https://"):
        raise ConfigError("SLACK_WEBHOOK_URL must start with 'https://'")
    return NotificationOptions(
        app_name=_get_optional(values, "HOURLY_CHIME_APP_NAME") or DEFAULT_APP_NAME,
        slack_webhook_url=webhook_url,
    )


def load_watcher_config(env: Mapping[str, str] | None = None) -> WatcherConfig:
    values = _read_env(env)
    defaults = WatcherConfig()
    return WatcherConfig(
        interval=_parse_positive_float(
            values.get("HOURLY_CHIME_WATCH_INTERVAL_SECONDS"), default=defaults.interval
        ),
        tolerance=_parse_positive_float(
            values.get("HOURLY_CHIME_JUMP_TOLERANCE_SECONDS"), default=defaults.tolerance
        ),
    )


def load_config(env: Mapping[str, str] | None = None) -> ApplicationConfig:
    """Load the aggregated application configuration from ``env``."""

    values = _read_env(env)
    return ApplicationConfig(
        scheduler=load_scheduler_config(values),
        library=load_library_config(values),
        playback=load_playback_config(values),
        notification=load_notification_options(values),
        watcher=load_watcher_config(values),
    )


def load_env_file(path: os.PathLike[str] | str, *, encoding: str = "utf-8") -> dict[str, str]:
    """Parse a ``.env`` style file and return its key/value pairs."""

    env_path = Path(path)
    try:
        lines = env_path.read_text(encoding=encoding).splitlines()
    except FileNotFoundError as exc:
        raise ConfigError(f"Environment file not found: {env_path}") from exc

    values: dict[str, str] = {}
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()

        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"Invalid environment line: {raw_line!r}")

        value = value.strip()
        if value[:1] in {'"', "'"}:
            quote = value[0]
            if len(value) < 2 or value[-1] != quote:
                raise ConfigError(f"Unterminated quoted value in line: {raw_line!r}")
            value = value[1:-1]
        elif " #" in value:
            value = value[: value.find(" #")].rstrip()

        values[key] = value

    return values


def load_config_from_env_file(
    path: os.PathLike[str] | str,
    *,
    base_env: Mapping[str, str] | None = None,
    override_existing: bool = True,
) -> ApplicationConfig:
    """Load :class:`ApplicationConfig` from a ``.env`` file merged over ``base_env``."""

    file_values = load_env_file(path)
    base_values = dict(_read_env(base_env))
    if override_existing:
        merged = {**base_values, **file_values}
    else:
        merged = {**file_values, **base_values}
    return load_config(merged)


__all__ = [
    "ApplicationConfig",
    "ConfigError",
    "LibraryConfig",
    "PlaybackConfig",
    "WatcherConfig",
    "load_config",
    "load_config_from_env_file",
    "load_env_file",
    "load_library_config",
    "load_notification_options",
    "load_playback_config",
    "load_scheduler_config",
    "load_watcher_config",
]
