"""Core package for the hourly chime scheduler."""

from .actions import (
    ActionOutcome,
    ActionResult,
    ActionResultHandler,
    Notification,
    describe_result,
    run_hour_action,
)
from .alarm import APSchedulerAlarm, SchedulerSetupError, prepare_alarm
from .clock import (
    HourBoundary,
    SystemClock,
    hour_slot,
    next_hour_boundary,
    upcoming_hour_boundaries,
)
from .config import (
    ApplicationConfig,
    ConfigError,
    load_config,
    load_config_from_env_file,
    load_env_file,
)
from .guard import FireGuard, FiringRecord
from .library import AudioFile, AudioLibrary, AudioValidationError, LibraryError
from .logging_utils import LoggingConfig, configure_logging, get_logger
from .notification import NotificationError, NotificationOptions, build_notification_sink
from .scheduler import HourlyScheduler, SchedulerConfig, SchedulerState
from .wake import ClockJumpWatcher, SleepWakeSignals, WakeDetector
from .workflow import ChimeApplication, build_application, start_application, stop_application

__all__ = [
    "ActionOutcome",
    "ActionResult",
    "ActionResultHandler",
    "Notification",
    "describe_result",
    "run_hour_action",
    "APSchedulerAlarm",
    "SchedulerSetupError",
    "prepare_alarm",
    "HourBoundary",
    "SystemClock",
    "hour_slot",
    "next_hour_boundary",
    "upcoming_hour_boundaries",
    "ApplicationConfig",
    "ConfigError",
    "load_config",
    "load_config_from_env_file",
    "load_env_file",
    "FireGuard",
    "FiringRecord",
    "AudioFile",
    "AudioLibrary",
    "AudioValidationError",
    "LibraryError",
    "LoggingConfig",
    "configure_logging",
    "get_logger",
    "NotificationError",
    "NotificationOptions",
    "build_notification_sink",
    "HourlyScheduler",
    "SchedulerConfig",
    "SchedulerState",
    "ClockJumpWatcher",
    "SleepWakeSignals",
    "WakeDetector",
    "ChimeApplication",
    "build_application",
    "start_application",
    "stop_application",
]
