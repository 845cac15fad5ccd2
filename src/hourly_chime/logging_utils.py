"""Utilities for configuring consistent project logging."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import IO, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


ROOT_LOGGER_NAME = "hourly_chime"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S %Z"


class _TimezoneAwareFormatter(logging.Formatter):
    """Formatter that renders timestamps in a given zone, or the local zone."""

    def __init__(
        self,
        timezone: ZoneInfo | None,
        fmt: str | None = None,
        datefmt: str | None = None,
    ) -> None:
        super().__init__(fmt or DEFAULT_LOG_FORMAT, datefmt)
        self._timezone = timezone

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802 - required by logging.Formatter
        if self._timezone is None:
            dt = datetime.fromtimestamp(record.created).astimezone()
        else:
            dt = datetime.fromtimestamp(record.created, self._timezone)
        return dt.strftime(datefmt or self.datefmt or DEFAULT_LOG_DATEFMT)


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration payload for :func:`configure_logging`."""

    level: int | str = logging.INFO
    timezone: ZoneInfo | None = None
    fmt: str | None = None
    datefmt: str | None = None
    stream: IO[str] | None = None


def logging_config_from_env(env: Mapping[str, str]) -> LoggingConfig:
    """Build :class:`LoggingConfig` from ``HOURLY_CHIME_LOG_*`` variables.

    An unknown timezone falls back to the local zone.
    """

    timezone: ZoneInfo | None = None
    tz_name = env.get("HOURLY_CHIME_LOG_TIMEZONE")
    if tz_name:
        try:
            timezone = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            timezone = None

    return LoggingConfig(
        level=(env.get("HOURLY_CHIME_LOG_LEVEL") or "INFO").upper(),
        timezone=timezone,
        fmt=env.get("HOURLY_CHIME_LOG_FORMAT") or None,
        datefmt=env.get("HOURLY_CHIME_LOG_DATEFMT") or None,
    )


def _clear_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Configure the package logger with timezone-aware formatting."""

    cfg = config or LoggingConfig()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(cfg.level)
    logger.propagate = False

    _clear_handlers(logger)

    handler = logging.StreamHandler(cfg.stream)
    handler.setLevel(cfg.level)
    handler.setFormatter(
        _TimezoneAwareFormatter(timezone=cfg.timezone, fmt=cfg.fmt, datefmt=cfg.datefmt)
    )
    logger.addHandler(handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a child logger of the project root logger."""

    base = logging.getLogger(ROOT_LOGGER_NAME)
    return base.getChild(name) if name else base


__all__ = (
    "LoggingConfig",
    "ROOT_LOGGER_NAME",
    "configure_logging",
    "get_logger",
    "logging_config_from_env",
)
