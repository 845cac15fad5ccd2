import io
import logging

from zoneinfo import ZoneInfo

from hourly_chime import LoggingConfig, configure_logging, get_logger
from hourly_chime.logging_utils import logging_config_from_env


class _BufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - trivial
        self.records.append(record)


def _record(logger: logging.Logger, msg: str) -> logging.LogRecord:
    return logging.LogRecord(
        name=logger.name,
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_configure_logging_sets_timezone_for_formatter():
    logger = configure_logging(LoggingConfig(timezone=ZoneInfo("Asia/Tokyo")))

    formatter = logger.handlers[0].formatter
    formatted_time = formatter.formatTime(_record(logger, "chime"))

    assert formatted_time.endswith("JST")


def test_configure_logging_without_timezone_uses_local_zone():
    logger = configure_logging(LoggingConfig(datefmt="%H:%M"))

    formatter = logger.handlers[0].formatter
    formatted_time = formatter.formatTime(_record(logger, "chime"))

    assert len(formatted_time) == 5


def test_configured_datefmt_applies_to_emitted_records():
    logger = configure_logging(
        LoggingConfig(
            timezone=ZoneInfo("Asia/Tokyo"), fmt="%(asctime)s|%(message)s", datefmt="%Z"
        )
    )

    rendered = logger.handlers[0].format(_record(logger, "chime"))

    assert rendered == "JST|chime"


def test_configure_logging_replaces_existing_handlers():
    first = io.StringIO()
    second = io.StringIO()
    configure_logging(LoggingConfig(stream=first))
    logger = configure_logging(LoggingConfig(stream=second, fmt="%(levelname)s %(message)s"))

    logger.info("hour 12 fired")

    assert len(logger.handlers) == 1
    assert first.getvalue() == ""
    assert second.getvalue() == "INFO hour 12 fired\n"


def test_get_logger_returns_child_logger():
    base = configure_logging()
    assert base.name == "hourly_chime"
    child = get_logger("scheduler")

    assert child.name.endswith("scheduler")

    buffer = _BufferHandler()
    child.addHandler(buffer)
    child.setLevel(logging.INFO)
    child.propagate = False

    child.info("message")
    assert buffer.records
    child.removeHandler(buffer)
    child.propagate = True


def test_logging_config_from_env_reads_overrides():
    config = logging_config_from_env(
        {
            "HOURLY_CHIME_LOG_LEVEL": "debug",
            "HOURLY_CHIME_LOG_TIMEZONE": "Asia/Tokyo",
            "HOURLY_CHIME_LOG_FORMAT": "%(message)s",
        }
    )

    assert config.level == "DEBUG"
    assert config.timezone == ZoneInfo("Asia/Tokyo")
    assert config.fmt == "%(message)s"
    assert config.datefmt is None


def test_logging_config_from_env_ignores_unknown_timezone():
    config = logging_config_from_env({"HOURLY_CHIME_LOG_TIMEZONE": "Mars/Olympus"})

    assert config.timezone is None
    assert config.level == "INFO"
