import logging
import re
import sys
from pathlib import Path
from typing import Any, cast

from loguru import logger
from loguru._defaults import LOGURU_FORMAT

REDACTED = "***REDACTED***"

_SENSITIVE_KEYS = frozenset(
    {"api_key", "api_secret", "apikey", "apisign", "secret", "sign", "key"}
)

# Credentials that end up inside request URLs, bodies or header dumps.
_SENSITIVE_TEXT = re.compile(
    r"(?P<name>apikey|apisign|secret|Key|Sign)(?P<sep>=|'\s*:\s*'|\"\s*:\s*\")"
    r"(?P<value>[^&'\"\s,}]+)"
)


class InterceptHandler(logging.Handler):
    """A custom logging handler to intercept standard logging messages.

    This handler redirects standard logging messages (e.g. from httpx) to
    Loguru.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Emits a log record to the Loguru logger.

        Args:
            record: The log record to emit.
        """
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = cast(Any, frame.f_back)
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def redact_text(text: str) -> str:
    """Masks API keys and signatures embedded in URLs, bodies or header dumps."""
    return _SENSITIVE_TEXT.sub(
        lambda m: f"{m.group('name')}{m.group('sep')}{REDACTED}", text
    )


def _sensitive_data_filter(record: dict[str, Any]) -> bool:
    """Filter and sanitizer for log records.

    Replaces values of sensitive keys in the record's 'extra' data, and
    credentials embedded in the formatted message, before the record reaches
    any sink.
    """
    for key, value in record["extra"].items():
        if key.lower() in _SENSITIVE_KEYS and isinstance(value, str):
            record["extra"][key] = REDACTED

    record["message"] = redact_text(record["message"])
    return True


def setup_logging(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_dir: Path | None = None,
) -> None:
    """Configures the application-wide Loguru logger.

    This function removes any default handlers, sets up a new console sink
    with a readable format, and an optional rotating file sink with
    structured JSON output. It also intercepts standard library logging.

    Args:
        console_level: The minimum log level for console output.
        file_level: The minimum log level for file output.
        log_dir: Directory to store log files. If None, file logging is disabled.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=console_level.upper(),
        format=LOGURU_FORMAT,
        colorize=True,
        filter=_sensitive_data_filter,
    )

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "cryptogateway_{time:YYYY-MM-DD}.log",
            level=file_level.upper(),
            serialize=True,  # One JSON object per line.
            rotation="00:00",  # New file at midnight
            retention="7 days",
            compression="zip",
            filter=_sensitive_data_filter,
            enqueue=True,  # Make logging calls non-blocking
            backtrace=False,  # Keep log files clean
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logger.info("Logging configured successfully.")
