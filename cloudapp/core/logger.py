import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from loguru._defaults import LOGURU_FORMAT

from cloudapp.core.models.config import LoggerConfig, LoggerLevel

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[logger_name]}:{function}:{line} - {message}"


class InterceptHandler(logging.Handler):
    """
    Intercepts standard logging and forwards it to Loguru with proper context.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(logger_name=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_logging(config: Optional[LoggerConfig] = None) -> None:
    """
    Configures logging for both stdlib and Loguru.

    The configuration is passed in rather than read from the settings cache,
    so callers decide where it comes from.
    """
    config = config or LoggerConfig()
    level = (config.level or LoggerLevel.INFO).upper()
    json_logs = bool(config.json_log)

    # Remove handlers from root logger and set level
    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(level)

    # Remove all other loggers' handlers and propagate to root
    for name in list(logging.root.manager.loggerDict.keys()):
        log = logging.getLogger(name)
        log.handlers.clear()
        log.propagate = True

    handlers = [
        {
            "sink": sys.stdout,
            "level": level,
            "serialize": json_logs,
            "backtrace": True,
            "diagnose": level == LoggerLevel.DEBUG,
            "format": LOGURU_FORMAT,
        }
    ]

    # Optional file output
    if config.log_file:
        log_file = Path(config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        handlers.append({
            "sink": str(log_file),
            "level": level,
            "serialize": json_logs,
            "rotation": "100 MB",
            "retention": "30 days",
            "compression": "zip",
            "encoding": "utf-8",
            "backtrace": False,
            "diagnose": False,
            "format": FILE_FORMAT,
        })

    logger.configure(
        handlers=handlers,
        extra={"logger_name": "cloudapp"},
    )
    logger.info("Logging initialized.")

