import os
import logging
from logging.handlers import RotatingFileHandler
from typing import List, Optional
import structlog
from structlog.stdlib import ProcessorFormatter, BoundLogger, add_logger_name
from structlog.processors import (
    JSONRenderer,
    TimeStamper,
    add_log_level,
    StackInfoRenderer,
    format_exc_info,
)
from rich.logging import RichHandler
from structlog.dev import ConsoleRenderer
from gridlauncher.shared.path_handler import PathHandler


APP_DIR = "gridlauncher"
LOGGER_NAME = "gridlauncher"
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUPS = 2


def default_log_file_path() -> str:
    return PathHandler(APP_DIR).get_state_path("gridlauncher.log")


class SpamFilter(logging.Filter):
    """Lets only the first of a burst of directory change messages through."""

    _change_count = 0

    def filter(self, record):
        message = record.getMessage()
        if message.startswith("Applications changed"):
            SpamFilter._change_count += 1
            return SpamFilter._change_count == 1
        if message.startswith("Catalog rescanned"):
            SpamFilter._change_count = 0
        return True


def _base_processors() -> List:
    return [
        add_log_level,
        TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        StackInfoRenderer(),
        format_exc_info,
    ]


def _json_file_handler(path: str, level: int) -> logging.Handler:
    handler = RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=_base_processors() + [add_logger_name],
            processors=[ProcessorFormatter.remove_processors_meta, JSONRenderer()],
        )
    )
    handler.setLevel(level)
    return handler


def _console_handler(level: int) -> logging.Handler:
    # markup off: app names may contain square brackets
    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_path=False,
        show_time=False,
    )
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=_base_processors(),
            processors=[
                ProcessorFormatter.remove_processors_meta,
                ConsoleRenderer(colors=False),
            ],
            fmt="%(message)s",
        )
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    level: int = logging.DEBUG, log_file_path: Optional[str] = None
) -> BoundLogger:
    """
    Routes both structlog and stdlib loggers under ``gridlauncher`` to a
    rotating JSON log file and a rich console.

    Args:
        level: Minimum level for both outputs.
        log_file_path: Defaults to $XDG_STATE_HOME/gridlauncher/gridlauncher.log.
    """
    log_file_path = log_file_path or default_log_file_path()
    os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
    structlog.configure(
        processors=_base_processors()
        + [add_logger_name, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    root.propagate = False
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    spam_filter = SpamFilter()
    for handler in (_json_file_handler(log_file_path, level), _console_handler(level)):
        handler.addFilter(spam_filter)
        root.addHandler(handler)
    return structlog.get_logger(LOGGER_NAME)
