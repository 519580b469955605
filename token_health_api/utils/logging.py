"""structlog setup shared by the API server and the CLI."""

import logging
import os
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import LoggerFactory

# Third-party loggers that log every request at INFO
CHATTY_LOGGERS = ("httpx", "httpcore")

FILE_FORMATS = {
    "json": "%(message)s",
    "text": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


def _processors(log_format: str) -> List:
    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def _attach_file_handler(path: str, level: int, log_format: str) -> None:
    root = logging.getLogger()
    target = os.path.abspath(path)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            handler.setLevel(level)
            return

    file_handler = logging.FileHandler(path)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMATS.get(log_format, FILE_FORMATS["text"])))
    root.addHandler(file_handler)


def setup_logging(log_level: str = "INFO",
                  log_format: str = "json",
                  log_file: Optional[str] = None) -> int:
    """
    Route structlog through stdlib logging at ``log_level``.

    Safe to call more than once: the root level is reapplied even when
    handlers already exist, and a given log file is attached only once.

    Returns:
        The numeric level that was applied.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=_processors(log_format),
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    if log_file:
        _attach_file_handler(log_file, level, log_format)

    return level
