"""
Logging for the Cookie Harvester.

Every module logs through a child of the "cookie_harvester" logger.
Records go to stderr, keeping stdout free for the CLI's Rich output,
and optionally to a rotating log file. Loggers obtained with
visit_logger() tag each message with the URL being visited, which keeps
interleaved output from concurrent visits readable.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, MutableMapping

from cookie_harvester.config.settings import LoggingSettings

ROOT_LOGGER_NAME = "cookie_harvester"

_logging_configured = False


def _build_handlers(settings: LoggingSettings, level: int) -> list[logging.Handler]:
    """Console and/or rotating file handlers sharing one formatter."""
    handlers: list[logging.Handler] = []

    if settings.log_to_console:
        handlers.append(logging.StreamHandler(sys.stderr))

    if settings.file_path is not None:
        settings.file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            filename=str(settings.file_path),
            maxBytes=settings.max_file_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        ))

    formatter = logging.Formatter(fmt=settings.format, datefmt=settings.date_format)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    return handlers


def setup_logging(
    settings: LoggingSettings | None = None,
    level: str | None = None,
) -> logging.Logger:
    """
    Configure the application logger once per process.

    Later calls return the already configured logger unchanged until
    reset_logging() is called.

    Args:
        settings: Logging configuration; None uses LoggingSettings defaults
        level: Level name taking precedence over settings.level
            (the CLI passes "DEBUG" for --verbose)

    Returns:
        The "cookie_harvester" logger
    """
    global _logging_configured

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if _logging_configured:
        return logger

    settings = settings or LoggingSettings()
    log_level = logging.getLevelName((level or settings.level).upper())

    logger.handlers.clear()
    logger.setLevel(log_level)
    for handler in _build_handlers(settings, log_level):
        logger.addHandler(handler)

    # Our handlers already emit everything; the root logger would duplicate it
    logger.propagate = False

    _logging_configured = True
    return logger


def reset_logging() -> None:
    """Close our handlers and allow setup_logging() to run again."""
    global _logging_configured

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    logger.propagate = True
    _logging_configured = False


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Logger under the application hierarchy.

    Example:
        >>> get_logger("cookie_harvester.crawler.frontier").name
        'cookie_harvester.crawler.frontier'
        >>> get_logger("plugins").name
        'cookie_harvester.plugins'
    """
    if name is None or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class VisitLogAdapter(logging.LoggerAdapter):
    """
    Appends the visit context to every message.

    Example:
        >>> log = visit_logger(__name__, "https://a.example/")
        >>> log.info("Page loaded")  # "Page loaded [url=https://a.example/]"
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        if self.extra:
            tags = " ".join(f"[{k}={v}]" for k, v in self.extra.items())
            msg = f"{msg} {tags}"
        return msg, kwargs


def visit_logger(name: str | None, url: str, **context: Any) -> VisitLogAdapter:
    """
    Logger for one page visit.

    Args:
        name: Module name, typically __name__
        url: URL being visited
        **context: Further tags, e.g. attempt=2
    """
    return VisitLogAdapter(get_logger(name), {"url": url, **context})
