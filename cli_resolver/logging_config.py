"""
Logging for the resolver.

The ``cli_resolver`` logger writes to stderr, keeping stdout free for
listings and ``--json`` output, and optionally to a log file. Discovery logs
from enumerator and validator worker threads, so file records carry the
thread name.

Environment:
    CLI_RESOLVER_LOG_LEVEL  Level used when none is passed (default INFO)
    CLI_RESOLVER_DEBUG=1    Same as --verbose
    NO_COLOR / CLI_RESOLVER_COLOR=0  Plain console output
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from .common import color_enabled, debug_enabled


LOGGER_NAME = "cli_resolver"
LOG_LEVEL_ENV = "CLI_RESOLVER_LOG_LEVEL"

CONSOLE_FORMAT = "%(level_tag)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"

_logger: logging.Logger | None = None


def resolve_level(level: str | None = None, verbose: bool = False, quiet: bool = False) -> int:
    """
    Work out the effective log level.

    --verbose (or CLI_RESOLVER_DEBUG=1) wins over --quiet, which wins over an
    explicit level, which wins over CLI_RESOLVER_LOG_LEVEL.

    Raises:
        ValueError: Unknown ``level`` name
    """
    if verbose or debug_enabled():
        return logging.DEBUG
    if quiet:
        return logging.WARNING

    if level:
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Invalid log level: {level}")
        return value

    # Unknown names in the environment fall back to INFO
    value = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "INFO").upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure the ``cli_resolver`` logger, replacing earlier handlers.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also write records to this file (always at DEBUG)
        verbose: DEBUG level
        quiet: No console handler; WARNING level
        propagate: Pass records to the root logger (pytest's caplog)

    Returns:
        Configured logger
    """
    global _logger

    effective_level = resolve_level(level, verbose, quiet)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else effective_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(effective_level)
        console_handler.setFormatter(ColoredFormatter(
            CONSOLE_FORMAT,
            use_colors=sys.stderr.isatty() and color_enabled(),
        ))
        logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    logger.propagate = propagate

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Return the resolver logger, configuring defaults on first use."""
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger


class ColoredFormatter(logging.Formatter):
    """Console formatter that adds a ``level_tag`` field, coloured when enabled."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        tag = record.levelname
        if self.use_colors and tag in self.COLORS:
            tag = f"{self.COLORS[tag]}{tag}{self.RESET}"
        record.level_tag = tag
        return super().format(record)
