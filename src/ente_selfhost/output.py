#!/usr/bin/env python3
"""Operator-facing console output and logging setup."""

from __future__ import annotations

import logging
import sys


# Color codes for output
BLUE = '\033[94m'
GREEN = '\033[92m'
YELLOW = '\033[93m'
RED = '\033[91m'
RESET = '\033[0m'

# Debug output is opt-in and tied to the configured log level.
DEBUG_ENABLED = False

logger = logging.getLogger(__name__)


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure the logging module and the debug switch for console helpers.
    """
    global DEBUG_ENABLED

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR
    }
    level = level_map.get(str(log_level).upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='[%(levelname)s] %(message)s',
        force=True
    )
    DEBUG_ENABLED = level == logging.DEBUG
    logger.debug(f"Logging configured: {str(log_level).upper()}")


def _emit(tag: str, color: str, msg: str, context: dict, stream=None) -> None:
    print(f"{color}[{tag}]{RESET} {msg}", file=stream or sys.stdout, flush=True)
    for key, value in context.items():
        print(f"  {key}: {value}", file=stream or sys.stdout, flush=True)


def info(msg, **context):
    """Print info message with optional structured context."""
    _emit("INFO", BLUE, msg, context)


def success(msg, **context):
    """Print success message with optional structured context."""
    _emit("SUCCESS", GREEN, msg, context)


def warn(msg, **context):
    """Print warning message with optional structured context."""
    _emit("WARN", YELLOW, msg, context)


def error(msg, **context):
    """Print error message to stderr. Does not exit; callers decide."""
    _emit("ERROR", RED, msg, context, stream=sys.stderr)


def debug(msg, **context):
    """Print debug message (only shown when DEBUG logging is enabled)."""
    if not DEBUG_ENABLED:
        return
    _emit("DEBUG", BLUE, msg, context)


def plain(msg: str = "") -> None:
    """Print an untagged line (endpoint lists, instructions)."""
    print(msg, flush=True)
