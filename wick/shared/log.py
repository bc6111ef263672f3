#!/usr/bin/env python3
"""
wick Logging Configuration

Centralized logging setup for consistent formatting across the project.
Console output goes to stderr so that stdout only carries rendered
arguments and call results.

Usage:
    from wick.shared.log import configure_logging

    logger = configure_logging("DEBUG")
    controller = SessionController(logger=logger)
    logger.info("Subscribed", extra={"topic": "com.example.tick"})
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional
import os


# ========================================
#           LOGGING FORMATTERS
# ========================================

class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    # ANSI Color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.COLORS['RESET']}"

        return super().format(_with_context(record))


class GenericFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        return super().format(_with_context(record))


def _with_context(record: logging.LogRecord) -> logging.LogRecord:
    """Prefix the message with WAMP context passed through ``extra``"""
    context = []

    if hasattr(record, 'realm'):
        context.append(f"realm={record.realm}")
    if hasattr(record, 'topic'):
        context.append(f"topic={record.topic}")
    if hasattr(record, 'procedure'):
        context.append(f"proc={record.procedure}")
    if hasattr(record, 'authmethod'):
        context.append(f"auth={record.authmethod}")

    if context:
        record.msg = f"[{' '.join(context)}] {record.msg}"
    return record


# ========================================
#           LOGGING CONFIGURATION
# ========================================

ROOT_LOGGER_NAME = "wick"

_loggers_configured = set()


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger for the given module.

    Args:
        name: Usually __name__ from the calling module
        level: Override log level ("DEBUG", "INFO", "WARNING", "ERROR")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure each logger once
    if name not in _loggers_configured:
        _configure_logger(logger, level)
        _loggers_configured.add(name)
    elif level:
        logger.setLevel(_get_log_level(level))

    return logger


def configure_logging(level: Optional[str] = None, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Build the logger for one CLI invocation.

    The returned logger is handed to every component constructor instead of
    components reaching for a process-wide instance.

    Args:
        level: Log level; falls back to WICK_LOG_LEVEL, then INFO
        name: Logger name, "wick" by default
    """
    logger = logging.getLogger(name)
    _configure_logger(logger, level)
    _loggers_configured.add(name)
    return logger


def _configure_logger(logger: logging.Logger, level: Optional[str] = None) -> None:
    """Configure a logger with appropriate handlers and formatters"""

    logger.setLevel(_get_log_level(level))

    # Clear existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    _add_console_handler(logger, colored=_supports_color())

    log_file = os.getenv('WICK_LOG_FILE')
    if log_file:
        _add_file_handler(logger, Path(log_file))

    # Prevent duplicate messages from parent loggers
    logger.propagate = False


def _get_log_level(level: Optional[str] = None) -> int:
    """Determine appropriate log level"""

    level = level or os.getenv('WICK_LOG_LEVEL')
    if level:
        return getattr(logging, level.upper(), logging.INFO)

    return logging.INFO


def _add_console_handler(logger: logging.Logger, colored: bool = True) -> None:
    """Add console handler with appropriate formatter"""

    fmt = '[%(levelname)-8s][%(asctime)s][%(name)-5s]: %(message)s'
    handler = logging.StreamHandler(sys.stderr)

    if colored:
        formatter = ColoredFormatter(
            fmt=fmt,
            datefmt='%H:%M:%S'
        )
    else:
        formatter = GenericFormatter(
            fmt=fmt,
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _add_file_handler(logger: logging.Logger, log_file: Path) -> None:
    """Add file handler when WICK_LOG_FILE is set"""

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)

    formatter = GenericFormatter(
        fmt='%(asctime)s | %(name)-30s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _supports_color() -> bool:
    """Check if the stderr terminal supports color output"""

    if not (hasattr(sys.stderr, "isatty") and sys.stderr.isatty()):
        return False

    if os.getenv("NO_COLOR") is not None:
        return False

    # TERM should not be dumb
    if os.getenv("TERM", "") == "dumb":
        return False

    # Windows-specific check
    if sys.platform == "win32":
        return os.getenv("ANSICON") is not None or os.getenv("WT_SESSION") is not None or os.getenv("TERM_PROGRAM") == "vscode" or "WindowsTerminal" in os.getenv("TERM", "")

    return True
