"""
Logging setup for aliasync.

All modules obtain their logger through get_logger(__name__), which returns
the shared loguru logger bound to the module name. configure_logging() is
called once by each entry point (CLI commands, scheduler) to install sinks.

Usage:
    from aliasync.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Fetching alias ranges...")
"""

import sys

from loguru import logger as _logger

from aliasync.models.enums import LogLevel

# Modules that log before configure_logging() runs still get a name.
_logger.configure(extra={"name": "aliasync"})


# =============================================================================
# Formats
# =============================================================================

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]} - {message}"

_LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}


# =============================================================================
# Public API
# =============================================================================


def get_logger(name: str):
    """Return the shared logger bound to a module name."""
    return _logger.bind(name=name)


def configure_logging(level: LogLevel = LogLevel.INFO, log_file: str = "") -> None:
    """
    Install the console sink and, optionally, a file sink.

    Args:
        level: Verbosity for both sinks.
        log_file: Path of an append-only log file (empty = console only).
            The unattended trigger uses this as its local outcome log.
    """
    loguru_level = _LEVEL_MAP.get(LogLevel(level), "INFO")
    full_trace = LogLevel(level) == LogLevel.FULL

    _logger.remove()
    _logger.add(
        sys.stderr,
        level=loguru_level,
        format=CONSOLE_FORMAT,
        backtrace=full_trace,
        diagnose=full_trace,
    )

    if log_file:
        _logger.add(
            log_file,
            level=loguru_level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
