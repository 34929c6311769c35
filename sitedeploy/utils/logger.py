"""
Centralized logging configuration with colored output

Handlers live on the ``sitedeploy`` package logger only. Module loggers are
its children and propagate to it, so one ``set_level`` call (or one
``--log-level`` flag) reaches every stage, including the worker threads the
orchestrator starts for the alias and publish branches.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import colorlog


PACKAGE_LOGGER = "sitedeploy"

LOGS_DIR = Path("logs")

CONSOLE_FORMAT = "%(log_color)s%(levelname)-8s%(reset)s %(blue)s[%(short_name)s]%(reset)s %(message)s"

# Thread name tells the concurrent alias and publish branches apart
FILE_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}


class _ShortNameFilter(logging.Filter):
    """Drop the package prefix on the console: [services.zone_resolver]"""

    def filter(self, record: logging.LogRecord) -> bool:
        prefix = f"{PACKAGE_LOGGER}."
        record.short_name = record.name[len(prefix):] if record.name.startswith(prefix) else record.name
        return True


def _qualified(name: str) -> str:
    if name == PACKAGE_LOGGER or name.startswith(f"{PACKAGE_LOGGER}."):
        return name
    # "__main__", test names and the like hang off the package logger too
    return f"{PACKAGE_LOGGER}.{name}"


def daily_log_file() -> str:
    return f"sitedeploy_{datetime.now().strftime('%Y-%m-%d')}.log"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True
) -> logging.Logger:
    """
    Configure the package logger once.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file name (saved in logs/ directory)
        console: Whether to output to console

    Returns:
        The package logger
    """
    package = logging.getLogger(PACKAGE_LOGGER)

    # Already configured; handlers are never stacked
    if package.handlers:
        return package

    package.setLevel(getattr(logging, level.upper()))
    package.propagate = False

    if console:
        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.addFilter(_ShortNameFilter())
        console_handler.setFormatter(colorlog.ColoredFormatter(
            CONSOLE_FORMAT,
            reset=True,
            log_colors=LOG_COLORS,
            style='%'
        ))
        package.addHandler(console_handler)

    if log_file:
        LOGS_DIR.mkdir(exist_ok=True)
        file_handler = logging.FileHandler(LOGS_DIR / log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        package.addHandler(file_handler)

    return package


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the package logger, configuring it on first use.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Optional level for this logger alone; by default it follows
               the package level

    Returns:
        Logger named ``sitedeploy.<name>`` unless already under the package
    """
    setup_logging(log_file=daily_log_file())

    logger = logging.getLogger(_qualified(name))
    if level:
        logger.setLevel(getattr(logging, level.upper()))
    return logger


def set_level(level: str) -> None:
    """Apply a log level to the package logger and its console output."""
    numeric = getattr(logging, level.upper())
    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(numeric)
    for handler in package.handlers:
        # The file keeps everything
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(numeric)
