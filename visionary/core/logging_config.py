"""
Visionary Logging Configuration

Every module logs under the ``visionary`` namespace; ``setup_logging`` decides
where those records go. Shot lifecycle messages read as
``Shot shot-3 [animate]: completed`` so one shot can be followed with grep.
"""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class LogLevel(Enum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


ROOT_LOGGER_NAME = "visionary"

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
# Adds the emitting line; used for studio sessions started with verbose logging.
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(funcName)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_loggers: Dict[str, logging.Logger] = {}
_configured = False


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    log_file: Optional[Path] = None,
    verbose: bool = False,
    console_output: bool = True
) -> None:
    """
    Route the ``visionary`` logger tree to the console and/or a session file.

    Calling it again replaces the previous handlers, so a studio can switch to
    verbose output after startup.

    Args:
        level: Minimum level for the tree and every handler
        log_file: Session log path; parent directories are created
        verbose: Include line numbers and function names
        console_output: Echo records to stdout
    """
    global _configured

    formatter = logging.Formatter(VERBOSE_FORMAT if verbose else DEFAULT_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = []
    if console_output:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.value)
    for old in root.handlers:
        old.close()
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(level.value)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _configured = True
    root.debug(f"Logging configured: level={level.name} verbose={verbose} file={log_file}")


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the visionary tree ("studio" -> "visionary.studio")."""
    if not _configured:
        setup_logging()

    full_name = name if name.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{name}"
    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)
    return _loggers[full_name]
