"""
Centralized Logging Utility

This module provides a singleton-style logger configuration for all reporting modules.
Ensures consistent log formatting and file/console handlers across the codebase.

Each process run writes to its own timestamped log file under LOGS_DIR.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from account_reporting.config import LOGS_DIR, LOG_FILENAME_PREFIX, DATE_FORMAT_LOG_FILENAME

# Global logger instance cache
_loggers = {}

# Log file for this process run, resolved on first use
_run_log_file: Optional[Path] = None

_FORMATTER = logging.Formatter(
    fmt='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def log_file_path() -> Path:
    """
    Return the log file path for the current run.

    The name is built once per process from LOG_FILENAME_PREFIX and the start
    timestamp, e.g. logs/new_account_report_2026-01-15_063000.log
    """
    global _run_log_file
    if _run_log_file is None:
        stamp = datetime.now().strftime(DATE_FORMAT_LOG_FILENAME)
        _run_log_file = Path(LOGS_DIR) / f"{LOG_FILENAME_PREFIX}{stamp}.log"
    return _run_log_file


def _setup_logger(name: str) -> logging.Logger:
    """
    Internal function to set up a logger with file and console handlers.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Configured Logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers (singleton-style)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)

    # Console handler (INFO and above)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(_FORMATTER)
    logger.addHandler(console_handler)

    # File handler (all levels). An unusable log location fails the orchestrator
    # setup phase; until then the logger stays console-only.
    log_path = log_file_path()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    except OSError as e:
        logger.warning(f"Cannot write log file {log_path}: {str(e)}")
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_FORMATTER)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger instance for the given name.

    This function ensures singleton-style behavior - each module name
    gets exactly one logger instance with consistent configuration.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Configured Logger instance

    Example:
        from account_reporting.logger import get_logger
        logger = get_logger(__name__)
        logger.info("Module initialized")
    """
    if name not in _loggers:
        _loggers[name] = _setup_logger(name)

    return _loggers[name]


def set_console_level(level: str) -> None:
    """Change the console verbosity of every logger created so far (e.g. 'DEBUG')."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    for logger in _loggers.values():
        for handler in logger.handlers:
            if type(handler) is logging.StreamHandler:
                handler.setLevel(numeric)
