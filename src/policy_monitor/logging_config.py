"""Structured logging configuration for the policy monitor."""

import logging
import sys
from pathlib import Path
from typing import Optional


DEFAULT_LOG_DIR = Path("logs")
DEFAULT_LOG_FILE = "policy_monitor.log"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")


def setup_logging(
    log_file: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    console: bool = True,
    file_output: bool = True,
    format_string: Optional[str] = None,
) -> None:
    """Configure structured logging for the policy monitor.

    Args:
        log_file: Path to log file (default: logs/policy_monitor.log)
        log_dir: Directory for log files (default: logs/)
        level: Logging level (default: INFO)
        console: Whether to also log to console (default: True)
        file_output: Whether to write the log file at all (default: True)
        format_string: Custom log format string
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    if log_file is None:
        log_file = log_dir / DEFAULT_LOG_FILE
    elif not log_file.is_absolute():
        log_file = log_dir / log_file

    fmt = format_string or DEFAULT_FORMAT
    formatter = logging.Formatter(fmt, datefmt=DEFAULT_DATE_FORMAT)

    logger = logging.getLogger("policy_monitor")
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    if file_output:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if file_output:
        logger.info(f"Logging initialized: {log_file}")
    else:
        logger.info("Logging initialized (console only)")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module.

    Args:
        name: Logger name (typically module name)

    Returns:
        Logger instance under the policy_monitor namespace
    """
    return logging.getLogger(f"policy_monitor.{name}")
