"""
Centralized logging configuration for the Uniform Order Portal.

Every log line carries the name of the thread that produced it. The portal
runs two long-lived background threads next to Flask's request threads:

    - "Limits"   : per-student limit snapshot refresh loop
    - "Realtime" : Socket.IO listener feeding order/limit refreshes

Log Format:
    2026-10-18 10:15:30 [INFO    ] [MainThread] uniform_portal.app - Starting portal
    2026-10-18 10:15:31 [DEBUG   ] [Limits] uniform_portal.services.limits_service - Refreshed s-1042
    2026-10-18 10:15:32 [INFO    ] [Realtime] uniform_portal.services.realtime_service - order:claimed

Usage:
    # At application startup
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    # In modules
    logger = get_logger(__name__)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_LOGGER_NAME = "uniform_portal"


class ThreadContextFilter(logging.Filter):
    """
    Logging filter that adds thread context to all log records.

    Adds ``thread_name`` and ``thread_id`` to each record so the format
    string can show which thread (request, Limits, Realtime) logged it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_thread = threading.current_thread()
        record.thread_name = current_thread.name
        record.thread_id = threading.get_ident()
        return True


def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure application logging with thread context.

    Sets up:
    1. Console handler (always enabled)
    2. Rotating file handler (optional)
    3. Error file handler for ERROR/CRITICAL (optional)

    Args:
        app_name: Name of the root application logger
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write to log files

    Returns:
        Configured application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False  # Prevent duplicate logs to root logger

    # Allows re-configuration (tests call create_app repeatedly)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=app_log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB per file
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(thread_filter)
        logger.addHandler(file_handler)

        error_log_file = log_dir / f"{app_name}_error.log"
        error_handler = RotatingFileHandler(
            filename=error_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(thread_filter)
        logger.addHandler(error_handler)

        logger.info(f"File logging enabled: {app_log_file}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger named ``uniform_portal.<name>``

    Example:
        # In services/limits_service.py
        logger = get_logger(__name__)
        # Logger name: "uniform_portal.services.limits_service"
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_student_logger(student_id: str) -> logging.Logger:
    """
    Get a logger scoped to one student.

    Makes it easy to grep every refresh/mutation for a single student.

    Args:
        student_id: Student identifier (truncated to 12 chars in the name)
    """
    short_id = student_id[:12] if len(student_id) >= 12 else student_id
    return logging.getLogger(f"{APP_LOGGER_NAME}.student.{short_id}")


def set_thread_name(name: str) -> None:
    """
    Set the name of the current thread.

    This name appears in log messages in the [thread_name] field.

    Args:
        name: Thread name to display in logs
    """
    threading.current_thread().name = name
