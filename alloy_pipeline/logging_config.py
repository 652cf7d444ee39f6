"""
Centralized logging configuration for alloy-pipeline.

Console output plus rotating log files: a main generator log, an
error-only log, and a dedicated log of configuration file updates.
"""
# mypy: ignore-errors

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_UPDATES_LOGGER = "alloy_pipeline.writer"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON for better parsing."""
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Extra fields attached by log_config_operation
        if hasattr(record, "config_path"):
            log_obj["config_path"] = record.config_path
        if hasattr(record, "operation"):
            log_obj["operation"] = record.operation
        if hasattr(record, "duration_ms"):
            log_obj["duration_ms"] = record.duration_ms

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter for console and file logs."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = False):
        """Initialize formatter with optional color support."""
        self.use_colors = use_colors
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format with optional colors for console output."""
        if self.use_colors and record.levelname in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    log_dir: str = "/var/log/alloy-pipeline",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    use_json: bool = False,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 5,
) -> None:
    """
    Configure logging for alloy-pipeline.

    Args:
        log_dir: Directory for log files
        console_level: Console logging level
        file_level: File logging level
        use_json: Use JSON formatting for files
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated files to keep
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    # Console goes to stderr so rendered configs can be piped from stdout
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, console_level))
    console_handler.setFormatter(HumanReadableFormatter(use_colors=sys.stderr.isatty()))
    root_logger.addHandler(console_handler)

    file_formatter = StructuredFormatter() if use_json else HumanReadableFormatter()

    main_handler = logging.handlers.RotatingFileHandler(
        log_path / "generator.log", maxBytes=max_bytes, backupCount=backup_count
    )
    main_handler.setLevel(getattr(logging, file_level))
    main_handler.setFormatter(file_formatter)
    root_logger.addHandler(main_handler)

    error_handler = logging.handlers.RotatingFileHandler(
        log_path / "error.log", maxBytes=max_bytes, backupCount=backup_count
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_formatter)
    root_logger.addHandler(error_handler)

    # Config file updates get their own log; they still reach the main log too
    updates_logger = logging.getLogger(CONFIG_UPDATES_LOGGER)
    updates_logger.handlers.clear()
    updates_handler = logging.handlers.RotatingFileHandler(
        log_path / "config-updates.log", maxBytes=max_bytes, backupCount=backup_count
    )
    updates_handler.setFormatter(file_formatter)
    updates_logger.addHandler(updates_handler)
    updates_logger.setLevel(logging.DEBUG)

    root_logger.info(
        f"Logging initialized - Console: {console_level}, File: {file_level}, "
        f"Directory: {log_dir}, JSON: {use_json}"
    )


def log_config_operation(
    operation: str,
    success: bool,
    path: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
) -> None:
    """
    Log a configuration file operation.

    Args:
        operation: Operation type (write, backup, render)
        success: Whether operation succeeded
        path: Configuration file involved
        details: Additional operation details
        error: Error message if failed
    """
    logger = logging.getLogger(CONFIG_UPDATES_LOGGER)

    message = f"Config {operation}: {'SUCCESS' if success else 'FAILED'}"
    if path:
        message += f" - {path}"
    if error:
        message += f" - {error}"
    if details:
        message += f" - {json.dumps(details)}"

    extra: Dict[str, Any] = {"operation": operation}
    if path:
        extra["config_path"] = path
    if details and "duration_ms" in details:
        extra["duration_ms"] = details["duration_ms"]

    if success:
        logger.info(message, extra=extra)
    else:
        logger.error(message, extra=extra)
