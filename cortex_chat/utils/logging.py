"""Logging configuration and utilities."""

import sys
import logging
import logging.handlers
import structlog
from pathlib import Path
from datetime import datetime, timezone
import json
from typing import Optional, Union


def setup_logging(
    debug: bool = False,
    log_file: bool = False,
    log_level: str = "INFO",
    log_format: str = "json",
    log_dir: Optional[Union[str, Path]] = None,
    file_rotation_mb: int = 10,
    file_backup_count: int = 7,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        debug: Enable debug logging (overrides log_level)
        log_file: Whether to log to a file in addition to the console
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Console format (json, dev)
        log_dir: Directory for log files
        file_rotation_mb: File rotation size in MB
        file_backup_count: Number of backup files to keep
    """
    if debug:
        log_level = "DEBUG"
    level = getattr(logging, log_level.upper(), logging.INFO)

    use_dev_console = log_format == "dev" or (
        sys.stderr.isatty() and log_format != "json"
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        if use_dev_console
        else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console output goes to stderr so chat text on stdout stays clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if use_dev_console:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    else:
        console_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = Path(log_dir or "./logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_path = log_dir / f"cortex_{timestamp}.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=file_rotation_mb * 1024 * 1024,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

        structlog.get_logger().info(
            "Logging configured",
            log_file=str(log_path),
            log_level=log_level,
            log_format=log_format,
        )

    root_logger.setLevel(level)


def silence_logging() -> None:
    """Drop everything below CRITICAL, used for machine-readable CLI output."""
    logging.getLogger().setLevel(logging.CRITICAL)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class JsonFormatter(logging.Formatter):
    """JSON formatter for stdlib log records."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_dict["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        try:
            return json.dumps(log_dict, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            return json.dumps(
                {
                    "timestamp": log_dict["timestamp"],
                    "level": "ERROR",
                    "logger": "JsonFormatter",
                    "message": f"Failed to format log record: {e}",
                }
            )
