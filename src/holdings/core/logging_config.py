"""
Holdings - Structured Logging Configuration

Configures structured JSON logging for the holdings registry:
- JSON format for easy parsing and aggregation
- Log rotation to prevent disk space issues
- Console and optional file handlers

Usage:
    from holdings.core.logging_config import setup_logging

    logger = setup_logging(
        name="holdings",
        log_file="/var/log/holdings/registry.json",
        level="INFO"
    )

    logger.info("Token minted", extra={"event": "erc721_holdings.mint", "token_id": 1})
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from holdings.core import config


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with additional context fields.

    Adds timestamp, environment, service and source location to all records.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        timestamp: bool = True,
        environment: Optional[str] = None,
        service_name: str = "holdings",
    ):
        super().__init__(fmt=fmt)
        self.timestamp = timestamp
        self.environment = environment or config.ENVIRONMENT
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        if self.timestamp and not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "holdings",
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    environment: Optional[str] = None,
    enable_console: bool = True,
    max_bytes: int = 100 * 1024 * 1024,  # 100MB
    backup_count: int = 10,
) -> logging.Logger:
    """
    Setup structured JSON logging.

    Args:
        name: Logger name (the package logger configures every module below it)
        log_file: Path to JSON log file; defaults to HOLDINGS_LOG_FILE
        level: Logging level; defaults to HOLDINGS_LOG_LEVEL
        environment: Environment identifier; defaults to HOLDINGS_ENVIRONMENT
        enable_console: Whether to log to stdout
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    level = (level or config.LOG_LEVEL).upper()
    log_file = log_file if log_file is not None else config.LOG_FILE

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    formatter = CustomJsonFormatter(
        environment=environment,
        service_name=name.split(".")[0],
    )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setLevel(getattr(logging, level))
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(
                "Could not create file handler",
                extra={"event": "logging.file_handler_failed", "log_file": log_file, "error": str(e)},
            )

    return logger


def get_logger(name: str = "holdings") -> logging.Logger:
    """Get a logger, configuring it with the standard setup on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logging(name=name)
    return logger
