"""
Structured JSON logging for the agent team backend.

Provides:
- JSON log formatting with structured fields
- Daily log rotation at midnight
- 30-day log retention
- Automatic log directory creation
- Structured context fields: agent, metadata
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_LOGGER_NAME = "agent_team"


class JSONLogFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.

    Fields:
    - timestamp: ISO 8601, UTC
    - level: Log level name (INFO, ERROR, etc.)
    - message: Log message
    - agent: Optional agent name the record is about
    - metadata: Optional additional context dict
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "agent": getattr(record, "agent", None),
            "metadata": getattr(record, "metadata", None) or {}
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def default_log_dir() -> Path:
    """Log directory from LOG_DIR, or workspace/logs under the working directory."""
    return Path(os.getenv("LOG_DIR", str(Path.cwd() / "workspace" / "logs")))


def setup_logger(
    log_dir: Optional[str] = None,
    logger_name: str = DEFAULT_LOGGER_NAME,
    level: int = logging.INFO
) -> logging.Logger:
    """
    Set up a logger with JSON formatting and daily rotation.

    Args:
        log_dir: Directory for log files. Defaults to LOG_DIR or workspace/logs
        logger_name: Name for the logger instance
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = str(default_log_dir())

    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    log_file = os.path.join(log_dir, f"{logger_name}.log")
    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8"
    )
    handler.setFormatter(JSONLogFormatter())
    logger.addHandler(handler)

    return logger


def get_logger() -> logging.Logger:
    """
    Get the shared agent team logger.

    The logger is configured on first use; later calls return the same
    instance without re-attaching handlers.
    """
    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not logger.handlers:
        return setup_logger()
    return logger


def log_file_path() -> Path:
    """Path of the current log file for the shared logger."""
    return default_log_dir() / f"{DEFAULT_LOGGER_NAME}.log"
