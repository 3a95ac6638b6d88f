"""Logging configuration for the flyer builder.

Console output for operators plus a JSONL file per day, so storage writes
(appends, saves, failures) can be audited after the fact.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "setup_logging",
    "get_logger",
    "log_flyer_event",
    "LOG_DIR",
]

LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER = "flyer"


class JSONLFileHandler(logging.Handler):
    """Writes one JSON object per record to ``<prefix>_YYYYMMDD.jsonl``."""

    def __init__(self, log_dir: Path, prefix: str = "flyer"):
        super().__init__()
        self.log_dir = log_dir
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.prefix = prefix

    def _log_file(self) -> Path:
        return self.log_dir / f"{self.prefix}_{datetime.now().strftime('%Y%m%d')}.jsonl"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: Dict[str, Any] = {
                "timestamp": datetime.now().isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            event_type = getattr(record, "event_type", None)
            if event_type:
                entry["event_type"] = event_type
            entry.update(getattr(record, "extra_data", None) or {})

            with open(self._log_file(), "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


class ColoredConsoleHandler(logging.StreamHandler):
    """Console handler that colours the level name on a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if hasattr(self.stream, "isatty") and self.stream.isatty():
            color = self.COLORS.get(record.levelname, "")
            if color:
                message = message.replace(
                    record.levelname, f"{color}{record.levelname}{self.RESET}", 1
                )
        return message


def setup_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Set up the ``flyer`` logger.

    Args:
        level: Logging level for the console (default: INFO)
        log_to_file: Whether to log to the daily JSONL file
        log_to_console: Whether to log to stdout
        log_dir: Custom log directory (default: project logs/)

    Returns:
        The configured ``flyer`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(min(level, logging.DEBUG) if log_to_file else level)
    logger.handlers.clear()

    if log_to_console:
        console_handler = ColoredConsoleHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        logger.addHandler(console_handler)

    if log_to_file:
        file_handler = JSONLFileHandler(log_dir or LOG_DIR)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger under the ``flyer`` namespace.

    Args:
        name: Short module name (``"persistence"`` -> ``flyer.persistence``)
    """
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_flyer_event(
    event_type: str,
    data: Dict[str, Any],
    level: int = logging.INFO,
    logger_name: str = ROOT_LOGGER,
) -> None:
    """Log a structured event (``product_appended``, ``flyer_saved`` ...).

    The payload lands as top-level keys in the JSONL entry; the console only
    shows the message (``data["message"]`` or the event type).
    """
    logger = get_logger(logger_name)
    if not logger.isEnabledFor(level):
        return
    message = data.get("message", event_type)
    logger.log(
        level,
        message,
        extra={
            "event_type": event_type,
            "extra_data": {k: v for k, v in data.items() if k != "message"},
        },
    )
