import logging
import os
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, List, Optional


_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_ROOT_NAME = "receipt_tracker"
MAX_RECENT_LOGS = 200


def _coerce_level(value: Optional[str]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


@dataclass(frozen=True)
class LogEntry:
    timestamp: float
    level: str
    tag: str
    message: str

    def formatted(self) -> str:
        time_str = datetime.fromtimestamp(self.timestamp).strftime("%H:%M:%S.%f")[:-3]
        return f"{time_str} [{self.level}] {self.tag}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level,
            "tag": self.tag,
            "message": self.message,
            "formatted": self.formatted(),
        }


class RecentLogBuffer(logging.Handler):
    """Keep the last ``capacity`` records in memory for the debug endpoints."""

    def __init__(self, capacity: int = MAX_RECENT_LOGS) -> None:
        super().__init__(level=logging.DEBUG)
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        tag = record.name
        if tag.startswith(_ROOT_NAME + "."):
            tag = tag[len(_ROOT_NAME) + 1:]
        entry = LogEntry(record.created, record.levelname[:1], tag, message)
        with self._entries_lock:
            self._entries.append(entry)

    def entries(self, tag: Optional[str] = None, level: Optional[str] = None) -> List[LogEntry]:
        with self._entries_lock:
            items = list(self._entries)
        if tag:
            items = [e for e in items if tag.lower() in e.tag.lower()]
        if level:
            items = [e for e in items if e.level == level.upper()[:1]]
        return items

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()


_RECENT = RecentLogBuffer()


def recent_logs(tag: Optional[str] = None, level: Optional[str] = None) -> List[LogEntry]:
    """Return buffered log entries, oldest first, optionally filtered."""
    return _RECENT.entries(tag=tag, level=level)


def clear_recent_logs() -> None:
    _RECENT.clear()


def get_logger(name: str) -> logging.Logger:
    """Return a configured stdout logger with consistent formatting.

    - Honors LOG_LEVEL (default INFO) and LOG_FILE (optional path).
    - Every logger also feeds the in-memory recent-log buffer, which records
      DEBUG entries regardless of LOG_LEVEL.
    """
    logger = logging.getLogger(f"{_ROOT_NAME}.{name}")
    if getattr(logger, "_receipt_tracker_configured", False):
        return logger

    level = _coerce_level(os.environ.get("LOG_LEVEL", "INFO"))
    logger.setLevel(logging.DEBUG)

    fmt = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    # Optional log file (appends)
    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError:
            logger.warning("LOG_FILE could not be opened; continuing without file logging")

    logger.addHandler(_RECENT)

    # Avoid duplicate logs if imported multiple times
    logger.propagate = False
    setattr(logger, "_receipt_tracker_configured", True)
    return logger
