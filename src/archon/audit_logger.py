"""
Audit Logger module for the Archon console.

Component-tagged structured logging. Each entry is written as a JSON
object, as a human-readable text line, or both. Entries below the
configured level are dropped, and node credentials and DNS provider
secrets are masked before anything is written. The console owns the
terminal while it runs, so entries normally go to a log file.
"""

import json
import sys
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TextIO

from .config import LoggingConfig
from .enums import LogLevel


MASK_VALUE = "***MASKED***"

# Substrings that mark a key as secret
SECRET_MARKERS = (
    "token", "secret", "password", "api_key", "access_key", "auth",
    "credential", "private_key", "bearer",
)


@dataclass
class LogEntry:
    """Represents a single log entry with all metadata."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }


def is_secret_key(key: Any) -> bool:
    name = str(key).lower()
    return any(marker in name for marker in SECRET_MARKERS)


def mask_secrets(value: Any) -> Any:
    """Copy a value, replacing everything stored under a secret key."""
    if isinstance(value, dict):
        return {
            key: MASK_VALUE if is_secret_key(key) else mask_secrets(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [mask_secrets(item) for item in value]
    return value


def _as_json(entry: LogEntry) -> str:
    return json.dumps(entry.as_dict(), ensure_ascii=False, default=str)


def _as_text(entry: LogEntry) -> str:
    # [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
    text = f"[{entry.timestamp}] {entry.level.value.upper()} [{entry.component}] {entry.message}"
    if entry.data:
        text += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
    return text


FORMATTERS: dict[str, tuple[Callable[[LogEntry], str], ...]] = {
    "json": (_as_json,),
    "text": (_as_text,),
    "both": (_as_json, _as_text),
}


class AuditLogger:
    """
    Structured logger shared by all console components.

    Components pass their COMPONENT name with every call. The most recent
    entries are kept in memory so the console can inspect them.
    """

    MASK_VALUE = MASK_VALUE

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.INFO,
        keep_entries: int = 1000,
    ):
        """
        Initialize the audit logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Where entries are written (defaults to sys.stderr)
            min_level: Entries below this level are dropped
            keep_entries: How many recent entries to retain in memory

        Raises:
            ValueError: If output_format is not one of the known formats
        """
        if output_format not in FORMATTERS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._recent: deque[LogEntry] = deque(maxlen=keep_entries)
        self._owns_stream = False

    @classmethod
    def from_config(cls, config: LoggingConfig) -> "AuditLogger":
        """
        Build a logger from LoggingConfig, opening the log file if one is set.

        Unknown level names fall back to 'info'.
        """
        try:
            level = LogLevel(config.level.lower())
        except ValueError:
            level = LogLevel.INFO

        if config.log_file is None:
            return cls(output_format=config.output_format, min_level=level)

        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger = cls(
            output_format=config.output_format,
            output_stream=open(config.log_file, "a", encoding="utf-8"),
            min_level=level,
        )
        logger._owns_stream = True
        return logger

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Retained entries, oldest first."""
        return list(self._recent)

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record one entry.

        Returns:
            The created LogEntry, or None if it was below the minimum level
        """
        if level.rank < self._min_level.rank:
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._recent.append(entry)

        for formatter in FORMATTERS[self._output_format]:
            self._stream.write(formatter(entry) + "\n")
        self._stream.flush()
        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an error together with whatever context the caller has.

        ArchonError instances contribute their structured form (code,
        message, details) under the "error" key.
        """
        data = dict(additional_data or {})
        if error is not None:
            data["error_type"] = type(error).__name__
            data["error_message"] = str(error)
            if hasattr(error, "to_dict"):
                data["error"] = error.to_dict()
        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Masked copy of an entry's data; the caller's dict is untouched."""
        if not isinstance(data, dict):
            return data
        return mask_secrets(data)

    def close(self) -> None:
        """Close the log file if this logger opened it."""
        if self._owns_stream:
            self._stream.close()
            self._owns_stream = False
