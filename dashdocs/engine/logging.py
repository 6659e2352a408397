"""
DashDocs Logging — stdlib logger setup plus structured JSONL operation logs.

Implements:
- configure_logging(): root "dashdocs" logger with JSON or text formatting
- FileLogger: per-object-type, per-category log files (daily files)
- Log entry builders for document operations and security events

Layout:
    {directory}/{object_type}/{category}/{YYYY-MM-DD}.jsonl
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from dashdocs.engine.config import LoggingConfig

logger = logging.getLogger("dashdocs.engine.logging")

# Valid object types and their permitted categories
OBJECT_TYPE_CATEGORIES = {
    "documents": ["execution", "security"],
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line for stdlib log records."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Install a stream handler on the "dashdocs" logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    config = config or LoggingConfig()
    root = logging.getLogger("dashdocs")
    root.setLevel(config.level.upper())

    for handler in list(root.handlers):
        if getattr(handler, "_dashdocs_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler._dashdocs_handler = True  # type: ignore[attr-defined]
    if config.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    root.addHandler(handler)
    return root


class LogEntry:
    """A structured log entry destined for a specific file."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Writes structured JSON log entries to per-object-type, per-category files.
    Thread-safe: one lock per file path.
    """

    def __init__(self, log_dir: str = ".dashdocs/logs"):
        self._log_dir = Path(log_dir)
        self._file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                (self._log_dir / obj_type / cat).mkdir(parents=True, exist_ok=True)

    def write(self, entry: LogEntry) -> None:
        """Write a single log entry to the appropriate file."""
        if entry.category not in OBJECT_TYPE_CATEGORIES.get(entry.object_type, []):
            raise ValueError(
                f"Invalid log target {entry.object_type}/{entry.category}"
            )
        file_path = self._resolve_path(entry.object_type, entry.category)
        key = str(file_path)

        with self._file_locks[key]:
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(entry.to_json())
                f.write("\n")

    def _resolve_path(self, object_type: str, category: str, day: Optional[date] = None) -> Path:
        day = day or date.today()
        return self._log_dir / object_type / category / f"{day.isoformat()}.jsonl"

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def read(
        self,
        object_type: str,
        category: str,
        day: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Read one day's entries, optionally filtered by exact top-level key matches."""
        path = self._resolve_path(object_type, category, day)
        if not path.exists():
            return []
        entries: List[Dict[str, Any]] = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"Skipping corrupt log line in {path}")
                    continue
                if filters and not all(data.get(k) == v for k, v in filters.items()):
                    continue
                entries.append(data)
        return entries


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(
    event: str,
    level: str,
    execution_id: Optional[str] = None,
    user_id: Optional[Any] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a base log entry with common fields."""
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    if execution_id:
        entry["execution_id"] = execution_id
    if user_id is not None:
        entry["user_id"] = user_id
    entry.update(extra)
    return entry


def log_document_operation(
    operation: str,
    user_id: int,
    document_id: Optional[int],
    success: bool,
    duration_ms: float,
    execution_id: Optional[str] = None,
    error: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a document operation log entry."""
    data = _base_entry(
        event="document_operation",
        level="INFO" if success else "ERROR",
        execution_id=execution_id,
        user_id=user_id,
        operation=operation,
        document_id=document_id,
        success=success,
        duration_ms=round(duration_ms, 2),
    )
    if error:
        data["error"] = error
    return LogEntry("documents", "execution", data)


def log_security_event(
    event: str,
    user_id: int,
    operation: str,
    document_id: Optional[int] = None,
    project_id: Optional[int] = None,
    execution_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> LogEntry:
    """Build a security log entry (access denied, hidden document lookup)."""
    data = _base_entry(
        event=event,
        level="WARNING",
        execution_id=execution_id,
        user_id=user_id,
        operation=operation,
    )
    if document_id is not None:
        data["document_id"] = document_id
    if project_id is not None:
        data["project_id"] = project_id
    if reason:
        data["reason"] = reason
    return LogEntry("documents", "security", data)
