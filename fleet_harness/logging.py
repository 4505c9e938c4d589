"""
Structured logging configuration for the fleet harness.

Provides consistent logging format across all modules with:
- Human-readable timestamped lines (console and per-run log file)
- JSON structured output when requested
- Automatic redaction of sensitive fields
- Run ID tracking so every line can be tied to one invocation
"""

import logging
import sys
from collections import deque
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Context variable for tracking run IDs across async operations
current_run_id: ContextVar[str | None] = ContextVar("current_run_id", default=None)

# Fields that should be redacted in logs
REDACTED_FIELDS = {
    "password",
    "secret",
    "token",
    "authorization",
    "credential",
    "private_key",
    "identity",
}


def redact_sensitive(data: Any, depth: int = 0) -> Any:
    """
    Recursively redact sensitive fields from data structures.

    Args:
        data: Data to redact (dict, list, or scalar)
        depth: Current recursion depth (prevents infinite recursion)

    Returns:
        Data with sensitive fields replaced with "[REDACTED]"
    """
    if depth > 10:
        return data

    if isinstance(data, dict):
        return {
            k: (
                "[REDACTED]"
                if any(redact in k.lower() for redact in REDACTED_FIELDS)
                else redact_sensitive(v, depth + 1)
            )
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [redact_sensitive(item, depth + 1) for item in data]
    return data


class HarnessFormatter(logging.Formatter):
    """
    Formatter for harness logs.

    Includes timestamp, level, module, run_id (if set), and message.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.timestamp = datetime.now(UTC).isoformat(timespec="seconds")

        run_id = current_run_id.get()
        record.run_id = f"[{run_id}] " if run_id else ""

        return super().format(record)


class InMemoryHandler(logging.Handler):
    """In-memory log handler keeping the tail of a run for the summary."""

    def __init__(self, capacity: int = 1000):
        super().__init__()
        self.logs: deque[dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            log_entry = {
                "timestamp": getattr(record, "timestamp", datetime.now(UTC).isoformat()),
                "level": record.levelname,
                "level_no": record.levelno,
                "logger": record.name,
                "message": record.getMessage(),
            }
            self.logs.append(log_entry)
        except Exception:
            self.handleError(record)


_in_memory_handler = InMemoryHandler()

_TEXT_FORMAT = "[%(timestamp)s] %(levelname)-7s %(run_id)s%(message)s"
_JSON_FORMAT = (
    '{"timestamp": "%(timestamp)s", "level": "%(levelname)s", '
    '"module": "%(name)s", "run_id": "%(run_id)s", "message": "%(message)s"}'
)


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """
    Configure logging for the harness.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format
        log_file: Optional per-run log file (appended to, never truncated)

    Returns:
        Configured root logger
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        if isinstance(existing, logging.FileHandler):
            existing.close()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    formatter = HarnessFormatter(_JSON_FORMAT if json_output else _TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(numeric_level)
        # The run log is always plain timestamped lines
        file_handler.setFormatter(HarnessFormatter(_TEXT_FORMAT))
        root.addHandler(file_handler)

    _in_memory_handler.logs.clear()
    _in_memory_handler.setLevel(numeric_level)
    _in_memory_handler.setFormatter(formatter)
    root.addHandler(_in_memory_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def get_in_memory_logs(level: str = "INFO", limit: int = 50) -> list[dict[str, Any]]:
    """Get filtered logs from memory."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    filtered = [log for log in _in_memory_handler.logs if log["level_no"] >= numeric_level]
    return filtered[-limit:]


def set_run_id(run_id: str) -> None:
    """Set the current run ID for log correlation."""
    current_run_id.set(run_id)


def clear_run_id() -> None:
    """Clear the current run ID."""
    current_run_id.set(None)
