"""Audit trail for widget server operations.

Every session open/close and every tool call is appended to a JSON Lines
file, one event per line. Tool arguments are recorded with values under
credential-like keys replaced by ``[REDACTED]``.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import queue
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

REDACTED = "[REDACTED]"

_SENSITIVE_KEY = re.compile(
    r"password|secret|api[_-]?key|token|auth|credential|private[_-]?key",
    re.IGNORECASE,
)


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with sensitive mapping entries masked.

    Mappings are walked recursively, including mappings inside lists.
    """
    if isinstance(value, dict):
        return {
            key: REDACTED if _SENSITIVE_KEY.search(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


def _utc_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass
class SessionEvent:
    """A session was opened, closed or failed its handshake."""

    timestamp: str
    session_id: str
    event_type: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "session",
            "timestamp": self.timestamp,
            "session_id": self.session_id,
            "event_type": self.event_type,
            "details": self.details,
        }


class AuditLogger:
    """Append-only JSON Lines audit trail.

    Lines are queued by the caller and written by a ``QueueListener``
    thread, so file I/O never runs on the event loop. ``close()`` drains
    the queue. Events that arrive after ``close()`` (a late handler
    finishing during shutdown) are discarded.
    """

    def __init__(self, log_path: Path) -> None:
        """Open the audit log for appending.

        Args:
            log_path: Log file; missing parent directories are created.
        """
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        self._handler.setFormatter(logging.Formatter("%(message)s"))
        self._queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
        self._listener = logging.handlers.QueueListener(self._queue, self._handler)
        self._listener.start()
        self._closed = False

    def _append(self, record: dict[str, Any]) -> None:
        if self._closed:
            return
        line = json.dumps(record, default=str)
        self._queue.put(
            logging.makeLogRecord({"msg": line, "levelno": logging.INFO, "levelname": "INFO"})
        )

    def log_request(
        self, request_id: str, session_id: str, tool_name: str, arguments: dict[str, Any]
    ) -> None:
        """Record the start of a tool call.

        Args:
            request_id: Correlates this line with its response line.
            session_id: Session the call arrived on.
            tool_name: Widget component being called.
            arguments: Raw call arguments, redacted before writing.
        """
        self._append(
            {
                "type": "request",
                "timestamp": _utc_now(),
                "request_id": request_id,
                "session_id": session_id,
                "tool_name": tool_name,
                "arguments": redact(arguments),
            }
        )

    def log_response(self, request_id: str, status: str, duration_ms: float) -> None:
        """Record how a tool call ended.

        Args:
            request_id: Id passed to the matching ``log_request``.
            status: One of success, not_found, invalid or error.
            duration_ms: Wall time spent in the call.
        """
        self._append(
            {
                "type": "response",
                "timestamp": _utc_now(),
                "request_id": request_id,
                "result_status": status,
                "execution_time_ms": duration_ms,
            }
        )

    def log_session_event(
        self, session_id: str, event_type: str, details: dict[str, Any] | None = None
    ) -> None:
        """Record a session lifecycle transition."""
        event = SessionEvent(_utc_now(), session_id, event_type, details or {})
        self._append(event.to_dict())

    def close(self) -> None:
        """Write out queued events and close the file."""
        if self._closed:
            return
        self._closed = True
        self._listener.stop()
        self._handler.close()

    def __enter__(self) -> AuditLogger:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
